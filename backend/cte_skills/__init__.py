"""CTE Skills video subscription backend."""
