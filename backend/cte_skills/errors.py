from __future__ import annotations


class FunctionError(Exception):
    """Base error for the /functions/v1 surface.

    Every subclass is reported to the caller as ``{"error": detail}`` with a
    500 status; ``kind`` only feeds logs and metrics.
    """

    kind = "internal"
    status_code = 500

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class MissingConfigurationError(FunctionError):
    kind = "configuration"


class AuthenticationError(FunctionError):
    kind = "authentication"


class AuthorizationError(FunctionError):
    kind = "authorization"


class UpstreamError(FunctionError):
    kind = "upstream"


__all__ = [
    "AuthenticationError",
    "AuthorizationError",
    "FunctionError",
    "MissingConfigurationError",
    "UpstreamError",
]
