from __future__ import annotations

from prometheus_client import Counter

function_invocations_total = Counter(
    "cte_function_invocations_total",
    "Number of backend function invocations.",
    ["function"],
)
function_failures_total = Counter(
    "cte_function_failures_total",
    "Number of backend function invocations that returned an error.",
    ["function", "kind"],
)
subscription_sync_total = Counter(
    "cte_subscription_sync_total",
    "Outcome of sync-subscription runs.",
    ["outcome"],
)
access_grants_upserted_total = Counter(
    "cte_access_grants_upserted_total",
    "Number of pathway access grants inserted or refreshed by sync.",
)
orders_created_total = Counter(
    "cte_orders_created_total",
    "Number of orders created from subscription invoices.",
)
