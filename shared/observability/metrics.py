from prometheus_client import Counter, Histogram

# Business Metrics
marketplace_order_transitions_total = Counter(
    "marketplace_order_transitions_total",
    "Order state machine transitions attempted",
    ["transition", "outcome"] # outcome: 'applied', 'rejected', 'noop'
)

marketplace_checkout_duration_seconds = Histogram(
    "marketplace_checkout_duration_seconds",
    "Cart to order compilation duration in seconds"
)

marketplace_checkout_excluded_lines_total = Counter(
    "marketplace_checkout_excluded_lines_total",
    "Cart lines dropped at checkout (product missing or unavailable, or invalid quantity)"
)

marketplace_settlements_total = Counter(
    "marketplace_settlements_total",
    "Seller payout releases",
    ["outcome"] # 'released', 'already_released'
)

marketplace_notifications_created_total = Counter(
    "marketplace_notifications_created_total",
    "In-app notifications persisted",
    ["type"]
)

marketplace_emails_total = Counter(
    "marketplace_emails_total",
    "Outbound emails by delivery status",
    ["status"] # 'sent', 'failed', 'skipped', 'dropped'
)
