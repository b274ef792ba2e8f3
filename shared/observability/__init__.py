from .setup import setup_observability, configure_logging
from .metrics import (
    marketplace_order_transitions_total,
    marketplace_checkout_duration_seconds,
    marketplace_checkout_excluded_lines_total,
    marketplace_settlements_total,
    marketplace_notifications_created_total,
    marketplace_emails_total
)
