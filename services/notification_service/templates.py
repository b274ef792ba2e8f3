"""HTML bodies for transactional emails, rendered with Jinja2."""
from jinja2 import DictLoader, Environment, StrictUndefined, select_autoescape

_LAYOUT = """<!DOCTYPE html>
<html>
<body style="font-family: Arial, sans-serif; background: #f8f9fa; padding: 24px;">
  <div style="max-width: 600px; margin: 0 auto; background: #ffffff; border-radius: 8px; padding: 32px;">
    <h1 style="color: #1f2937; font-size: 22px;">{% block heading %}{% endblock %}</h1>
    <p>Hi {{ recipient_name }},</p>
    {% block body %}{% endblock %}
    <p style="margin-top: 32px;">
      <a href="{{ site_url }}{% block link %}/orders{% endblock %}"
         style="background: #16a34a; color: #ffffff; padding: 12px 20px; border-radius: 6px; text-decoration: none;">
        View order #{{ order_number }}
      </a>
    </p>
    <p style="color: #6c757d; font-size: 12px; margin-top: 32px;">
      Every purchase supports our charity partners. Thank you.
    </p>
  </div>
</body>
</html>
"""

_TEMPLATES = {
    "layout.html": _LAYOUT,
    "payment_confirmed.html": """{% extends "layout.html" %}
{% block heading %}Order confirmed{% endblock %}
{% block body %}
<p>Your payment for order <strong>#{{ order_number }}</strong> was received.</p>
<p>Total paid: <strong>${{ total_amount }}</strong></p>
<p>We'll email you again as soon as the seller ships your items.</p>
{% endblock %}""",
    "new_order.html": """{% extends "layout.html" %}
{% block heading %}New order received{% endblock %}
{% block link %}/seller/orders{% endblock %}
{% block body %}
<p>You sold {{ item_count }} item(s) in order <strong>#{{ order_number }}</strong>
worth <strong>${{ amount }}</strong>.</p>
<p>Please ship the items and add the tracking number to the order.</p>
{% endblock %}""",
    "order_shipped.html": """{% extends "layout.html" %}
{% block heading %}Your order is on its way{% endblock %}
{% block body %}
<p>Order <strong>#{{ order_number }}</strong> has been shipped via {{ shipping_carrier }}.</p>
<p>Tracking number: <strong>{{ tracking_number }}</strong></p>
<p>Once it arrives, please confirm the delivery from your orders page.</p>
{% endblock %}""",
    "order_delivered.html": """{% extends "layout.html" %}
{% block heading %}Delivery confirmed{% endblock %}
{% block link %}/seller/orders{% endblock %}
{% block body %}
<p>The buyer confirmed delivery of order <strong>#{{ order_number }}</strong>.</p>
<p>Your payment will be transferred soon.</p>
{% endblock %}""",
    "payment_transferred.html": """{% extends "layout.html" %}
{% block heading %}Payment transferred{% endblock %}
{% block link %}/seller/orders{% endblock %}
{% block body %}
<table style="width: 100%; border-collapse: collapse;">
  <tr><td>Order total</td><td style="text-align: right;">${{ total_amount }}</td></tr>
  <tr><td>Platform commission ({{ commission_rate }}%)</td>
      <td style="text-align: right; color: #dc3545;">-${{ commission }}</td></tr>
  <tr><td><strong>Transferred to you</strong></td>
      <td style="text-align: right;"><strong>${{ amount }}</strong></td></tr>
</table>
{% if transfer_notes %}<p>Notes: {{ transfer_notes }}</p>{% endif %}
{% endblock %}""",
    "payment_failed.html": """{% extends "layout.html" %}
{% block heading %}Payment failed{% endblock %}
{% block body %}
<p>We couldn't process the payment for order <strong>#{{ order_number }}</strong>.</p>
<p>Reason: {{ reason }}</p>
{% endblock %}""",
    "order_cancelled.html": """{% extends "layout.html" %}
{% block heading %}Order cancelled{% endblock %}
{% block body %}
<p>Order <strong>#{{ order_number }}</strong> has been cancelled.</p>
{% endblock %}""",
}

SUBJECTS = {
    "payment_confirmed": "Order Confirmation - Order #{order_number}",
    "new_order": "New Order Received - Order #{order_number}",
    "order_shipped": "Your Order Has Shipped - Order #{order_number}",
    "order_delivered": "Order Delivered - Order #{order_number}",
    "payment_transferred": "Payment Transferred - Order #{order_number}",
    "payment_failed": "Payment Failed - Order #{order_number}",
    "order_cancelled": "Order Cancelled - Order #{order_number}",
}

_env = Environment(
    loader=DictLoader(_TEMPLATES),
    autoescape=select_autoescape(["html"]),
    undefined=StrictUndefined,
)


def render_email(event_type: str, context: dict) -> tuple:
    """Returns (subject, html) for an event type. Raises KeyError for unknown types."""
    subject = SUBJECTS[event_type].format(**context)
    html = _env.get_template(f"{event_type}.html").render(**context)
    return subject, html
