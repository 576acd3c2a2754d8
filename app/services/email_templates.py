"""HTML bodies for notification emails, rendered with Jinja2 autoescaping."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any

from jinja2 import DictLoader, Environment, StrictUndefined, select_autoescape

from app.core.settings import settings

_LAYOUT = """\
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <h2 style="color: {% block color %}#333{% endblock %};">{% block heading %}{{ title }}{% endblock %}</h2>
  {% if name %}<p>Hello {{ name }},</p>{% endif %}
  {% block content %}{% endblock %}
  <p>Best regards,<br>{{ brand }} Team</p>
</div>
"""

_TEMPLATES = {
    "layout.html": _LAYOUT,
    "otp_code.html": """\
{% extends "layout.html" %}
{% block heading %}Login Verification Code{% endblock %}
{% block content %}
  <p>Use the code below to finish signing in:</p>
  <p style="font-size: 28px; font-weight: bold; letter-spacing: 6px;">{{ code }}</p>
  <p>This code is valid for {{ ttl_minutes }} minutes. Do not share it with anyone.</p>
{% endblock %}
""",
    "login_alert.html": """\
{% extends "layout.html" %}
{% block color %}#28a745{% endblock %}
{% block content %}
  <p>{{ message }}</p>
  <div style="background-color: #d4edda; padding: 15px; border-radius: 5px; margin: 15px 0;">
    <p><strong>Time:</strong> {{ metadata.get("timestamp", "-") }}</p>
    <p><strong>IP Address:</strong> {{ metadata.get("ip_address") or "-" }}</p>
    <p><strong>Location:</strong> {{ metadata.get("location") or "Unknown" }}</p>
    <p><strong>Device:</strong> {{ metadata.get("user_agent") or "Unknown" }}</p>
  </div>
  <p>If this wasn't you, please contact our support team immediately and change your password.</p>
{% endblock %}
""",
    "transaction_alert.html": """\
{% extends "layout.html" %}
{% block content %}
  <p>{{ message }}</p>
  <div style="background-color: #f8f9fa; padding: 15px; border-radius: 5px; margin: 15px 0;">
    <p><strong>Reference:</strong> {{ metadata.get("reference", "-") }}</p>
    <p><strong>Amount:</strong> GHS {{ metadata.get("amount")|money }}</p>
    <p><strong>Type:</strong> {{ metadata.get("transaction_type", "-") }}</p>
  </div>
  <p>If you have any questions about this transaction, please contact our support team.</p>
{% endblock %}
""",
    "low_balance_alert.html": """\
{% extends "layout.html" %}
{% block color %}#dc3545{% endblock %}
{% block content %}
  <p>{{ message }}</p>
  <div style="background-color: #fff3cd; padding: 15px; border-radius: 5px; margin: 15px 0;">
    <p><strong>Current Balance:</strong> GHS {{ metadata.get("current_balance")|money }}</p>
    <p><strong>Warning Threshold:</strong> GHS {{ metadata.get("threshold")|money }}</p>
  </div>
  <p>Please consider adding funds to maintain service operations.</p>
{% endblock %}
""",
    "generic.html": """\
{% extends "layout.html" %}
{% block content %}
  <p>{{ message }}</p>
{% endblock %}
""",
}

_TEMPLATE_BY_EVENT = {
    "login": "login_alert.html",
    "transaction": "transaction_alert.html",
    "high_value_transaction": "transaction_alert.html",
    "low_balance": "low_balance_alert.html",
}

def format_money(value: Any) -> str:
    """Two-decimal amount; metadata is caller supplied, so anything else is shown as given."""
    if value is None or isinstance(value, bool):
        return "-"
    try:
        return f"{Decimal(str(value)):.2f}"
    except (InvalidOperation, ValueError):
        return str(value)


_env = Environment(
    loader=DictLoader(_TEMPLATES),
    autoescape=select_autoescape(default=True),
    undefined=StrictUndefined,
)
_env.filters["money"] = format_money


def render(template_name: str, **context: Any) -> str:
    context.setdefault("name", None)
    context.setdefault("brand", settings.brand_name)
    return _env.get_template(template_name).render(**context)


def template_for_event(event_type: str) -> str:
    return _TEMPLATE_BY_EVENT.get(event_type, "generic.html")
