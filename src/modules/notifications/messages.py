"""Plain message bodies for staff chats and customer email/SMS.

Staff chat messages use Telegram's HTML parse mode, so every value coming
from the customer is escaped.
"""

from __future__ import annotations

from html import escape

from modules.orders.constants import STATUS_LABELS

_HEADLINES = {
    "order_created": "🆕 New order",
    "otp_verified": "✅ OTP verified for",
    "invoice_created": "💳 Invoice created for",
    "payment_settled": "✅ Payment received for",
}


def _pickup_line(order) -> str:
    if not order.pickup_option:
        return ""
    line = f"\nPickup: {escape(order.pickup_option)}"
    if order.pickup_surcharge_gbp:
        line += f" (surcharge £{order.pickup_surcharge_gbp})"
    return line


def status_message(order, trigger: str, pay_url: str = "") -> str:
    headline = _HEADLINES.get(trigger, "ℹ️ Update for")
    lines = [
        f"{headline} <b>{escape(order.order_id)}</b>",
        f"Status: {STATUS_LABELS.get(order.lifecycle_status, order.status)}",
        f"Product: {escape(order.product_name)}",
        f"Total: £{order.price_gbp}{_pickup_line(order)}",
        f"Hub: {escape(order.hub_name)} {escape(order.hub_postcode)}".rstrip(),
        f"Name: {escape(order.customer_name)}",
    ]
    payment = order.payment or {}
    if trigger == "invoice_created" and pay_url:
        lines.append(f"Network: {escape(str(payment.get('network', '')))}")
        lines.append(f"Link: {escape(pay_url)}")
    if trigger == "payment_settled" and payment.get("amount_requested"):
        lines.append(f"Pay: {payment['amount_requested']} {escape(str(payment.get('pay_currency', '')))}")
    return "\n".join(lines)


def payment_ops_message(order) -> str:
    payment = order.payment or {}
    lines = [
        status_message(order, "payment_settled"),
        f"Email: {escape(order.customer_email or 'N/A')}",
        f"Phone: {escape(order.customer_phone or 'N/A')}",
    ]
    if payment.get("transaction_id"):
        lines.append(f"Tx: {escape(str(payment['transaction_id']))}")
    return "\n".join(lines)


def otp_sms(code: str, expiry_minutes: int) -> str:
    return f"Your Green Hub verification code is {code}. It expires in {expiry_minutes} minutes."


def otp_code_email(order, code: str, expiry_minutes: int) -> tuple[str, str]:
    subject = f"Your Green Hub verification code ({order.order_id})"
    body = (
        f"Hi {order.customer_name or 'there'},\n\n"
        f"Your verification code for order {order.order_id} is {code}.\n"
        f"It expires in {expiry_minutes} minutes.\n"
    )
    return subject, body


def otp_link_email(order, link: str, expiry_minutes: int) -> tuple[str, str]:
    subject = f"Confirm your Green Hub order {order.order_id}"
    body = (
        f"Hi {order.customer_name or 'there'},\n\n"
        f"Please confirm your order {order.order_id} by opening this link:\n{link}\n\n"
        f"The link expires in {expiry_minutes} minutes.\n"
    )
    return subject, body


def collection_ready_email(order) -> tuple[str, str]:
    subject = f"Your Green Hub order {order.order_id}"
    body = (
        f"Hi {order.customer_name or 'Customer'},\n\n"
        f"Your order {order.order_id} has been updated.\n"
        f"Tracking number: {order.tracking_number or 'N/A'}\n"
        f"Password / collection code: {order.collection_code or 'N/A'}\n\n"
        "Please retain this information for collection.\n"
        "Thanks, Green Hub\n"
    )
    return subject, body
