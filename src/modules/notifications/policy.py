"""Notification policy: which staff channels hear about an order transition.

``plan_notifications`` is a pure function of the post-transition order:

- the primary ``orders`` channel always gets a message;
- expedited pickups (same-day / next-day) are copied to the ``fast`` channel;
- payment settlement also goes to the ``payments`` channel, with the
  customer's contact details, so finance/ops watch a separate feed.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import List

from modules.notifications import messages


class Channel(str, enum.Enum):
    ORDERS = "orders"
    FAST = "fast"
    PAYMENTS = "payments"


class Trigger(str, enum.Enum):
    ORDER_CREATED = "order_created"
    OTP_VERIFIED = "otp_verified"
    INVOICE_CREATED = "invoice_created"
    PAYMENT_SETTLED = "payment_settled"


@dataclass(frozen=True)
class Notification:
    channel: Channel
    text: str


def plan_notifications(order, trigger: Trigger, pay_url: str = "") -> List[Notification]:
    text = messages.status_message(order, trigger.value, pay_url=pay_url)

    planned = [Notification(Channel.ORDERS, text)]
    if order.is_expedited:
        planned.append(Notification(Channel.FAST, text))
    if trigger is Trigger.PAYMENT_SETTLED:
        planned.append(Notification(Channel.PAYMENTS, messages.payment_ops_message(order)))
    return planned
