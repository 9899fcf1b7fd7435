"""Order domain constants.

Defines the status choices and the total order the lifecycle state
machine enforces: ``pending < otp_pending < verified < invoiced < paid``.
``otp_pending`` and ``invoiced`` are optional waypoints, so transitions
are validated by rank rather than by an adjacency map.
"""

from django.db import models


class OrderStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    OTP_PENDING = "otp_pending", "Awaiting verification"
    VERIFIED = "verified", "Verified"
    INVOICED = "invoiced", "Invoiced"
    PAID = "paid", "Paid"


STATUS_RANK: dict[str, int] = {
    OrderStatus.PENDING: 0,
    OrderStatus.OTP_PENDING: 1,
    OrderStatus.VERIFIED: 2,
    OrderStatus.INVOICED: 3,
    OrderStatus.PAID: 4,
}

TERMINAL_STATES: set[str] = {OrderStatus.PAID}

STATUS_LABELS: dict[str, str] = {
    OrderStatus.PENDING: "Awaiting verification",
    OrderStatus.OTP_PENDING: "Verification code sent",
    OrderStatus.VERIFIED: "Ready for payment",
    OrderStatus.INVOICED: "Awaiting payment",
    OrderStatus.PAID: "Paid",
}

EXPEDITED_KEYWORDS = ("same", "next")

ORDER_ID_MAX_RETRIES = 5

PRICE_CURRENCY = "GBP"
