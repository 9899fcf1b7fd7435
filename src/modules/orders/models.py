"""Order model: the aggregate root of a locker pickup order.

Business rules implemented:
- ``order_id`` is a human-shareable identifier generated once on first save
  (format ``ORD-YYYYMMDD-XXXXXX``) and never reassigned.
- ``status`` moves forward only (see ``modules.orders.lifecycle``);
  unknown legacy values are read as ``pending``.
- ``paid_at`` is set if and only if ``status == paid``.
- ``payment`` holds the merged provider metadata; ``payment_invoice_id`` and
  ``payment_payment_id`` mirror its ids as indexed secondary lookup keys.
- OTP credentials live on the order: one live credential at a time, cleared
  together with setting ``otp_verified_at``.
"""

from __future__ import annotations

import secrets
from decimal import Decimal
from typing import Any

from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

from modules.core.models import BaseModel
from modules.orders import lifecycle
from modules.orders.constants import (
    EXPEDITED_KEYWORDS,
    ORDER_ID_MAX_RETRIES,
    TERMINAL_STATES,
    OrderStatus,
)

_MONEY = {
    "max_digits": 10,
    "decimal_places": 2,
    "default": Decimal("0.00"),
    "validators": [MinValueValidator(Decimal("0.00"))],
}


class Order(BaseModel):
    """Locker pickup order.

    The UUIDv7 ``id`` is internal; every API, webhook and staff lookup uses
    ``order_id``.
    """

    order_id: models.CharField = models.CharField(
        max_length=32, unique=True, editable=False
    )
    status: models.CharField = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.PENDING,
    )

    # Product / hub snapshot
    product_id: models.CharField = models.CharField(max_length=100)
    product_name: models.CharField = models.CharField(max_length=255)
    hub_id: models.CharField = models.CharField(max_length=100)
    hub_name: models.CharField = models.CharField(max_length=255)
    hub_postcode: models.CharField = models.CharField(max_length=16, blank=True, default="")
    notes: models.TextField = models.TextField(blank=True, default="")

    # Pricing (GBP)
    base_price_gbp: models.DecimalField = models.DecimalField(**_MONEY)
    price_gbp: models.DecimalField = models.DecimalField(**_MONEY)
    pickup_surcharge_gbp: models.DecimalField = models.DecimalField(**_MONEY)
    pickup_option: models.CharField = models.CharField(max_length=100, blank=True, default="")

    # Customer
    customer_name: models.CharField = models.CharField(max_length=255)
    customer_phone: models.CharField = models.CharField(max_length=32, blank=True, default="")
    customer_email: models.EmailField = models.EmailField(blank=True, default="")

    # OTP
    otp_code: models.CharField = models.CharField(max_length=6, blank=True, default="")
    otp_token: models.CharField = models.CharField(max_length=64, blank=True, default="")
    otp_expires_at: models.DateTimeField = models.DateTimeField(null=True, blank=True)
    otp_verified_at: models.DateTimeField = models.DateTimeField(null=True, blank=True)

    # Payment
    payment: models.JSONField = models.JSONField(null=True, blank=True, default=None)
    payment_invoice_id: models.CharField = models.CharField(
        max_length=100, blank=True, default="", db_index=True
    )
    payment_payment_id: models.CharField = models.CharField(
        max_length=100, blank=True, default="", db_index=True
    )
    paid_at: models.DateTimeField = models.DateTimeField(null=True, blank=True)

    # Collection details (set by staff)
    tracking_number: models.CharField = models.CharField(max_length=100, blank=True, default="")
    collection_code: models.CharField = models.CharField(max_length=100, blank=True, default="")

    class Meta:
        db_table = "orders"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="orders_status_idx"),
        ]

    # ------------------------------------------------------------------
    # State Machine helpers
    # ------------------------------------------------------------------

    @property
    def lifecycle_status(self) -> str:
        """``status`` coerced onto the canonical set."""
        return lifecycle.coerce_status(self.status)

    @property
    def is_terminal(self) -> bool:
        return self.lifecycle_status in TERMINAL_STATES

    @property
    def is_paid(self) -> bool:
        return self.lifecycle_status == OrderStatus.PAID

    def can_advance_to(self, new_status: str) -> bool:
        return lifecycle.can_advance(self.status, new_status)

    @property
    def is_expedited(self) -> bool:
        """Same-day / next-day pickups are routed to the fast staff feed."""
        option = (self.pickup_option or "").lower()
        return any(keyword in option for keyword in EXPEDITED_KEYWORDS)

    # ------------------------------------------------------------------
    # Order id generation
    # ------------------------------------------------------------------

    @staticmethod
    def generate_order_id() -> str:
        """Generate a human-readable order id: ``ORD-YYYYMMDD-XXXXXX``."""
        now = timezone.now()
        suffix = secrets.token_hex(3).upper()
        return f"ORD-{now:%Y%m%d}-{suffix}"

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self, *args: Any, **kwargs: Any) -> None:
        if not self.order_id:
            for _ in range(ORDER_ID_MAX_RETRIES):
                candidate = self.generate_order_id()
                if not Order.objects.filter(order_id=candidate).exists():
                    self.order_id = candidate
                    break
            else:
                raise RuntimeError(
                    f"Failed to generate unique order_id after "
                    f"{ORDER_ID_MAX_RETRIES} attempts"
                )
        super().save(*args, **kwargs)

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    def __str__(self) -> str:
        return f"{self.order_id} ({self.status})"
