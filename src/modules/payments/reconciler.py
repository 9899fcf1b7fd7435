"""Idempotent payment reconciliation.

Applies one ``PaymentEvent`` to the order it belongs to:

1. Resolve the order by ``order_id``, then invoice id, then payment id.
2. A ``paid`` order is left untouched (duplicate / late delivery).
3. Merge the event into ``order.payment``: present fields overwrite, absent
   ones are kept; ``transaction_id`` is only written by a settled event.
4. A settled event also sets ``status=paid`` and ``paid_at``.
5. Everything is written in one partial update.  When the repository can
   update conditionally the write is guarded by ``status != paid`` and a
   lost race is reported as ``already_paid``.

``OrderPaid`` is published only by the delivery that actually settled the
order.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, Optional

import structlog
from django.utils import timezone

from modules.orders.constants import OrderStatus
from modules.orders.events import OrderPaid
from modules.orders.exceptions import OrderNotFound

if TYPE_CHECKING:
    from modules.orders.models import Order
    from modules.orders.repositories.interfaces import IOrderRepository
    from modules.payments.webhooks import PaymentEvent
    from shared.domain.bus import IEventBus

logger = structlog.get_logger(__name__)

SETTLED = "settled"
RECORDED = "recorded"
ALREADY_PAID = "already_paid"

# Ids are written once and then kept, so later lookups keep resolving.
_STABLE_KEYS = ("invoice_id", "payment_id")


@dataclass(frozen=True)
class ReconcileResult:
    order_id: str
    outcome: str

    def as_dict(self) -> Dict[str, str]:
        return {"orderId": self.order_id, "outcome": self.outcome}


def merge_payment(
    existing: Optional[Dict[str, Any]], event: PaymentEvent, now: datetime
) -> Dict[str, Any]:
    merged = dict(existing or {})
    incoming = {
        "provider": event.provider,
        "invoice_id": event.invoice_id,
        "payment_id": event.payment_id,
        "pay_currency": event.pay_currency,
        "amount_requested": event.pay_amount,
        "amount_received": event.actually_paid,
        "price_amount": event.price_amount,
        "price_currency": event.price_currency,
        "provider_status": event.provider_status or None,
    }
    for key, value in incoming.items():
        if value is None:
            continue
        if key in _STABLE_KEYS and merged.get(key):
            continue
        merged[key] = value

    if event.is_settled and event.tx_id:
        merged["transaction_id"] = event.tx_id

    stamp = now.isoformat()
    merged.setdefault("created_at", stamp)
    merged["updated_at"] = stamp
    return merged


class PaymentReconciler:
    def __init__(self, order_repository: IOrderRepository, event_bus: IEventBus) -> None:
        self._order_repo = order_repository
        self._event_bus = event_bus

    def reconcile(self, event: PaymentEvent) -> ReconcileResult:
        """Raises ``OrderNotFound`` when no lookup key resolves an order."""
        order = self._resolve(event)
        log = logger.bind(
            order_id=order.order_id,
            provider=event.provider,
            provider_status=event.provider_status,
        )

        if order.is_paid:
            log.info("payment.already_paid")
            return ReconcileResult(order.order_id, ALREADY_PAID)

        now = timezone.now()
        payment = merge_payment(order.payment, event, now)
        fields: Dict[str, Any] = {"payment": payment}
        if payment.get("invoice_id"):
            fields["payment_invoice_id"] = payment["invoice_id"]
        if payment.get("payment_id"):
            fields["payment_payment_id"] = payment["payment_id"]
        if event.is_settled:
            fields["status"] = OrderStatus.PAID
            fields["paid_at"] = now

        if self._order_repo.supports_conditional_update:
            if not self._order_repo.update_unless_paid(order.order_id, fields):
                log.info("payment.settled_concurrently")
                return ReconcileResult(order.order_id, ALREADY_PAID)
        else:
            self._order_repo.update(order.order_id, fields)

        if not event.is_settled:
            log.info("payment.recorded")
            return ReconcileResult(order.order_id, RECORDED)

        log.info("payment.settled", transaction_id=payment.get("transaction_id"))
        self._event_bus.publish(OrderPaid(aggregate_id=order.order_id))
        return ReconcileResult(order.order_id, SETTLED)

    def _resolve(self, event: PaymentEvent) -> Order:
        lookups = (
            ("order_id", event.order_id),
            ("payment_invoice_id", event.invoice_id),
            ("payment_payment_id", event.payment_id),
        )
        for field_name, value in lookups:
            if not value:
                continue
            order = self._order_repo.get_by_field(field_name, value)
            if order is not None:
                return order

        logger.warning(
            "payment.order_not_found",
            order_id=event.order_id,
            invoice_id=event.invoice_id,
            payment_id=event.payment_id,
        )
        raise OrderNotFound("Order not found.")
