"""Invoice service layer (Use Cases).

Business rules enforced:
- No invoice for a ``paid`` order or a non-positive total.
- At most one live invoice per order, returned as a conflict instead of
  creating a second one.  An invoice a payment has started on stays live
  whatever its age; an untouched one expires after ``INVOICE_TTL_MINUTES``.
- A replaced invoice is kept under ``previous_invoices`` and the payment
  id lookup column is never cleared.  The order moves to (at least)
  ``invoiced``.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, Dict, Optional

import structlog
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from modules.orders import lifecycle
from modules.orders.constants import OrderStatus
from modules.orders.events import InvoiceCreated
from modules.orders.exceptions import (
    InvalidOrderAmount,
    InvoiceConflict,
    OrderAlreadyPaid,
    OrderNotFound,
)
from modules.payments.constants import (
    CLOSED_PAYMENT_STATUSES,
    INVOICE_CREATED_STATUS,
    NOWPAYMENTS,
)
from modules.payments.dtos import CreateInvoiceDTO, InvoiceDTO

if TYPE_CHECKING:
    from modules.core.config import ProviderConfig
    from modules.orders.models import Order
    from modules.orders.repositories.interfaces import IOrderRepository
    from modules.payments.gateways import NowPaymentsInvoiceGateway
    from shared.domain.bus import IEventBus

logger = structlog.get_logger(__name__)


class InvoiceService:
    """Receives collaborators via constructor injection (DIP)."""

    def __init__(
        self,
        order_repository: IOrderRepository,
        gateway: NowPaymentsInvoiceGateway,
        config: ProviderConfig,
        event_bus: IEventBus,
    ) -> None:
        self._order_repo = order_repository
        self._gateway = gateway
        self._config = config
        self._event_bus = event_bus

    def create_invoice(self, dto: CreateInvoiceDTO) -> InvoiceDTO:
        """Create a provider invoice for the order's GBP total.

        Raises:
            OrderNotFound: order does not exist.
            OrderAlreadyPaid: order is settled (also when it settles while
                the invoice is being created).
            InvalidOrderAmount: total is not strictly positive.
            InvoiceConflict: a live invoice already exists.
            InvoiceProviderError: the provider call failed.
        """
        order = self._order_repo.get_by_id(dto.order_id)
        if not order:
            raise OrderNotFound(f"Order {dto.order_id} not found.")

        log = logger.bind(order_id=order.order_id, network=dto.network)
        if order.is_paid:
            raise OrderAlreadyPaid(f"Order {order.order_id} is already paid.")
        if not order.price_gbp or order.price_gbp <= 0:
            raise InvalidOrderAmount("Order amount invalid.")

        now = timezone.now()
        live = self._live_invoice(order, now)
        if live is not None:
            log.info("invoice.conflict", invoice_id=live.get("invoice_id"))
            raise InvoiceConflict(
                "An unpaid invoice already exists for this order.",
                invoice=InvoiceDTO.from_payment(live).as_response(),
            )

        invoice = self._gateway.create_invoice(order.order_id, order.price_gbp, dto.pay_currency)
        stamp = now.isoformat()
        payment: Dict[str, Any] = {
            "provider": NOWPAYMENTS,
            "network": dto.network,
            "pay_currency": invoice.pay_currency,
            "invoice_id": invoice.invoice_id,
            "invoice_url": invoice.invoice_url,
            "price_amount": invoice.price_amount,
            "price_currency": invoice.price_currency,
            "provider_status": INVOICE_CREATED_STATUS,
            "created_at": stamp,
            "updated_at": stamp,
        }
        previous = dict(order.payment or {})
        if previous.get("invoice_id"):
            history = previous.pop("previous_invoices", [])
            payment["previous_invoices"] = [*history, previous]
        fields: Dict[str, Any] = {
            "payment": payment,
            "payment_invoice_id": invoice.invoice_id,
        }
        transition = lifecycle.advance(order.status, OrderStatus.INVOICED)
        if transition.changed:
            fields["status"] = transition.new

        if self._order_repo.supports_conditional_update:
            if not self._order_repo.update_unless_paid(order.order_id, fields):
                log.warning("invoice.order_paid_concurrently", invoice_id=invoice.invoice_id)
                raise OrderAlreadyPaid(f"Order {order.order_id} is already paid.")
        else:
            self._order_repo.update(order.order_id, fields)

        log.info("invoice.created", invoice_id=invoice.invoice_id, status=transition.new)
        self._event_bus.publish(
            InvoiceCreated(
                aggregate_id=order.order_id,
                pay_url=invoice.invoice_url,
                network=dto.network,
            )
        )
        return InvoiceDTO.from_payment(payment)

    def _live_invoice(self, order: Order, now: datetime) -> Optional[Dict[str, Any]]:
        """The current invoice while a payment may still arrive for it."""
        payment = order.payment or {}
        if not payment.get("invoice_id"):
            return None
        provider_status = str(payment.get("provider_status") or "").lower()
        if provider_status in CLOSED_PAYMENT_STATUSES:
            return None
        if payment.get("payment_id") or provider_status not in ("", INVOICE_CREATED_STATUS):
            return payment
        created_at = parse_datetime(str(payment.get("created_at") or ""))
        if created_at is None:
            return None
        if timezone.is_naive(created_at):
            created_at = timezone.make_aware(created_at)
        if now - created_at >= timedelta(minutes=self._config.invoice_ttl_minutes):
            return None
        return payment
