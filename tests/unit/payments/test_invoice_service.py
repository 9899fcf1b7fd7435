"""Unit tests for InvoiceService.

Covers:
- Guards: unknown order, paid order, non-positive amount.
- One live invoice per order; expiry after the TTL only for invoices no
  payment has started on; replaced invoices are kept.
- Payment record written, status advanced, InvoiceCreated published.
- Order settling while the invoice is created.
"""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from django.utils import timezone
from freezegun import freeze_time

from modules.orders.constants import OrderStatus
from modules.orders.exceptions import (
    InvalidOrderAmount,
    InvoiceConflict,
    OrderAlreadyPaid,
    OrderNotFound,
)
from modules.orders.models import Order
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.payments.dtos import CreateInvoiceDTO
from modules.payments.exceptions import InvoiceProviderError
from modules.payments.gateways import ProviderInvoice
from modules.payments.reconciler import PaymentReconciler
from modules.payments.services import InvoiceService
from modules.payments.webhooks import PaymentEvent

pytestmark = pytest.mark.unit


def _order(**overrides) -> Order:
    fields = {
        "order_id": "ORD-1",
        "status": OrderStatus.VERIFIED,
        "price_gbp": Decimal("100.00"),
    }
    fields.update(overrides)
    return Order(**fields)


def _live_payment(created_at, **overrides):
    payment = {
        "provider": "nowpayments",
        "invoice_id": "inv-1",
        "invoice_url": "https://nowpayments.io/payment/?iid=inv-1",
        "price_amount": 100.0,
        "price_currency": "GBP",
        "pay_currency": "USDTTRC20",
        "provider_status": "invoice_created",
        "created_at": created_at.isoformat(),
    }
    payment.update(overrides)
    return payment


@pytest.fixture()
def repo():
    repository = MagicMock(name="order_repository")
    repository.supports_conditional_update = True
    repository.get_by_id.return_value = _order()
    repository.update_unless_paid.return_value = True
    return repository


@pytest.fixture()
def gateway():
    invoice_gateway = MagicMock(name="invoice_gateway")
    invoice_gateway.create_invoice.return_value = ProviderInvoice(
        invoice_id="inv-2",
        invoice_url="https://nowpayments.io/payment/?iid=inv-2",
        price_amount=100.0,
        price_currency="GBP",
        pay_currency="USDTTRC20",
    )
    return invoice_gateway


@pytest.fixture()
def service(repo, gateway, provider_config, event_bus):
    return InvoiceService(
        order_repository=repo,
        gateway=gateway,
        config=provider_config,
        event_bus=event_bus,
    )


DTO = CreateInvoiceDTO(order_id="ORD-1", network="trc20")


class TestGuards:
    def test_unknown_order(self, service, repo):
        repo.get_by_id.return_value = None

        with pytest.raises(OrderNotFound):
            service.create_invoice(DTO)

    def test_paid_order(self, service, repo, gateway):
        repo.get_by_id.return_value = _order(status=OrderStatus.PAID)

        with pytest.raises(OrderAlreadyPaid):
            service.create_invoice(DTO)
        gateway.create_invoice.assert_not_called()

    @pytest.mark.parametrize("amount", [Decimal("0.00"), None])
    def test_non_positive_amount(self, service, repo, amount):
        repo.get_by_id.return_value = _order(price_gbp=amount)

        with pytest.raises(InvalidOrderAmount):
            service.create_invoice(DTO)


class TestCreate:
    def test_calls_provider_with_gbp_total(self, service, gateway):
        service.create_invoice(DTO)

        gateway.create_invoice.assert_called_once_with("ORD-1", Decimal("100.00"), "USDTTRC20")

    def test_writes_payment_and_advances(self, service, repo):
        invoice = service.create_invoice(DTO)

        order_id, fields = repo.update_unless_paid.call_args.args
        assert order_id == "ORD-1"
        assert fields["status"] == OrderStatus.INVOICED
        assert fields["payment_invoice_id"] == "inv-2"
        assert fields["payment"]["network"] == "TRC20"
        assert fields["payment"]["provider_status"] == "invoice_created"
        assert invoice.as_response() == {
            "invoiceId": "inv-2",
            "payUrl": "https://nowpayments.io/payment/?iid=inv-2",
            "priceAmount": 100.0,
            "priceCurrency": "GBP",
            "payCurrency": "USDTTRC20",
        }

    def test_publishes_invoice_created(self, service, event_bus):
        service.create_invoice(DTO)

        assert event_bus.names() == ["InvoiceCreated"]
        event = event_bus.events[0]
        assert event.pay_url == "https://nowpayments.io/payment/?iid=inv-2"
        assert event.network == "TRC20"

    def test_pending_order_can_be_invoiced(self, service, repo):
        repo.get_by_id.return_value = _order(status=OrderStatus.PENDING)

        service.create_invoice(DTO)

        assert repo.update_unless_paid.call_args.args[1]["status"] == OrderStatus.INVOICED

    def test_plain_update_without_conditional_support(self, service, repo):
        repo.supports_conditional_update = False

        service.create_invoice(DTO)

        repo.update.assert_called_once()
        repo.update_unless_paid.assert_not_called()

    def test_paid_concurrently(self, service, repo, event_bus):
        repo.update_unless_paid.return_value = False

        with pytest.raises(OrderAlreadyPaid):
            service.create_invoice(DTO)
        assert event_bus.events == []

    def test_provider_failure_writes_nothing(self, service, repo, gateway, event_bus):
        gateway.create_invoice.side_effect = InvoiceProviderError("NOWPayments down")

        with pytest.raises(InvoiceProviderError):
            service.create_invoice(DTO)
        repo.update_unless_paid.assert_not_called()
        assert event_bus.events == []


class TestLiveInvoice:
    @freeze_time("2026-03-01 12:00:00")
    def test_live_invoice_is_a_conflict(self, service, repo, gateway):
        created = timezone.now() - timedelta(minutes=30)
        repo.get_by_id.return_value = _order(
            status=OrderStatus.INVOICED, payment=_live_payment(created)
        )

        with pytest.raises(InvoiceConflict) as excinfo:
            service.create_invoice(DTO)

        assert excinfo.value.invoice["invoiceId"] == "inv-1"
        assert excinfo.value.invoice["payUrl"] == "https://nowpayments.io/payment/?iid=inv-1"
        gateway.create_invoice.assert_not_called()

    @freeze_time("2026-03-01 12:00:00")
    def test_expired_invoice_is_replaced(self, service, repo, gateway):
        created = timezone.now() - timedelta(minutes=60)
        repo.get_by_id.return_value = _order(
            status=OrderStatus.INVOICED, payment=_live_payment(created)
        )

        service.create_invoice(DTO)

        gateway.create_invoice.assert_called_once()
        fields = repo.update_unless_paid.call_args.args[1]
        assert fields["payment"]["invoice_id"] == "inv-2"
        assert fields["payment"]["previous_invoices"][0]["invoice_id"] == "inv-1"
        assert "payment_payment_id" not in fields
        assert "status" not in fields

    @freeze_time("2026-03-01 12:00:00")
    def test_naive_timestamp_is_read_as_utc(self, service, repo):
        created = (timezone.now() - timedelta(minutes=5)).replace(tzinfo=None)
        repo.get_by_id.return_value = _order(payment=_live_payment(created))

        with pytest.raises(InvoiceConflict):
            service.create_invoice(DTO)

    @pytest.mark.parametrize("provider_status", ["waiting", "confirming", "partially_paid", "finished"])
    @freeze_time("2026-03-01 12:00:00")
    def test_payment_in_flight_stays_live_past_the_ttl(
        self, service, repo, gateway, provider_status
    ):
        created = timezone.now() - timedelta(hours=3)
        repo.get_by_id.return_value = _order(
            payment=_live_payment(created, provider_status=provider_status)
        )

        with pytest.raises(InvoiceConflict):
            service.create_invoice(DTO)
        gateway.create_invoice.assert_not_called()

    @freeze_time("2026-03-01 12:00:00")
    def test_recorded_payment_id_stays_live_past_the_ttl(self, service, repo, gateway):
        created = timezone.now() - timedelta(hours=3)
        repo.get_by_id.return_value = _order(
            payment=_live_payment(created, payment_id="P-1"), payment_payment_id="P-1"
        )

        with pytest.raises(InvoiceConflict):
            service.create_invoice(DTO)
        gateway.create_invoice.assert_not_called()

    @pytest.mark.parametrize("provider_status", ["expired", "failed"])
    def test_closed_payment_is_replaced_and_kept(self, service, repo, gateway, provider_status):
        payment = _live_payment(timezone.now(), payment_id="P-1", provider_status=provider_status)
        repo.get_by_id.return_value = _order(payment=payment, payment_payment_id="P-1")

        service.create_invoice(DTO)

        gateway.create_invoice.assert_called_once()
        fields = repo.update_unless_paid.call_args.args[1]
        assert "payment_payment_id" not in fields
        assert fields["payment"]["invoice_id"] == "inv-2"
        assert fields["payment"]["previous_invoices"] == [payment]

    def test_unparseable_timestamp_is_not_live(self, service, repo, gateway):
        payment = _live_payment(timezone.now())
        payment["created_at"] = "yesterday"
        repo.get_by_id.return_value = _order(payment=payment)

        service.create_invoice(DTO)

        gateway.create_invoice.assert_called_once()


class TestInvoiceAfterPaymentStarted:
    """Real repository and reconciler: an in-flight payment keeps its invoice."""

    @pytest.fixture()
    def store(self):
        return OrderDjangoRepository()

    @pytest.fixture()
    def db_service(self, store, gateway, provider_config, event_bus):
        return InvoiceService(
            order_repository=store,
            gateway=gateway,
            config=provider_config,
            event_bus=event_bus,
        )

    def test_late_settlement_still_resolves_by_payment_id(
        self, db_service, store, gateway, make_order, event_bus
    ):
        order = make_order(status=OrderStatus.VERIFIED)
        reconciler = PaymentReconciler(store, event_bus)

        with freeze_time("2026-03-01 12:00:00"):
            db_service.create_invoice(CreateInvoiceDTO(order_id=order.order_id, network="trc20"))
            reconciler.reconcile(
                PaymentEvent(
                    provider="nowpayments",
                    order_id=order.order_id,
                    invoice_id="inv-2",
                    payment_id="P-1",
                    provider_status="confirming",
                )
            )

        with freeze_time("2026-03-01 13:01:00"):
            with pytest.raises(InvoiceConflict):
                db_service.create_invoice(CreateInvoiceDTO(order_id=order.order_id, network="trc20"))

        order.refresh_from_db()
        assert order.payment_payment_id == "P-1"
        assert order.payment["provider_status"] == "confirming"
        assert gateway.create_invoice.call_count == 1

        result = reconciler.reconcile(
            PaymentEvent(provider="nowpayments", payment_id="P-1", provider_status="finished")
        )

        order.refresh_from_db()
        assert result.outcome == "settled"
        assert order.status == OrderStatus.PAID
