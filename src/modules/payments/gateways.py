"""NOWPayments invoice client."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from urllib.parse import urlencode

import structlog

from modules.orders.constants import PRICE_CURRENCY
from modules.payments.exceptions import InvoiceProviderError
from shared.infrastructure.http import HttpGateway

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ProviderInvoice:
    invoice_id: str
    invoice_url: str
    price_amount: float
    price_currency: str
    pay_currency: str


class NowPaymentsInvoiceGateway(HttpGateway):
    """Creates hosted invoices with ``POST {api_url}/invoice``."""

    provider = "nowpayments"
    error_class = InvoiceProviderError

    def create_invoice(
        self, order_id: str, price_amount: Decimal, pay_currency: str
    ) -> ProviderInvoice:
        config = self._config
        if not config.nowpayments_api_key:
            raise InvoiceProviderError("NOWPayments API key missing.")

        query = urlencode({"orderId": order_id})
        response = self._post(
            f"{config.nowpayments_api_url.rstrip('/')}/invoice",
            headers={"x-api-key": config.nowpayments_api_key},
            json={
                "price_amount": float(price_amount),
                "price_currency": PRICE_CURRENCY,
                "pay_currency": pay_currency,
                "order_id": order_id,
                "ipn_callback_url": config.ipn_callback_url,
                "success_url": f"{config.site_url}/payment-success.html?{query}",
                "cancel_url": f"{config.site_url}/payment.html?{query}",
                "is_fee_paid_by_user": True,
            },
        )
        data = self._json(response)
        if not data.get("id") or not data.get("invoice_url"):
            message = data.get("message") or data.get("error") or "no invoice in response"
            raise InvoiceProviderError(f"NOWPayments invoice creation failed: {message}")

        logger.info("invoice.provider_created", order_id=order_id, invoice_id=str(data["id"]))
        return ProviderInvoice(
            invoice_id=str(data["id"]),
            invoice_url=data["invoice_url"],
            price_amount=float(data.get("price_amount") or price_amount),
            price_currency=str(data.get("price_currency") or PRICE_CURRENCY).upper(),
            pay_currency=str(data.get("pay_currency") or pay_currency).upper(),
        )
