"""Payment DTOs (Pydantic v2, immutable)."""

from __future__ import annotations

from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, field_validator

from modules.payments.constants import NETWORK_PAY_CURRENCY


class CreateInvoiceDTO(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    order_id: str
    network: str

    @field_validator("network")
    @classmethod
    def network_must_be_supported(cls, v: str) -> str:
        v = v.upper()
        if v not in NETWORK_PAY_CURRENCY:
            raise ValueError(f"Unsupported network {v!r}.")
        return v

    @property
    def pay_currency(self) -> str:
        return NETWORK_PAY_CURRENCY[self.network]


class InvoiceDTO(BaseModel):
    """Invoice as returned to the customer (also the body of a 409)."""

    model_config = ConfigDict(frozen=True)

    invoice_id: str
    pay_url: str
    price_amount: float
    price_currency: str
    pay_currency: str

    @classmethod
    def from_payment(cls, payment: Dict[str, Any]) -> InvoiceDTO:
        return cls(
            invoice_id=str(payment.get("invoice_id", "")),
            pay_url=payment.get("invoice_url", ""),
            price_amount=float(payment.get("price_amount") or 0),
            price_currency=payment.get("price_currency", ""),
            pay_currency=payment.get("pay_currency", ""),
        )

    def as_response(self) -> Dict[str, Any]:
        return {
            "invoiceId": self.invoice_id,
            "payUrl": self.pay_url,
            "priceAmount": self.price_amount,
            "priceCurrency": self.price_currency,
            "payCurrency": self.pay_currency,
        }
