"""Order DTOs for the Service Layer.

Framework-agnostic data transfer objects using Pydantic v2.
These are the contracts between the API layer (DRF Serializers)
and the Service layer.  DTOs are immutable (``frozen=True``).

- ``CreateOrderDTO``: input for order creation.
- ``RequestOtpDTO``: input for (re-)issuing a verification credential.
- ``CollectionDetailsDTO``: input for the staff collection update.
- ``OrderCreatedDTO``, ``OtpIssuedDTO``, ``OtpCheckDTO``,
  ``CollectionUpdatedDTO``: outputs, rendered camelCase by the views.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

_CENT = Decimal("0.01")


def parse_money(value: Any) -> Optional[Decimal]:
    """Parse a GBP amount given as number or text (``"£1,250.00"`` included)."""
    if value is None:
        return None
    if isinstance(value, Decimal):
        amount = value
    else:
        cleaned = "".join(ch for ch in str(value) if ch.isdigit() or ch in ".-")
        if not cleaned:
            return None
        try:
            amount = Decimal(cleaned)
        except InvalidOperation:
            raise ValueError(f"Invalid amount {value!r}.") from None
    if amount < 0:
        raise ValueError("Amounts cannot be negative.")
    return amount.quantize(_CENT)


# ---------------------------------------------------------------------------
# Input DTOs
# ---------------------------------------------------------------------------


class CreateOrderDTO(BaseModel):
    """Immutable DTO for order creation requests.

    Validates:
    - product, hub and customer name are present.
    - amounts are non-negative and the total is not below the base price.
    - at least one contact channel (phone or email) is given.
    """

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    product_id: str
    product_name: str
    hub_id: str
    hub_name: str
    hub_postcode: str = ""
    customer_name: str
    customer_phone: str = ""
    customer_email: str = ""
    price_gbp: Optional[Decimal]
    base_price_gbp: Optional[Decimal] = None
    pickup_surcharge_gbp: Optional[Decimal] = Decimal("0.00")
    pickup_option: str = ""
    notes: str = ""

    @field_validator("product_id", "product_name", "hub_id", "hub_name", "customer_name")
    @classmethod
    def required_text(cls, v: str) -> str:
        if not v:
            raise ValueError("This field is required.")
        return v

    @field_validator("price_gbp", "base_price_gbp", "pickup_surcharge_gbp", mode="before")
    @classmethod
    def money(cls, v: Any) -> Optional[Decimal]:
        return parse_money(v)

    @field_validator("price_gbp")
    @classmethod
    def price_required(cls, v: Optional[Decimal]) -> Decimal:
        if v is None:
            raise ValueError("Total price is required.")
        return v

    @field_validator("pickup_surcharge_gbp")
    @classmethod
    def surcharge_defaults_to_zero(cls, v: Optional[Decimal]) -> Decimal:
        return v if v is not None else Decimal("0.00")

    @model_validator(mode="after")
    def check_totals_and_contact(self):
        if self.base_price_gbp is not None and self.price_gbp < self.base_price_gbp:
            raise ValueError("Total price cannot be lower than the base price.")
        if not (self.customer_phone or self.customer_email):
            raise ValueError("A phone number or an email address is required.")
        return self

    def to_fields(self, phone: str) -> Dict[str, Any]:
        """Model fields for a new order, with ``phone`` already normalised."""
        fields = self.model_dump(exclude={"customer_phone", "base_price_gbp"})
        fields["customer_phone"] = phone
        fields["base_price_gbp"] = (
            self.base_price_gbp if self.base_price_gbp is not None else self.price_gbp
        )
        return fields


class RequestOtpDTO(BaseModel):
    """Immutable DTO for OTP (re-)issue; phone/email override the stored contact."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    order_id: str
    phone: str = ""
    email: str = ""


class CollectionDetailsDTO(BaseModel):
    """Immutable DTO for the staff update of collection details.

    ``None`` means "leave unchanged"; an empty string clears the field.
    """

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    order_id: str
    tracking_number: Optional[str] = None
    collection_code: Optional[str] = None
    send_email: bool = False

    def changed_fields(self) -> Dict[str, str]:
        fields = {}
        if self.tracking_number is not None:
            fields["tracking_number"] = self.tracking_number
        if self.collection_code is not None:
            fields["collection_code"] = self.collection_code
        return fields


# ---------------------------------------------------------------------------
# Output DTOs
# ---------------------------------------------------------------------------


class OrderCreatedDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    order_id: str
    status: str
    otp_delivered: bool
    bank_details: Optional[Dict[str, Any]] = None


class OtpIssuedDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    expires_at: datetime
    masked_contact: str
    channel: str


class OtpCheckDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    order_id: str
    verified_at: datetime
    already_verified: bool = False


class CollectionUpdatedDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    order_id: str
    email_sent: bool
