"""Payment webhook normaliser.

Two provider payload families are accepted on the same endpoint:

- ``legacy``: camelCase ``{invoiceId, orderId, status, txId}``, signed with
  HMAC-SHA256 in ``X-Signature``.
- ``nowpayments``: NOWPayments IPN ``{payment_id, invoice_id, order_id,
  payment_status, ...}``, signed with HMAC-SHA512 in ``X-Nowpayments-Sig``.

``payload_kind`` picks the family from the body's keys, ``verify_signature``
checks the raw body for that family, ``classify`` validates the body into one
variant of the ``WebhookPayload`` tagged union and ``to_event`` maps either
variant onto the provider-neutral ``PaymentEvent`` the reconciler consumes.
"""

from __future__ import annotations

import hashlib
import hmac
import json
from typing import Annotated, Any, Literal, Mapping, Optional, Union

import structlog
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
)

from modules.core.config import ProviderConfig
from modules.payments.constants import (
    LEGACY,
    LEGACY_SIGNATURE_HEADER,
    NOWPAYMENTS,
    NOWPAYMENTS_SIGNATURE_HEADER,
    SETTLED_STATUSES,
)
from modules.payments.exceptions import (
    InvalidPayload,
    UnsupportedPayload,
    WebhookSignatureInvalid,
)

logger = structlog.get_logger(__name__)


def _blank_to_none(v: Any) -> Any:
    if v is None:
        return None
    if isinstance(v, (int, float)) and not isinstance(v, bool):
        return v
    text = str(v).strip()
    return text or None


class _Payload(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)


class LegacyPayload(_Payload):
    kind: Literal["legacy"] = LEGACY
    invoice_id: Optional[str] = Field(None, alias="invoiceId")
    order_id: Optional[str] = Field(None, alias="orderId")
    status: Optional[str] = None
    tx_id: Optional[str] = Field(None, alias="txId")

    @field_validator("invoice_id", "order_id", "status", "tx_id", mode="before")
    @classmethod
    def text(cls, v: Any) -> Optional[str]:
        v = _blank_to_none(v)
        return None if v is None else str(v)


class NowPaymentsPayload(_Payload):
    kind: Literal["nowpayments"] = NOWPAYMENTS
    payment_id: Optional[str] = None
    invoice_id: Optional[str] = None
    order_id: Optional[str] = None
    payment_status: Optional[str] = None
    pay_currency: Optional[str] = None
    pay_amount: Optional[float] = None
    actually_paid: Optional[float] = None
    price_amount: Optional[float] = None
    price_currency: Optional[str] = None
    txid: Optional[str] = None
    transaction_hash: Optional[str] = None

    @field_validator(
        "payment_id",
        "invoice_id",
        "order_id",
        "payment_status",
        "pay_currency",
        "price_currency",
        "txid",
        "transaction_hash",
        mode="before",
    )
    @classmethod
    def text(cls, v: Any) -> Optional[str]:
        v = _blank_to_none(v)
        return None if v is None else str(v)

    @field_validator("pay_amount", "actually_paid", "price_amount", mode="before")
    @classmethod
    def amount(cls, v: Any) -> Any:
        return _blank_to_none(v)


WebhookPayload = Annotated[
    Union[LegacyPayload, NowPaymentsPayload], Field(discriminator="kind")
]
_payload_adapter: TypeAdapter = TypeAdapter(WebhookPayload)


class PaymentEvent(BaseModel):
    """Provider-neutral view of one webhook delivery."""

    model_config = ConfigDict(frozen=True)

    provider: str
    order_id: Optional[str] = None
    invoice_id: Optional[str] = None
    payment_id: Optional[str] = None
    provider_status: str = ""
    pay_currency: Optional[str] = None
    pay_amount: Optional[float] = None
    actually_paid: Optional[float] = None
    price_amount: Optional[float] = None
    price_currency: Optional[str] = None
    tx_id: Optional[str] = None

    @property
    def is_settled(self) -> bool:
        return self.provider_status.strip().lower() in SETTLED_STATUSES


# ---------------------------------------------------------------------------
# Parsing & classification
# ---------------------------------------------------------------------------


def parse_body(raw_body: bytes) -> dict:
    try:
        data = json.loads(raw_body or b"")
    except (ValueError, UnicodeDecodeError) as exc:
        raise InvalidPayload("Invalid JSON.") from exc
    if not isinstance(data, dict):
        raise InvalidPayload("Webhook body must be a JSON object.")
    return data


def payload_kind(data: Mapping[str, Any]) -> str:
    """Legacy shape wins when both shapes' keys are present."""
    if data.get("invoiceId") or data.get("status"):
        return LEGACY
    if data.get("payment_id") or data.get("order_id"):
        return NOWPAYMENTS
    raise UnsupportedPayload("Unsupported payload.")


def classify(data: Mapping[str, Any]) -> Union[LegacyPayload, NowPaymentsPayload]:
    """Validate ``data`` into the variant its shape selects.

    Raises:
        UnsupportedPayload: neither family's keys are present.
        InvalidPayload: a field has the wrong type.
    """
    kind = payload_kind(data)
    try:
        return _payload_adapter.validate_python({**data, "kind": kind})
    except ValidationError as exc:
        raise InvalidPayload(f"Malformed {kind} payload.") from exc


# ---------------------------------------------------------------------------
# Signatures
# ---------------------------------------------------------------------------


def _signing_params(kind: str, config: ProviderConfig) -> tuple[str, str, Any]:
    if kind == LEGACY:
        return config.legacy_webhook_secret, LEGACY_SIGNATURE_HEADER, hashlib.sha256
    return config.nowpayments_ipn_secret, NOWPAYMENTS_SIGNATURE_HEADER, hashlib.sha512


def sign(raw_body: bytes, secret: str, digestmod: Any) -> str:
    return hmac.new(secret.encode(), raw_body, digestmod).hexdigest()


def verify_signature(
    kind: str,
    raw_body: bytes,
    headers: Mapping[str, str],
    config: ProviderConfig,
) -> None:
    """Check the family's HMAC over the exact raw body.

    An unset secret disables the check for that family (warned at startup).

    Raises:
        WebhookSignatureInvalid: header missing or digest mismatch.
    """
    secret, header, digestmod = _signing_params(kind, config)
    if not secret:
        return

    supplied = (headers.get(header) or "").strip().lower()
    if not supplied:
        raise WebhookSignatureInvalid("Missing signature.")
    expected = sign(raw_body, secret, digestmod)
    if not hmac.compare_digest(expected, supplied):
        raise WebhookSignatureInvalid("Invalid signature.")


# ---------------------------------------------------------------------------
# Normalisation
# ---------------------------------------------------------------------------


def to_event(payload: Union[LegacyPayload, NowPaymentsPayload]) -> PaymentEvent:
    if isinstance(payload, LegacyPayload):
        return PaymentEvent(
            provider=LEGACY,
            order_id=payload.order_id,
            invoice_id=payload.invoice_id,
            provider_status=payload.status or "",
            tx_id=payload.tx_id,
        )
    return PaymentEvent(
        provider=NOWPAYMENTS,
        order_id=payload.order_id,
        invoice_id=payload.invoice_id,
        payment_id=payload.payment_id,
        provider_status=payload.payment_status or "",
        pay_currency=payload.pay_currency,
        pay_amount=payload.pay_amount,
        actually_paid=payload.actually_paid,
        price_amount=payload.price_amount,
        price_currency=payload.price_currency,
        tx_id=payload.txid or payload.transaction_hash,
    )


def normalize(
    raw_body: bytes, headers: Mapping[str, str], config: ProviderConfig
) -> PaymentEvent:
    """Parse, authenticate, validate and normalise one webhook delivery.

    The family is picked from the body's keys alone so the signature is
    checked before any field is validated.
    """
    data = parse_body(raw_body)
    kind = payload_kind(data)
    try:
        verify_signature(kind, raw_body, headers, config)
    except WebhookSignatureInvalid as exc:
        logger.warning("payment.webhook_rejected", kind=kind, reason=str(exc))
        raise
    return to_event(classify(data))
