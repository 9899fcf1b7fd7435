"""Order domain exceptions.

Raised by the Service Layer when business rules are violated.
Each one extends a class of the shared taxonomy, which carries the HTTP
status the API layer (Views) answers with.
"""

from __future__ import annotations

from typing import Any, Dict

from modules.core.exceptions import (
    Conflict,
    NotFound,
    UpstreamError,
    ValidationFailed,
)


class OrderNotFound(NotFound):
    """No order matches the given identifier."""


class OrderAlreadyPaid(Conflict):
    """The order is settled; no further invoices can be created for it."""


class InvalidOrderAmount(ValidationFailed):
    """The order total is missing or not strictly positive."""


class ContactChannelMissing(ValidationFailed):
    """No phone or email is available to deliver a verification credential."""


class OtpNotIssued(NotFound):
    """No verification credential was ever issued for this order."""


class OtpExpired(ValidationFailed):
    """The verification credential exists but its lifetime has passed."""


class OtpMismatch(ValidationFailed):
    """The supplied code or token does not match the stored credential."""


class OtpDeliveryFailed(UpstreamError):
    """The verification credential could not be delivered to the customer."""


class InvoiceConflict(Conflict):
    """An unexpired, unpaid invoice already exists for the order."""

    def __init__(self, message: str, invoice: Dict[str, Any]) -> None:
        super().__init__(message)
        self.invoice = invoice
