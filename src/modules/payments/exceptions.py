"""Payment domain exceptions."""

from __future__ import annotations

from modules.core.exceptions import AuthenticationError, UpstreamError, ValidationFailed


class InvalidPayload(ValidationFailed):
    """The webhook body is not a JSON object."""


class UnsupportedPayload(ValidationFailed):
    """The webhook body matches no known provider payload shape."""


class WebhookSignatureInvalid(AuthenticationError):
    """The webhook signature header is missing or does not match the body."""


class InvoiceProviderError(UpstreamError):
    """The invoice provider failed or answered without an invoice."""
