"""Domain events for the Orders bounded context.

Each one is published after the corresponding order write has been
persisted; ``aggregate_id`` carries the ``order_id``.
"""

from __future__ import annotations

from dataclasses import dataclass

from shared.domain.events import DomainEvent


@dataclass(frozen=True)
class OrderCreated(DomainEvent):
    """Raised when an order is created."""


@dataclass(frozen=True)
class OtpVerified(DomainEvent):
    """Raised the first time an order's contact channel is verified."""


@dataclass(frozen=True)
class InvoiceCreated(DomainEvent):
    """Raised when a payment invoice is attached to an order."""

    pay_url: str = ""
    network: str = ""


@dataclass(frozen=True)
class OrderPaid(DomainEvent):
    """Raised when a provider reports final settlement for an order."""
