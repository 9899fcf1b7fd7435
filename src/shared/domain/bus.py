"""Event bus contracts.

Services depend on ``IEventBus`` only, so tests can hand them a recording
double instead of the process-wide ``InMemoryEventBus``.
"""

from __future__ import annotations

from typing import Protocol, Type, TypeVar

from shared.domain.events import DomainEvent

E = TypeVar("E", bound=DomainEvent, contravariant=True)


class IEventHandler(Protocol[E]):
    """Reacts to one committed domain event."""

    def handle(self, event: E) -> None: ...


class IEventBus(Protocol):
    """Routes a published event to every handler subscribed to its class."""

    def publish(self, event: DomainEvent) -> None: ...

    def subscribe(self, event_class: Type[DomainEvent], handler: IEventHandler) -> None: ...
