"""Order repository interface.

Extends ``IRepository[Order]`` with the status advance every use case goes
through and the optional compare-and-set update the payment reconciler uses
to make concurrent webhook deliveries safe.

The Service Layer depends exclusively on this contract (DIP).
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Dict, Optional

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.orders.models import Order

# Fields the engine looks orders up by: the public id and the two payment ids.
LOOKUP_FIELDS = frozenset({"order_id", "payment_invoice_id", "payment_payment_id"})


class IOrderRepository(IRepository["Order"]):
    """Repository contract for the Order aggregate root.

    ``id`` arguments are the human-shareable ``order_id``.  Implementations
    that cannot update conditionally leave ``supports_conditional_update``
    false; callers then fall back to a plain ``update`` and accept that two
    concurrent settlements may both notify.
    """

    @abstractmethod
    def create(self, fields: Dict[str, Any]) -> Order:
        """Create an order; ``order_id`` is generated by the store."""

    @abstractmethod
    def get_by_id(self, id: str) -> Optional[Order]:
        """Retrieve an order by its ``order_id``."""

    @abstractmethod
    def get_by_field(self, field_name: str, value: Any) -> Optional[Order]:
        """Retrieve an order by one of ``LOOKUP_FIELDS``; empty values match nothing."""

    @abstractmethod
    def update(self, id: str, fields: Dict[str, Any]) -> Order:
        """Write only ``fields`` (plus ``updated_at``) and return the fresh order."""

    def update_unless_paid(self, id: str, fields: Dict[str, Any]) -> bool:
        """Apply ``fields`` only while the order is not paid.

        Returns ``False`` when the condition failed (the order was settled
        concurrently).  Only available when ``supports_conditional_update``.
        """
        raise NotImplementedError(
            f"{type(self).__name__} does not support conditional updates."
        )

    @abstractmethod
    def advance_status(self, id: str, status: str) -> bool:
        """Move the order forward to ``status`` as one conditional write.

        Returns ``False`` when the order is missing or its stored status is
        already equal or later, which includes a concurrent settlement.
        """
