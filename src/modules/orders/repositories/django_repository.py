"""Django ORM implementation of the Order repository.

Satisfies ``IOrderRepository`` using Django's QuerySet API.  Partial
updates are issued as a single ``UPDATE ... SET`` on the named columns so
concurrent writers touching different fields do not overwrite each other.
``update_unless_paid`` adds ``status != paid`` to the ``WHERE`` clause,
which makes settlement a compare-and-set; ``advance_status`` excludes every
status at or beyond the target the same way, so a slow writer can never
move a settled order backwards.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import structlog
from django.utils import timezone

from modules.orders.constants import STATUS_RANK, OrderStatus
from modules.orders.models import Order
from modules.orders.repositories.interfaces import LOOKUP_FIELDS, IOrderRepository

logger = structlog.get_logger(__name__)


class OrderDjangoRepository(IOrderRepository):
    """Concrete Order repository backed by Django ORM."""

    supports_conditional_update = True

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create(self, fields: Dict[str, Any]) -> Order:
        order = Order(**fields)
        order.save()
        logger.info("order.persisted", order_id=order.order_id)
        return order

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get_by_id(self, id: str) -> Optional[Order]:
        return self.get_by_field("order_id", id)

    def get_by_field(self, field_name: str, value: Any) -> Optional[Order]:
        if field_name not in LOOKUP_FIELDS:
            raise ValueError(f"Orders cannot be looked up by {field_name!r}.")
        if value in (None, ""):
            return None
        return Order.objects.filter(**{field_name: str(value)}).first()

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    def update(self, id: str, fields: Dict[str, Any]) -> Order:
        """Partial update; raises ``Order.DoesNotExist`` for unknown ids."""
        updated = Order.objects.filter(order_id=id).update(
            **fields, updated_at=timezone.now()
        )
        if not updated:
            raise Order.DoesNotExist(f"Order {id} not found.")
        logger.info("order.updated", order_id=id, fields=sorted(fields))
        return Order.objects.get(order_id=id)

    def update_unless_paid(self, id: str, fields: Dict[str, Any]) -> bool:
        updated = (
            Order.objects.filter(order_id=id)
            .exclude(status=OrderStatus.PAID)
            .update(**fields, updated_at=timezone.now())
        )
        logger.info(
            "order.conditional_update",
            order_id=id,
            fields=sorted(fields),
            applied=bool(updated),
        )
        return bool(updated)

    def advance_status(self, id: str, status: str) -> bool:
        reached = [s for s, rank in STATUS_RANK.items() if rank >= STATUS_RANK[status]]
        updated = (
            Order.objects.filter(order_id=id)
            .exclude(status__in=reached)
            .update(status=status, updated_at=timezone.now())
        )
        logger.info("order.status_advanced", order_id=id, status=status, applied=bool(updated))
        return bool(updated)
