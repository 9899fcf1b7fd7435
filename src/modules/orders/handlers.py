"""Event handlers for Orders domain events.

Each handler reloads the order (the event only carries its ``order_id``),
applies the notification policy for its trigger and enqueues the result.
"""

from __future__ import annotations

from typing import Optional

import structlog

from modules.notifications.dispatch import dispatch
from modules.notifications.policy import Trigger, plan_notifications
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.repositories.interfaces import IOrderRepository
from shared.domain.events import DomainEvent

logger = structlog.get_logger(__name__)


class OrderNotificationHandler:
    def __init__(
        self,
        trigger: Trigger,
        order_repository: Optional[IOrderRepository] = None,
    ) -> None:
        self.trigger = trigger
        self._order_repo = order_repository or OrderDjangoRepository()

    def handle(self, event: DomainEvent) -> None:
        order = self._order_repo.get_by_id(event.aggregate_id)
        if order is None:
            logger.warning(
                "notification.order_missing",
                order_id=event.aggregate_id,
                trigger=self.trigger.value,
            )
            return

        notifications = plan_notifications(
            order, self.trigger, pay_url=getattr(event, "pay_url", "")
        )
        dispatch(notifications, order_id=order.order_id)


order_created_handler = OrderNotificationHandler(Trigger.ORDER_CREATED)
otp_verified_handler = OrderNotificationHandler(Trigger.OTP_VERIFIED)
invoice_created_handler = OrderNotificationHandler(Trigger.INVOICE_CREATED)
order_paid_handler = OrderNotificationHandler(Trigger.PAYMENT_SETTLED)
