"""Fire-and-forget dispatch of planned notifications.

By the time this runs the order write is already committed, so nothing
here may fail the request: enqueue errors (e.g. broker down) are logged
and the remaining notifications still go out.
"""

from __future__ import annotations

from typing import Iterable

import structlog

from modules.notifications.policy import Notification
from modules.notifications.tasks import send_channel_message

logger = structlog.get_logger(__name__)


def dispatch(notifications: Iterable[Notification], order_id: str = "") -> int:
    """Enqueue one task per notification; returns how many were enqueued."""
    enqueued = 0
    for notification in notifications:
        channel = notification.channel.value
        try:
            send_channel_message.delay(channel, notification.text)
        except Exception:
            logger.exception("notification.enqueue_failed", channel=channel, order_id=order_id)
            continue
        enqueued += 1
    logger.info("notification.dispatched", order_id=order_id, count=enqueued)
    return enqueued
