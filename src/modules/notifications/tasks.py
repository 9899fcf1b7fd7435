"""Celery tasks for staff notifications.

Each message is its own task so channels are delivered independently and
in no particular order.  Failures are logged; there is no retry.
"""

import structlog
from celery import shared_task

from modules.core.config import get_provider_config
from modules.core.exceptions import UpstreamError
from modules.notifications.gateways import TelegramGateway

logger = structlog.get_logger(__name__)


@shared_task(name="notifications.send_channel_message", ignore_result=True)
def send_channel_message(channel: str, text: str) -> bool:
    gateway = TelegramGateway(get_provider_config())
    try:
        gateway.send(channel, text)
    except UpstreamError as exc:
        logger.warning("notification.delivery_failed", channel=channel, error=str(exc))
        return False
    logger.info("notification.delivered", channel=channel)
    return True
