import structlog
from django.apps import AppConfig
from django.core.exceptions import ImproperlyConfigured

logger = structlog.get_logger(__name__)


class PaymentsConfig(AppConfig):
    name = "modules.payments"
    label = "payments"

    def ready(self) -> None:
        from modules.core.config import get_provider_config

        config = get_provider_config()
        unsigned = config.unsigned_webhook_families()
        if not unsigned:
            return
        if config.require_webhook_signatures:
            raise ImproperlyConfigured(
                "WEBHOOK_REQUIRE_SIGNATURES is set but no secret is configured "
                f"for: {', '.join(unsigned)}."
            )
        logger.warning("payments.webhook_signature_check_disabled", families=unsigned)
