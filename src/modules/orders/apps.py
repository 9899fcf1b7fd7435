from django.apps import AppConfig


class OrdersConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "modules.orders"
    label = "orders"

    def ready(self) -> None:
        from modules.orders.events import (
            InvoiceCreated,
            OrderCreated,
            OrderPaid,
            OtpVerified,
        )
        from modules.orders.handlers import (
            invoice_created_handler,
            order_created_handler,
            order_paid_handler,
            otp_verified_handler,
        )
        from shared.infrastructure.bus import event_bus

        event_bus.subscribe(OrderCreated, order_created_handler)
        event_bus.subscribe(OtpVerified, otp_verified_handler)
        event_bus.subscribe(InvoiceCreated, invoice_created_handler)
        event_bus.subscribe(OrderPaid, order_paid_handler)
