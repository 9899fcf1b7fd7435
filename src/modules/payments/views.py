"""Payment API views: invoice creation and the provider webhook."""

from __future__ import annotations

import structlog
from pydantic import ValidationError as PydanticValidationError
from rest_framework import serializers, status
from rest_framework.permissions import AllowAny
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from modules.core.config import get_provider_config
from modules.core.exceptions import error_response, validation_error_response
from modules.orders.exceptions import (
    InvalidOrderAmount,
    InvoiceConflict,
    OrderAlreadyPaid,
    OrderNotFound,
)
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.payments import webhooks
from modules.payments.dtos import CreateInvoiceDTO
from modules.payments.exceptions import (
    InvalidPayload,
    InvoiceProviderError,
    UnsupportedPayload,
    WebhookSignatureInvalid,
)
from modules.payments.gateways import NowPaymentsInvoiceGateway
from modules.payments.reconciler import PaymentReconciler
from modules.payments.services import InvoiceService
from shared.infrastructure.bus import event_bus

logger = structlog.get_logger(__name__)


class CreateInvoiceSerializer(serializers.Serializer):
    network = serializers.CharField(max_length=16)


class CreateInvoiceView(APIView):
    """POST /api/v1/orders/{order_id}/payment/"""

    permission_classes = [AllowAny]
    authentication_classes: list = []
    throttle_scope = "order_creation"

    def post(self, request: Request, order_id: str) -> Response:
        serializer = CreateInvoiceSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            dto = CreateInvoiceDTO(order_id=order_id, **serializer.validated_data)
        except PydanticValidationError as exc:
            return validation_error_response(exc)

        config = get_provider_config()
        service = InvoiceService(
            order_repository=OrderDjangoRepository(),
            gateway=NowPaymentsInvoiceGateway(config),
            config=config,
            event_bus=event_bus,
        )
        try:
            invoice = service.create_invoice(dto)
        except InvoiceConflict as exc:
            return Response(
                {"detail": str(exc), "invoice": exc.invoice},
                status=exc.http_status,
            )
        except (OrderNotFound, OrderAlreadyPaid, InvalidOrderAmount, InvoiceProviderError) as exc:
            return error_response(exc)

        return Response(invoice.as_response(), status=status.HTTP_201_CREATED)


class PaymentWebhookView(APIView):
    """POST /api/v1/payments/webhook/

    Authenticated by the provider's HMAC signature over the raw body, which
    is checked before any order is read.  Answers 404 for unknown orders so
    the provider retries.
    """

    permission_classes = [AllowAny]
    authentication_classes: list = []
    throttle_scope = "payment_webhook"

    def post(self, request: Request) -> Response:
        raw_body = request.body
        try:
            event = webhooks.normalize(raw_body, request.headers, get_provider_config())
        except (InvalidPayload, UnsupportedPayload, WebhookSignatureInvalid) as exc:
            return error_response(exc)

        reconciler = PaymentReconciler(OrderDjangoRepository(), event_bus)
        try:
            result = reconciler.reconcile(event)
        except OrderNotFound as exc:
            return error_response(exc)

        return Response({"ok": True, "result": result.as_dict()})
