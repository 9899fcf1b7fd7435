"""Order API views.

Exposes ``OrderService`` and ``OtpService`` via HTTP using DRF.
Domain exceptions are caught and translated into their mapped HTTP
status codes; the view never swallows generic exceptions (those reach
``api_exception_handler``).
"""

from __future__ import annotations

from pydantic import ValidationError as PydanticValidationError
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny, IsAdminUser
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.throttling import BaseThrottle
from rest_framework.views import APIView
from rest_framework.viewsets import GenericViewSet

from modules.core.config import get_provider_config
from modules.core.exceptions import error_response, validation_error_response
from modules.notifications.gateways import SendGridEmailGateway, TwilioSmsGateway
from modules.orders.dtos import CollectionDetailsDTO, CreateOrderDTO, RequestOtpDTO
from modules.orders.exceptions import (
    ContactChannelMissing,
    OrderAlreadyPaid,
    OrderNotFound,
    OtpDeliveryFailed,
    OtpExpired,
    OtpMismatch,
    OtpNotIssued,
)
from modules.orders.models import Order
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.serializers import (
    CollectionDetailsSerializer,
    CreateOrderSerializer,
    OrderSerializer,
    RequestOtpSerializer,
    VerifyLinkSerializer,
    VerifyOtpSerializer,
)
from modules.orders.services import OrderService, OtpService
from shared.infrastructure.bus import event_bus

ORDER_ID_PATTERN = r"[A-Za-z0-9_-]+"


def build_services() -> tuple[OrderService, OtpService]:
    """Wire the services with the Django repository and configured gateways."""
    config = get_provider_config()
    repository = OrderDjangoRepository()
    email_gateway = SendGridEmailGateway(config)
    otp_service = OtpService(
        order_repository=repository,
        config=config,
        email_gateway=email_gateway,
        sms_gateway=TwilioSmsGateway(config),
        event_bus=event_bus,
    )
    order_service = OrderService(
        order_repository=repository,
        otp_service=otp_service,
        config=config,
        email_gateway=email_gateway,
        event_bus=event_bus,
    )
    return order_service, otp_service


def _verification_body(result) -> dict:
    if result.already_verified:
        return {"ok": True, "orderId": result.order_id, "alreadyVerified": True}
    return {"ok": True, "orderId": result.order_id, "verifiedAt": result.verified_at}


class OrderViewSet(GenericViewSet):
    """ViewSet for the public order flow.

    Orders are addressed by their human ``order_id``.  Does **not** extend
    ``ModelViewSet``; all ORM access goes through the service/repository
    layer.  No listing endpoint is exposed.
    """

    queryset = Order.objects.none()
    lookup_field = "order_id"
    lookup_value_regex = ORDER_ID_PATTERN
    permission_classes = [AllowAny]
    authentication_classes: list = []

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service, self._otp_service = build_services()

    def get_throttles(self) -> list[BaseThrottle]:
        """Per-action throttling scopes."""
        throttle_scope: str | None
        if self.action == "create":
            throttle_scope = "order_creation"
        elif self.action in {"request_otp", "verify_otp", "verify_link"}:
            throttle_scope = "otp"
        else:
            throttle_scope = None
        self.throttle_scope = throttle_scope
        return super().get_throttles()

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create(self, request: Request) -> Response:
        """POST /api/v1/orders/

        Returns 201 with the new ``orderId`` and, when configured, the
        one-time bank transfer instructions.
        """
        create_serializer = CreateOrderSerializer(data=request.data)
        create_serializer.is_valid(raise_exception=True)

        try:
            dto = CreateOrderDTO(**create_serializer.validated_data)
        except PydanticValidationError as exc:
            return validation_error_response(exc)

        try:
            result = self._service.create_order(dto)
        except ContactChannelMissing as exc:
            return error_response(exc)

        body = {
            "orderId": result.order_id,
            "status": result.status,
            "otpDelivered": result.otp_delivered,
        }
        if result.bank_details:
            body["bankDetails"] = result.bank_details
        return Response(body, status=status.HTTP_201_CREATED)

    # ------------------------------------------------------------------
    # Retrieve
    # ------------------------------------------------------------------

    def retrieve(self, request: Request, order_id: str | None = None) -> Response:
        """GET /api/v1/orders/{order_id}/"""
        try:
            order = self._service.get_order(order_id or "")
        except OrderNotFound as exc:
            return error_response(exc)
        return Response(OrderSerializer(order).data)

    # ------------------------------------------------------------------
    # OTP
    # ------------------------------------------------------------------

    @action(detail=True, methods=["post"], url_path="otp")
    def request_otp(self, request: Request, order_id: str | None = None) -> Response:
        """POST /api/v1/orders/{order_id}/otp/

        Issues a fresh credential; ``phone``/``email`` override the stored
        contact.  Answers 502 when the SMS/email provider fails.
        """
        serializer = RequestOtpSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        dto = RequestOtpDTO(order_id=order_id or "", **serializer.validated_data)

        try:
            issued = self._otp_service.request_otp(dto)
        except (OrderNotFound, OrderAlreadyPaid, ContactChannelMissing, OtpDeliveryFailed) as exc:
            return error_response(exc)

        return Response(
            {
                "ok": True,
                "expiresAt": issued.expires_at,
                "maskedContact": issued.masked_contact,
                "channel": issued.channel,
            }
        )

    @action(detail=True, methods=["post"], url_path="otp/verify")
    def verify_otp(self, request: Request, order_id: str | None = None) -> Response:
        """POST /api/v1/orders/{order_id}/otp/verify/"""
        serializer = VerifyOtpSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            result = self._otp_service.verify_code(
                order_id or "", serializer.validated_data["code"]
            )
        except (OrderNotFound, OtpNotIssued, OtpExpired, OtpMismatch) as exc:
            return error_response(exc)
        return Response(_verification_body(result))

    @action(detail=False, methods=["get"], url_path="verify-link")
    def verify_link(self, request: Request) -> Response:
        """GET /api/v1/orders/verify-link/?orderId=...&token=..."""
        serializer = VerifyLinkSerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            result = self._otp_service.verify_link(data["order_id"], data["token"])
        except (OrderNotFound, OtpNotIssued, OtpExpired, OtpMismatch) as exc:
            return error_response(exc)
        return Response(_verification_body(result))


class AdminOrderView(APIView):
    """PATCH /api/v1/admin/orders/{order_id}/

    Staff-only (JWT, ``is_staff``) update of the tracking number and
    collection code, optionally emailing the customer.
    """

    permission_classes = [IsAdminUser]

    def patch(self, request: Request, order_id: str) -> Response:
        serializer = CollectionDetailsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        dto = CollectionDetailsDTO(order_id=order_id, **serializer.validated_data)

        service, _ = build_services()
        try:
            result = service.update_collection_details(dto)
        except OrderNotFound as exc:
            return error_response(exc)

        return Response({"ok": True, "orderId": result.order_id, "emailSent": result.email_sent})
