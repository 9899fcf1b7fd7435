"""Order service layer (Use Cases).

Orchestrates order creation, OTP issuance/verification and the staff
collection update.  Every write goes through the repository as a partial
update; domain events are published only after the write has landed.

Business rules enforced:
- Status never moves backwards: every advance is a conditional repository
  write (``advance_status``), so a concurrent settlement always wins.
- A new order immediately gets an OTP challenge; if it cannot be delivered
  the order stays ``pending`` and creation still succeeds.
- An explicit OTP request fails when delivery fails (the customer cannot
  proceed without the credential).
- Verification succeeds once; later checks report ``already_verified``
  and publish nothing.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Tuple
from urllib.parse import urlencode

import structlog
from django.utils import timezone

from modules.core.exceptions import DomainError, UpstreamError
from modules.notifications import messages
from modules.orders import otp
from modules.orders.constants import OrderStatus
from modules.orders.contact import mask_email, mask_phone, normalize_phone
from modules.orders.dtos import (
    CollectionDetailsDTO,
    CollectionUpdatedDTO,
    CreateOrderDTO,
    OrderCreatedDTO,
    OtpCheckDTO,
    OtpIssuedDTO,
    RequestOtpDTO,
)
from modules.orders.events import OrderCreated, OtpVerified
from modules.orders.exceptions import (
    ContactChannelMissing,
    OrderAlreadyPaid,
    OrderNotFound,
    OtpDeliveryFailed,
)

if TYPE_CHECKING:
    from modules.core.config import ProviderConfig
    from modules.notifications.gateways import SendGridEmailGateway, TwilioSmsGateway
    from modules.orders.models import Order
    from modules.orders.repositories.interfaces import IOrderRepository
    from shared.domain.bus import IEventBus

logger = structlog.get_logger(__name__)

SMS = "sms"
EMAIL = "email"


def _get_order(repository: IOrderRepository, order_id: str) -> Order:
    order = repository.get_by_id(order_id)
    if not order:
        raise OrderNotFound(f"Order {order_id} not found.")
    return order


class OtpService:
    """Issues, delivers and checks one-time verification credentials.

    Receives the repository, provider config, customer gateways and event
    bus via constructor injection (DIP).
    """

    def __init__(
        self,
        order_repository: IOrderRepository,
        config: ProviderConfig,
        email_gateway: SendGridEmailGateway,
        sms_gateway: TwilioSmsGateway,
        event_bus: IEventBus,
    ) -> None:
        self._order_repo = order_repository
        self._config = config
        self._email = email_gateway
        self._sms = sms_gateway
        self._event_bus = event_bus

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def request_otp(self, dto: RequestOtpDTO) -> OtpIssuedDTO:
        """Issue a fresh credential and deliver it.

        Raises:
            OrderNotFound: order does not exist.
            OrderAlreadyPaid: the order is settled.
            ContactChannelMissing: no usable phone/email for the OTP mode.
            OtpDeliveryFailed: the SMS/email provider failed.
        """
        order = _get_order(self._order_repo, dto.order_id)
        if order.is_terminal:
            raise OrderAlreadyPaid(f"Order {order.order_id} is already paid.")
        return self.send_challenge(order, phone=dto.phone, email=dto.email)

    def send_challenge(self, order: Order, phone: str = "", email: str = "") -> OtpIssuedDTO:
        """Issue + persist + deliver; advance to ``otp_pending`` on delivery."""
        channel, destination = self._pick_channel(order, phone, email)
        mode = self._config.otp_mode
        log = logger.bind(order_id=order.order_id, channel=channel, mode=mode)

        credential = otp.issue(mode, timezone.now(), self._config.otp_expiry_minutes)
        self._order_repo.update(order.order_id, credential.as_fields())
        log.info("otp.issued", expires_at=credential.expires_at.isoformat())

        try:
            self._deliver(order, channel, destination, credential)
        except UpstreamError as exc:
            log.warning("otp.delivery_failed", error=str(exc))
            raise OtpDeliveryFailed("Could not deliver the verification code.") from exc

        advanced = False
        if order.can_advance_to(OrderStatus.OTP_PENDING):
            advanced = self._order_repo.advance_status(order.order_id, OrderStatus.OTP_PENDING)
        log.info("otp.delivered", advanced=advanced)

        masked = mask_phone(destination) if channel == SMS else mask_email(destination)
        return OtpIssuedDTO(
            expires_at=credential.expires_at,
            masked_contact=masked,
            channel=channel,
        )

    def verify_code(self, order_id: str, code: str) -> OtpCheckDTO:
        return self._verify(order_id, otp.CODE, code)

    def verify_link(self, order_id: str, token: str) -> OtpCheckDTO:
        return self._verify(order_id, otp.LINK, token)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _verify(self, order_id: str, mode: str, supplied: str) -> OtpCheckDTO:
        """Raises ``OrderNotFound`` or one of the ``otp.verify`` errors."""
        order = _get_order(self._order_repo, order_id)
        log = logger.bind(order_id=order_id, mode=mode)

        try:
            outcome = otp.verify(order, mode, supplied, timezone.now())
        except DomainError as exc:
            log.info("otp.rejected", reason=type(exc).__name__)
            raise

        if outcome.already_verified:
            log.info("otp.already_verified")
            return OtpCheckDTO(
                order_id=order_id,
                verified_at=outcome.verified_at,
                already_verified=True,
            )

        self._order_repo.update(order_id, outcome.as_fields())
        advanced = False
        if order.can_advance_to(OrderStatus.VERIFIED):
            advanced = self._order_repo.advance_status(order_id, OrderStatus.VERIFIED)
        log.info("otp.verified", advanced=advanced)

        self._event_bus.publish(OtpVerified(aggregate_id=order_id))
        return OtpCheckDTO(order_id=order_id, verified_at=outcome.verified_at)

    def _pick_channel(self, order: Order, phone: str, email: str) -> Tuple[str, str]:
        email = (email or order.customer_email or "").strip()
        if self._config.otp_mode == otp.LINK:
            if not email:
                raise ContactChannelMissing("An email address is required for link verification.")
            return EMAIL, email

        number = normalize_phone(phone or order.customer_phone, self._config.default_country_code)
        if number:
            return SMS, number
        if email:
            return EMAIL, email
        raise ContactChannelMissing("A phone number or email address is required for OTP.")

    def verification_link(self, order_id: str, token: str) -> str:
        query = urlencode({"orderId": order_id, "token": token})
        return f"{self._config.site_url}/verify.html?{query}"

    def _deliver(
        self, order: Order, channel: str, destination: str, credential: otp.IssuedCredential
    ) -> None:
        minutes = self._config.otp_expiry_minutes
        if channel == SMS:
            self._sms.send(destination, messages.otp_sms(credential.value, minutes))
            return
        if credential.mode == otp.LINK:
            link = self.verification_link(order.order_id, credential.value)
            subject, body = messages.otp_link_email(order, link, minutes)
        else:
            subject, body = messages.otp_code_email(order, credential.value, minutes)
        self._email.send(destination, subject, body)


class OrderService:
    """Application service for Order use-cases.

    Receives collaborators via constructor injection (DIP).
    """

    def __init__(
        self,
        order_repository: IOrderRepository,
        otp_service: OtpService,
        config: ProviderConfig,
        email_gateway: SendGridEmailGateway,
        event_bus: IEventBus,
    ) -> None:
        self._order_repo = order_repository
        self._otp = otp_service
        self._config = config
        self._email = email_gateway
        self._event_bus = event_bus

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def create_order(self, dto: CreateOrderDTO) -> OrderCreatedDTO:
        """Create a ``pending`` order and send its first OTP challenge.

        Steps:
        1. Normalise the phone and persist the order.
        2. Issue and try to deliver an OTP; failure is logged and the
           order stays ``pending``.
        3. Publish ``OrderCreated``.

        The result carries the status the order was created with; whether
        the challenge went out is reported by ``otp_delivered``.

        Raises:
            ContactChannelMissing: link verification is configured and the
                order has no email address.
        """
        if self._config.otp_mode == otp.LINK and not dto.customer_email:
            raise ContactChannelMissing("An email address is required to verify this order.")

        phone = normalize_phone(dto.customer_phone, self._config.default_country_code)
        order = self._order_repo.create(dto.to_fields(phone))
        log = logger.bind(order_id=order.order_id)
        log.info(
            "order.created",
            price_gbp=str(order.price_gbp),
            pickup_option=order.pickup_option,
            expedited=order.is_expedited,
        )

        otp_delivered = False
        try:
            self._otp.send_challenge(order)
        except (ContactChannelMissing, OtpDeliveryFailed) as exc:
            log.warning("order.otp_not_delivered", error=str(exc))
        else:
            otp_delivered = True

        self._event_bus.publish(OrderCreated(aggregate_id=order.order_id))
        return OrderCreatedDTO(
            order_id=order.order_id,
            status=order.status,
            otp_delivered=otp_delivered,
            bank_details=self._config.bank_details,
        )

    def update_collection_details(self, dto: CollectionDetailsDTO) -> CollectionUpdatedDTO:
        """Staff update of tracking number / collection code.

        Only those two fields are written.  The collection-ready email is
        best effort: a failure is logged and reported as ``email_sent=False``.

        Raises:
            OrderNotFound: order does not exist.
        """
        order = _get_order(self._order_repo, dto.order_id)
        log = logger.bind(order_id=order.order_id)

        fields = dto.changed_fields()
        if fields:
            order = self._order_repo.update(order.order_id, fields)
            log.info("order.collection_details_updated", fields=sorted(fields))

        email_sent = False
        if dto.send_email:
            if not order.customer_email:
                log.info("order.collection_email_skipped", reason="no_email")
            else:
                subject, body = messages.collection_ready_email(order)
                try:
                    self._email.send(order.customer_email, subject, body)
                except UpstreamError as exc:
                    log.warning("order.collection_email_failed", error=str(exc))
                else:
                    email_sent = True

        return CollectionUpdatedDTO(order_id=order.order_id, email_sent=email_sent)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_order(self, order_id: str) -> Order:
        """Retrieve a single order by ``order_id``.

        Raises:
            OrderNotFound: if the order does not exist.
        """
        return _get_order(self._order_repo, order_id)
