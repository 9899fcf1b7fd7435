"""Order DRF serializers for API input/output.

The serializer operates at the Interface layer (API Views) and speaks the
camelCase field names of the public API; ``source`` maps them onto the
snake_case names of the DTOs.  Business logic lives in the Service Layer,
which receives Pydantic DTOs from ``dtos.py``.
"""

from __future__ import annotations

from rest_framework import serializers

from modules.orders.contact import mask_email, mask_phone
from modules.orders.models import Order

# ---------------------------------------------------------------------------
# Input Serializers
# ---------------------------------------------------------------------------


class CreateOrderSerializer(serializers.Serializer):
    """Validates the order creation request payload.

    Amounts are accepted as numbers or text and parsed by ``CreateOrderDTO``.
    """

    productId = serializers.CharField(source="product_id", max_length=100)
    productName = serializers.CharField(source="product_name", max_length=255)
    hubId = serializers.CharField(source="hub_id", max_length=100)
    hubName = serializers.CharField(source="hub_name", max_length=255)
    hubPostcode = serializers.CharField(
        source="hub_postcode", required=False, default="", allow_blank=True, max_length=16
    )
    customerName = serializers.CharField(source="customer_name", max_length=255)
    customerPhone = serializers.CharField(
        source="customer_phone", required=False, default="", allow_blank=True, max_length=32
    )
    customerEmail = serializers.EmailField(
        source="customer_email", required=False, default="", allow_blank=True
    )
    priceGbp = serializers.CharField(source="price_gbp")
    basePriceGbp = serializers.CharField(
        source="base_price_gbp", required=False, allow_null=True, default=None
    )
    pickupSurchargeGbp = serializers.CharField(
        source="pickup_surcharge_gbp", required=False, allow_null=True, default="0"
    )
    pickupOption = serializers.CharField(
        source="pickup_option", required=False, default="", allow_blank=True, max_length=100
    )
    notes = serializers.CharField(required=False, default="", allow_blank=True)


class RequestOtpSerializer(serializers.Serializer):
    """Optional contact override for the OTP delivery."""

    phone = serializers.CharField(required=False, default="", allow_blank=True, max_length=32)
    email = serializers.EmailField(required=False, default="", allow_blank=True)


class VerifyOtpSerializer(serializers.Serializer):
    code = serializers.CharField(max_length=12)


class VerifyLinkSerializer(serializers.Serializer):
    orderId = serializers.CharField(source="order_id", max_length=32)
    token = serializers.CharField(max_length=128)


class CollectionDetailsSerializer(serializers.Serializer):
    """Staff update; omitted fields are left unchanged."""

    trackingNumber = serializers.CharField(
        source="tracking_number", required=False, allow_blank=True, max_length=100
    )
    password = serializers.CharField(
        source="collection_code", required=False, allow_blank=True, max_length=100
    )
    sendEmail = serializers.BooleanField(source="send_email", required=False, default=False)


# ---------------------------------------------------------------------------
# Output Serializers (Read)
# ---------------------------------------------------------------------------


class OrderSerializer(serializers.ModelSerializer):
    """Public read view of an order.

    Never exposes OTP credentials or the collection code; contact details
    are masked.
    """

    orderId = serializers.CharField(source="order_id", read_only=True)
    status = serializers.CharField(source="lifecycle_status", read_only=True)
    productId = serializers.CharField(source="product_id", read_only=True)
    productName = serializers.CharField(source="product_name", read_only=True)
    hubId = serializers.CharField(source="hub_id", read_only=True)
    hubName = serializers.CharField(source="hub_name", read_only=True)
    hubPostcode = serializers.CharField(source="hub_postcode", read_only=True)
    basePriceGbp = serializers.DecimalField(
        source="base_price_gbp", max_digits=10, decimal_places=2, read_only=True
    )
    priceGbp = serializers.DecimalField(
        source="price_gbp", max_digits=10, decimal_places=2, read_only=True
    )
    pickupSurchargeGbp = serializers.DecimalField(
        source="pickup_surcharge_gbp", max_digits=10, decimal_places=2, read_only=True
    )
    pickupOption = serializers.CharField(source="pickup_option", read_only=True)
    isExpedited = serializers.BooleanField(source="is_expedited", read_only=True)
    customerName = serializers.CharField(source="customer_name", read_only=True)
    customerPhone = serializers.SerializerMethodField()
    customerEmail = serializers.SerializerMethodField()
    otpVerifiedAt = serializers.DateTimeField(source="otp_verified_at", read_only=True)
    payment = serializers.JSONField(read_only=True)
    trackingNumber = serializers.CharField(source="tracking_number", read_only=True)
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)
    updatedAt = serializers.DateTimeField(source="updated_at", read_only=True)
    paidAt = serializers.DateTimeField(source="paid_at", read_only=True)

    class Meta:
        model = Order
        fields = [
            "orderId",
            "status",
            "productId",
            "productName",
            "hubId",
            "hubName",
            "hubPostcode",
            "basePriceGbp",
            "priceGbp",
            "pickupSurchargeGbp",
            "pickupOption",
            "isExpedited",
            "customerName",
            "customerPhone",
            "customerEmail",
            "otpVerifiedAt",
            "payment",
            "trackingNumber",
            "createdAt",
            "updatedAt",
            "paidAt",
            "notes",
        ]
        read_only_fields = fields

    def get_customerPhone(self, obj: Order) -> str:
        return mask_phone(obj.customer_phone) if obj.customer_phone else ""

    def get_customerEmail(self, obj: Order) -> str:
        return mask_email(obj.customer_email) if obj.customer_email else ""
