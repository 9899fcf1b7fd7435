"""Payment URL configuration."""

from __future__ import annotations

from django.urls import path

from modules.payments.views import CreateInvoiceView, PaymentWebhookView

urlpatterns = [
    path(
        "orders/<str:order_id>/payment/",
        CreateInvoiceView.as_view(),
        name="order-payment",
    ),
    path("payments/webhook/", PaymentWebhookView.as_view(), name="payment-webhook"),
]
