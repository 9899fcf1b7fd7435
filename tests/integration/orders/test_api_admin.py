"""Integration tests for the staff collection-details endpoint.

Covers:
- Authentication: anonymous 401, non-staff 403, staff JWT accepted.
- Partial update of tracking number / collection code.
- Optional collection email, best effort.
"""

from __future__ import annotations

from unittest.mock import patch

import pytest

from django.contrib.auth import get_user_model

from rest_framework.test import APIClient

from modules.core.exceptions import UpstreamError

pytestmark = pytest.mark.integration

User = get_user_model()

EMAIL_SEND = "modules.notifications.gateways.SendGridEmailGateway.send"


def _url(order_id):
    return f"/api/v1/admin/orders/{order_id}/"


@pytest.fixture()
def staff_client():
    client = APIClient()
    user = User.objects.create_user(username="staff", password="testpass123", is_staff=True)
    client.force_authenticate(user=user)
    return client


class TestAdminAuth:
    def test_anonymous_is_401(self, api_client, make_order):
        order = make_order()

        response = api_client.patch(_url(order.order_id), {"trackingNumber": "T"}, format="json")

        assert response.status_code == 401

    def test_non_staff_is_403(self, make_order):
        client = APIClient()
        client.force_authenticate(User.objects.create_user(username="cust", password="pw123456"))

        response = client.patch(_url(make_order().order_id), {}, format="json")

        assert response.status_code == 403

    def test_staff_jwt(self, api_client, make_order):
        User.objects.create_user(username="ops", password="testpass123", is_staff=True)
        token = api_client.post(
            "/api/v1/auth/token/", {"username": "ops", "password": "testpass123"}, format="json"
        ).json()["access"]
        order = make_order()

        api_client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")
        response = api_client.patch(_url(order.order_id), {"trackingNumber": "T1"}, format="json")

        assert response.status_code == 200


class TestCollectionDetails:
    def test_updates_given_fields_only(self, staff_client, make_order):
        order = make_order(collection_code="OLD")

        response = staff_client.patch(
            _url(order.order_id), {"trackingNumber": "TRK-1"}, format="json"
        )

        assert response.status_code == 200
        assert response.json() == {"ok": True, "orderId": order.order_id, "emailSent": False}
        order.refresh_from_db()
        assert order.tracking_number == "TRK-1"
        assert order.collection_code == "OLD"

    def test_password_sets_collection_code(self, staff_client, make_order):
        order = make_order()

        staff_client.patch(_url(order.order_id), {"password": "4321"}, format="json")

        order.refresh_from_db()
        assert order.collection_code == "4321"

    def test_sends_email(self, staff_client, make_order):
        order = make_order()

        with patch(EMAIL_SEND) as send:
            response = staff_client.patch(
                _url(order.order_id),
                {"trackingNumber": "TRK-1", "password": "4321", "sendEmail": True},
                format="json",
            )

        assert response.json()["emailSent"] is True
        to, _, body = send.call_args.args
        assert to == "jane.doe@example.com"
        assert "TRK-1" in body
        assert "4321" in body

    def test_email_failure_still_saves(self, staff_client, make_order):
        order = make_order()

        with patch(EMAIL_SEND, side_effect=UpstreamError("sendgrid down")):
            response = staff_client.patch(
                _url(order.order_id), {"trackingNumber": "TRK-1", "sendEmail": True}, format="json"
            )

        assert response.status_code == 200
        assert response.json()["emailSent"] is False
        order.refresh_from_db()
        assert order.tracking_number == "TRK-1"

    def test_does_not_change_status(self, staff_client, make_order):
        order = make_order()

        staff_client.patch(_url(order.order_id), {"trackingNumber": "TRK-1"}, format="json")

        order.refresh_from_db()
        assert order.status == "pending"

    def test_unknown_order_is_404(self, staff_client):
        response = staff_client.patch(_url("ORD-20990101-FFFFFF"), {}, format="json")

        assert response.status_code == 404
