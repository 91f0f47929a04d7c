import hashlib
import hmac
import json

import pytest

from helpers import USER_HEADERS, order_payload

WEBHOOK_URL = "/api/v1/webhooks/duffel"
SECRET = "whsec_test"


@pytest.fixture
def order(client, duffel_offer):
    response = client.post("/api/v1/flights/create-order", json=order_payload(duffel_offer), headers=USER_HEADERS)
    assert response.status_code == 201
    return response.json()["order"]


def _order_details(client, order):
    return client.get(f"/api/v1/flights/orders/{order['orderNumber']}", headers=USER_HEADERS).json()


def _sign(body: bytes, timestamp: str = "1700000000") -> str:
    digest = hmac.new(SECRET.encode(), timestamp.encode() + b"." + body, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


class TestScheduleChange:
    def test_schedule_change_updates_order_and_notifies_once(self, client, order, notifications):
        new_slices = [{"origin": "JFK", "destination": "MAD", "departing_at": "2025-12-15T10:00:00"}]
        event = {
            "id": "wev_001",
            "type": "order.airline_initiated_change",
            "data": {"object": {"id": order["providerOrderId"], "slices": new_slices}},
        }

        first = client.post(WEBHOOK_URL, json=event)
        second = client.post(WEBHOOK_URL, json=event)

        assert first.status_code == 200
        assert first.json()["handled"] is True
        assert first.json()["orderNumber"] == order["orderNumber"]
        assert second.json()["duplicate"] is True
        assert len(notifications.of_kind("schedule_change")) == 1

        details = _order_details(client, order)
        assert details["scheduleChanged"] is True
        assert details["newSlices"] == new_slices

    def test_events_without_id_are_deduplicated_by_content(self, client, order, notifications):
        event = {"event": "order.schedule_changed", "data": {"id": order["providerOrderId"], "slices": []}}

        first = client.post(WEBHOOK_URL, json=event).json()
        second = client.post(WEBHOOK_URL, json=event).json()

        assert first["eventId"] == second["eventId"]
        assert second["duplicate"] is True
        assert len(notifications.of_kind("schedule_change")) == 1

    def test_schedule_change_on_cancelled_order_is_not_applied_or_notified(self, client, order, notifications):
        client.delete(f"/api/v1/flights/orders/{order['orderNumber']}", headers=USER_HEADERS)
        event = {
            "id": "wev_007",
            "type": "order.airline_initiated_change",
            "data": {"object": {"id": order["providerOrderId"], "slices": [{"origin": "JFK"}]}},
        }

        response = client.post(WEBHOOK_URL, json=event)

        assert response.status_code == 200
        assert len(notifications.of_kind("schedule_change")) == 0
        details = _order_details(client, order)
        assert details["status"] == "cancelled"
        assert details["scheduleChanged"] is False


class TestCancellation:
    def test_cancellation_cascades_to_booking(self, client, order, notifications, bundle):
        event = {
            "id": "wev_002",
            "type": "order.cancelled",
            "data": {"object": {"id": order["providerOrderId"]}},
        }

        response = client.post(WEBHOOK_URL, json=event)

        assert response.json()["handled"] is True
        details = _order_details(client, order)
        assert details["status"] == "cancelled"
        assert details["booking"]["bookingStatus"] == "cancelled"
        assert len(notifications.of_kind("cancellation")) == 1
        assert bundle["audit_log"].actions().count("webhook_received") == 1

    def test_cancellation_confirmed_uses_order_id(self, client, order):
        event = {
            "id": "wev_003",
            "type": "order_cancellation.confirmed",
            "data": {"object": {"id": "ore_123", "order_id": order["providerOrderId"]}},
        }

        client.post(WEBHOOK_URL, json=event)

        assert _order_details(client, order)["status"] == "cancelled"

    def test_late_cancellation_leaves_closed_order_alone(self, client, order, notifications):
        client.delete(f"/api/v1/flights/orders/{order['orderNumber']}", headers=USER_HEADERS)
        event = {"id": "wev_004", "type": "order.cancelled", "data": {"object": {"id": order["providerOrderId"]}}}

        response = client.post(WEBHOOK_URL, json=event)

        assert response.status_code == 200
        assert len(notifications.of_kind("cancellation")) == 1


class TestOtherEvents:
    def test_change_confirmed_updates_total(self, client, order):
        event = {
            "id": "wev_005",
            "type": "order_change.confirmed",
            "data": {"object": {"id": "oce_1", "order_id": order["providerOrderId"], "new_total_amount": "400.00"}},
        }

        client.post(WEBHOOK_URL, json=event)

        details = _order_details(client, order)
        assert details["totalAmount"] == "400.00"
        assert details["taxAmount"] == "127.57"

    def test_unknown_order_is_acknowledged(self, client):
        event = {"id": "wev_006", "type": "order.cancelled", "data": {"object": {"id": "ord_missing"}}}

        response = client.post(WEBHOOK_URL, json=event)

        assert response.status_code == 200
        assert response.json()["handled"] is False

    def test_unhandled_event_type(self, client):
        response = client.post(WEBHOOK_URL, json={"id": "wev_007", "type": "ping.triggered", "data": {}})

        assert response.status_code == 200
        assert response.json()["handled"] is False
        assert response.json()["duplicate"] is False

    def test_invalid_json_is_400(self, client):
        response = client.post(WEBHOOK_URL, content=b"not json", headers={"content-type": "application/json"})

        assert response.status_code == 400


class TestSignature:
    @pytest.fixture(autouse=True)
    def webhook_secret(self, settings):
        settings.duffel_webhook_secret = SECRET

    def test_missing_signature_is_401(self, client):
        response = client.post(WEBHOOK_URL, json={"id": "wev_008", "type": "ping.triggered"})

        assert response.status_code == 401

    def test_wrong_signature_is_401(self, client):
        body = json.dumps({"id": "wev_009", "type": "ping.triggered"}).encode()

        response = client.post(
            WEBHOOK_URL,
            content=body,
            headers={"content-type": "application/json", "x-duffel-signature": "t=1,v1=deadbeef"},
        )

        assert response.status_code == 401

    def test_valid_signature_is_accepted(self, client):
        body = json.dumps({"id": "wev_010", "type": "ping.triggered"}).encode()

        response = client.post(
            WEBHOOK_URL,
            content=body,
            headers={"content-type": "application/json", "x-duffel-signature": _sign(body)},
        )

        assert response.status_code == 200
        assert response.json()["eventId"] == "wev_010"
