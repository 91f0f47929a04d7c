import pytest

from app.domain.errors import ProviderError, ProviderErrorKind
from app.infrastructure.gateways import duffel_normalizer
from helpers import ADMIN_HEADERS, OTHER_USER_HEADERS, USER_HEADERS, order_payload


def _fresh_offer(duffel, criteria):
    return duffel_normalizer.normalize_offer(duffel.raw_offer(criteria)).to_snapshot()


def _book(client, offer, headers=USER_HEADERS):
    response = client.post("/api/v1/flights/create-order", json=order_payload(offer), headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["order"]


@pytest.fixture
def order(client, duffel_offer):
    return _book(client, duffel_offer)


class TestCreateOrderEndpoint:
    def test_created(self, client, duffel_offer):
        response = client.post(
            "/api/v1/flights/create-order", json=order_payload(duffel_offer), headers=USER_HEADERS
        )

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["duplicate"] is False
        assert body["order"]["status"] == "confirmed"
        assert body["order"]["totalAmount"] == "320.50"
        assert body["booking"]["bookingStatus"] == "confirmed"
        assert "number" not in body["travelers"][0]["documents"][0]

    def test_duplicate_returns_200(self, client, duffel_offer, order):
        response = client.post(
            "/api/v1/flights/create-order", json=order_payload(duffel_offer), headers=USER_HEADERS
        )

        assert response.status_code == 200
        assert response.json()["duplicate"] is True
        assert response.json()["order"]["orderNumber"] == order["orderNumber"]

    def test_requires_caller_identity(self, client, duffel_offer):
        response = client.post("/api/v1/flights/create-order", json=order_payload(duffel_offer))

        assert response.status_code == 401

    def test_malformed_contact_is_400(self, client, duffel_offer):
        payload = order_payload(duffel_offer)
        payload["contacts"]["email"] = "not-an-email"

        response = client.post("/api/v1/flights/create-order", json=payload, headers=USER_HEADERS)

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_expired_offer_is_400_without_rows(self, client, clock, bundle, duffel, duffel_offer):
        clock.advance(minutes=31)

        response = client.post(
            "/api/v1/flights/create-order", json=order_payload(duffel_offer), headers=USER_HEADERS
        )

        assert response.status_code == 400
        assert response.json()["code"] == "OFFER_EXPIRED"
        assert duffel.calls["create_order"] == 0
        assert bundle["flight_order_repo"].count() == 0

    def test_lowered_price_is_400_without_upstream_call(self, client, bundle, duffel, duffel_offer):
        tampered = {**duffel_offer, "price": {**duffel_offer["price"], "total": "1.00", "base": "0.90", "tax": "0.10"}}

        response = client.post("/api/v1/flights/create-order", json=order_payload(tampered), headers=USER_HEADERS)

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"
        assert duffel.calls["create_order"] == 0
        assert bundle["flight_order_repo"].count() == 0

    def test_idempotency_key_replays_the_first_response(self, client, duffel, duffel_offer):
        headers = {**USER_HEADERS, "Idempotency-Key": "key-123"}

        first = client.post("/api/v1/flights/create-order", json=order_payload(duffel_offer), headers=headers)
        second = client.post("/api/v1/flights/create-order", json=order_payload(duffel_offer), headers=headers)

        assert first.status_code == 201
        assert second.status_code == 201
        assert second.json() == first.json()
        assert second.headers["Idempotent-Replay"] == "true"
        assert duffel.calls["create_order"] == 1

    def test_idempotency_key_reused_with_other_payload_is_409(self, client, duffel, criteria, duffel_offer):
        headers = {**USER_HEADERS, "X-Idempotency-Key": "key-456"}
        client.post("/api/v1/flights/create-order", json=order_payload(duffel_offer), headers=headers)

        other = _fresh_offer(duffel, criteria)
        response = client.post("/api/v1/flights/create-order", json=order_payload(other), headers=headers)

        assert response.status_code == 409
        assert duffel.calls["create_order"] == 1

    def test_idempotency_keys_are_scoped_per_user(self, client, duffel, duffel_offer):
        client.post(
            "/api/v1/flights/create-order",
            json=order_payload(duffel_offer),
            headers={**USER_HEADERS, "Idempotency-Key": "shared"},
        )
        response = client.post(
            "/api/v1/flights/create-order",
            json=order_payload(duffel_offer),
            headers={**OTHER_USER_HEADERS, "Idempotency-Key": "shared"},
        )

        assert response.status_code == 201
        assert "Idempotent-Replay" not in response.headers
        assert duffel.calls["create_order"] == 2

    def test_timeout_is_202_and_retry_stays_202(self, client, duffel, duffel_offer):
        duffel.create_order_delay = 1.0

        first = client.post(
            "/api/v1/flights/create-order", json=order_payload(duffel_offer), headers=USER_HEADERS
        )
        duffel.create_order_delay = 0
        retry = client.post(
            "/api/v1/flights/create-order", json=order_payload(duffel_offer), headers=USER_HEADERS
        )

        assert first.status_code == 202
        assert first.json()["timeout"] is True
        assert first.json()["status"] == "pending"
        assert retry.status_code == 202
        assert retry.json()["orderNumber"] == first.json()["orderNumber"]
        assert duffel.calls["create_order"] == 1


class TestReadOrders:
    def test_get_by_order_number(self, client, order):
        response = client.get(f"/api/v1/flights/orders/{order['orderNumber']}", headers=USER_HEADERS)

        assert response.status_code == 200
        body = response.json()
        assert body["id"] == order["id"]
        assert body["booking"]["bookingNumber"]
        assert body["segments"][0]["departureAirport"] == "JFK"
        assert body["travelers"][0]["lastName"] == "Lopez"

    def test_get_by_provider_order_id(self, client, order):
        response = client.get(f"/api/v1/flights/orders/{order['providerOrderId']}", headers=USER_HEADERS)

        assert response.status_code == 200
        assert response.json()["orderNumber"] == order["orderNumber"]

    def test_other_user_is_forbidden(self, client, order):
        response = client.get(f"/api/v1/flights/orders/{order['orderNumber']}", headers=OTHER_USER_HEADERS)

        assert response.status_code == 403

    def test_admin_can_read_any_order(self, client, order):
        response = client.get(f"/api/v1/flights/orders/{order['orderNumber']}", headers=ADMIN_HEADERS)

        assert response.status_code == 200

    def test_unknown_order_is_404(self, client):
        response = client.get("/api/v1/flights/orders/ORD-FLT-0-XXXX", headers=USER_HEADERS)

        assert response.status_code == 404

    def test_my_orders_paginates_newest_first(self, client, duffel, criteria):
        numbers = [_book(client, _fresh_offer(duffel, criteria))["orderNumber"] for _ in range(3)]
        _book(client, _fresh_offer(duffel, criteria), headers=OTHER_USER_HEADERS)

        response = client.get("/api/v1/flights/my-orders", params={"page": 1, "limit": 2}, headers=USER_HEADERS)

        body = response.json()
        assert [o["orderNumber"] for o in body["orders"]] == [numbers[2], numbers[1]]
        assert body["pagination"] == {"page": 1, "limit": 2, "total": 3, "totalPages": 2}

    def test_all_orders_requires_admin(self, client, order):
        assert client.get("/api/v1/flights/orders", headers=USER_HEADERS).status_code == 403

        response = client.get("/api/v1/flights/orders", params={"status": "confirmed"}, headers=ADMIN_HEADERS)

        assert response.status_code == 200
        assert response.json()["pagination"]["total"] == 1

    def test_all_orders_rejects_unknown_status(self, client):
        response = client.get("/api/v1/flights/orders", params={"status": "lost"}, headers=ADMIN_HEADERS)

        assert response.status_code == 400


class TestCancelAndRefund:
    def test_cancel_cascades_to_booking(self, client, bundle, duffel, notifications, order):
        response = client.delete(f"/api/v1/flights/orders/{order['orderNumber']}", headers=USER_HEADERS)

        assert response.status_code == 200
        body = response.json()
        assert body["order"]["status"] == "cancelled"
        assert body["refundAmount"] == "320.50"
        assert duffel.cancelled == [order["providerOrderId"]]
        assert len(notifications.of_kind("cancellation")) == 1

        details = client.get(f"/api/v1/flights/orders/{order['orderNumber']}", headers=USER_HEADERS).json()
        assert details["booking"]["bookingStatus"] == "cancelled"
        assert "flight_order_cancelled" in bundle["audit_log"].actions()

    def test_cancel_twice_is_rejected(self, client, duffel, order):
        client.delete(f"/api/v1/flights/orders/{order['orderNumber']}", headers=USER_HEADERS)

        response = client.delete(f"/api/v1/flights/orders/{order['orderNumber']}", headers=USER_HEADERS)

        assert response.status_code == 400
        assert duffel.calls["cancel_order"] == 1

    def test_cancel_frees_the_offer_for_a_new_booking(self, client, duffel_offer, order):
        client.delete(f"/api/v1/flights/orders/{order['orderNumber']}", headers=USER_HEADERS)

        rebooked = _book(client, duffel_offer)

        assert rebooked["orderNumber"] != order["orderNumber"]

    def test_upstream_cancel_failure_keeps_order(self, client, duffel, order):
        duffel.cancel_error = ProviderError(ProviderErrorKind.UPSTREAM_UNAVAILABLE, "down", provider="duffel")

        response = client.delete(f"/api/v1/flights/orders/{order['orderNumber']}", headers=USER_HEADERS)

        assert response.status_code == 502
        details = client.get(f"/api/v1/flights/orders/{order['orderNumber']}", headers=USER_HEADERS).json()
        assert details["status"] == "confirmed"

    def test_refund_quote_uses_fare_conditions(self, client, order):
        response = client.get(f"/api/v1/flights/orders/{order['orderNumber']}/refund-quote", headers=USER_HEADERS)

        assert response.status_code == 200
        assert response.json() == {
            "refundable": True,
            "penaltyAmount": "50.00",
            "estimatedRefund": "270.50",
            "currency": "USD",
        }

    def test_refund_without_payment_cancels(self, client, order):
        response = client.post(
            f"/api/v1/flights/orders/{order['orderNumber']}/refund",
            json={"reason": "changed plans"},
            headers=USER_HEADERS,
        )

        assert response.status_code == 200
        assert response.json()["order"]["status"] == "cancelled"
        assert response.json()["refundAmount"] == "0.00"


class TestOrderChanges:
    def test_change_options_then_confirm(self, client, bundle, duffel, order):
        slices = [{"origin": "JFK", "destination": "MAD", "departure_date": "2025-12-20"}]
        options = client.post(
            f"/api/v1/flights/orders/{order['orderNumber']}/change-options",
            json={"slices": slices},
            headers=USER_HEADERS,
        )

        assert options.status_code == 200
        offer = options.json()["data"][0]
        assert offer["newTotalAmount"] == "395.50"

        confirmed = client.post(
            f"/api/v1/flights/orders/{order['orderNumber']}/change-confirm",
            json={"changeOfferId": offer["id"], "amount": "75.00", "currency": "USD"},
            headers=USER_HEADERS,
        )

        assert confirmed.status_code == 200
        assert confirmed.json()["status"] == "confirmed"
        assert duffel.change_payments == [{"type": "balance", "amount": "75.00", "currency": "USD"}]
        details = client.get(f"/api/v1/flights/orders/{order['orderNumber']}", headers=USER_HEADERS).json()
        assert details["totalAmount"] == "395.50"
        assert "flight_order_changed" in bundle["audit_log"].actions()

    def test_change_options_need_slices(self, client, order):
        response = client.post(
            f"/api/v1/flights/orders/{order['orderNumber']}/change-options",
            json={"slices": []},
            headers=USER_HEADERS,
        )

        assert response.status_code == 400

    def test_cancelled_order_cannot_change(self, client, order):
        client.delete(f"/api/v1/flights/orders/{order['orderNumber']}", headers=USER_HEADERS)

        response = client.post(
            f"/api/v1/flights/orders/{order['orderNumber']}/change-options",
            json={"slices": [{"origin": "JFK"}]},
            headers=USER_HEADERS,
        )

        assert response.status_code == 400
