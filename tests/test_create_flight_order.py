import asyncio
from datetime import timedelta

import pytest

from app.application.dtos.order_dto import Caller
from app.domain.entities.booking import BookingStatus
from app.domain.entities.flight_order import FlightOrder, FlightOrderStatus
from app.domain.errors import OfferExpiredError, ProviderError, ProviderErrorKind, ValidationError
from helpers import booking_request, traveler_payload

OWNER = Caller(user_id="user-1")


def _with_price(offer, total, base, tax):
    return {**offer, "price": {**offer["price"], "total": total, "base": base, "tax": tax}}


async def test_books_offer_and_persists_order_rows(use_cases, bundle, duffel, duffel_offer):
    result = await use_cases["create_flight_order"].execute(booking_request(duffel_offer))

    order = result.order
    assert result.duplicate is False
    assert result.pending is False
    assert order.status == FlightOrderStatus.CONFIRMED
    assert order.provider_order_id.startswith("duf_ord_")
    assert order.pnr
    assert order.upstream_offer_id == duffel_offer["id"]
    assert order.total_amount == order.base_amount + order.tax_amount
    assert result.booking.booking_number.startswith("BK")
    assert order.booking_id == result.booking.id
    assert duffel.calls["create_order"] == 1

    segments = await bundle["segment_repo"].list_by_order(order.id)
    assert [s.departure_airport for s in segments] == ["JFK"]
    travelers = await bundle["traveler_repo"].list_by_order(order.id)
    assert travelers[0].offer_passenger_id == "pas_0001"
    assert "flight_order_created" in bundle["audit_log"].actions()


async def test_same_offer_twice_returns_the_existing_order(use_cases, bundle, duffel, duffel_offer):
    first = await use_cases["create_flight_order"].execute(booking_request(duffel_offer))
    second = await use_cases["create_flight_order"].execute(booking_request(duffel_offer))

    assert second.duplicate is True
    assert second.order.order_number == first.order.order_number
    assert duffel.calls["create_order"] == 1
    assert bundle["flight_order_repo"].count() == 1


async def test_other_user_can_book_the_same_offer(use_cases, duffel, duffel_offer):
    first = await use_cases["create_flight_order"].execute(booking_request(duffel_offer, user_id="user-1"))
    second = await use_cases["create_flight_order"].execute(booking_request(duffel_offer, user_id="user-2"))

    assert second.duplicate is False
    assert second.order.order_number != first.order.order_number
    assert duffel.calls["create_order"] == 2


async def test_expired_offer_is_rejected_before_any_call(use_cases, bundle, clock, duffel, duffel_offer):
    clock.advance(minutes=31)

    with pytest.raises(OfferExpiredError):
        await use_cases["create_flight_order"].execute(booking_request(duffel_offer))

    assert sum(duffel.calls.values()) == 0
    assert bundle["flight_order_repo"].count() == 0
    assert bundle["booking_repo"].count() == 0


async def test_invalid_travelers_report_every_problem(use_cases, bundle, duffel, duffel_offer):
    traveler = traveler_payload(gender="X", documents=[], dateOfBirth=None)

    with pytest.raises(ValidationError) as exc_info:
        await use_cases["create_flight_order"].execute(booking_request(duffel_offer, travelers=[traveler]))

    errors = exc_info.value.errors
    assert any("dateOfBirth" in e for e in errors)
    assert any("gender" in e for e in errors)
    assert any("document" in e for e in errors)
    assert sum(duffel.calls.values()) == 0
    assert bundle["flight_order_repo"].count() == 0


async def test_expired_passport_is_rejected(use_cases, duffel, duffel_offer):
    traveler = traveler_payload()
    traveler["documents"][0]["expiryDate"] = "2024-01-01"

    with pytest.raises(ValidationError) as exc_info:
        await use_cases["create_flight_order"].execute(booking_request(duffel_offer, travelers=[traveler]))

    assert any("expired" in e for e in exc_info.value.errors)
    assert duffel.calls["create_order"] == 0


async def test_modern_offer_requires_offer_passenger_ids(use_cases, duffel, duffel_offer):
    travelers = [traveler_payload(offer_passenger_id="pas_9999")]

    with pytest.raises(ValidationError) as exc_info:
        await use_cases["create_flight_order"].execute(booking_request(duffel_offer, travelers=travelers))

    assert any("does not belong to the offer" in e for e in exc_info.value.errors)
    assert duffel.calls["create_order"] == 0


async def test_gds_offer_books_without_offer_passenger_ids(use_cases, amadeus, amadeus_offer):
    request = booking_request(amadeus_offer, travelers=[traveler_payload(offer_passenger_id=None)])

    result = await use_cases["create_flight_order"].execute(request)

    assert result.order.status == FlightOrderStatus.CONFIRMED
    assert result.order.provider.provider_name == "amadeus"
    assert amadeus.calls["create_order"] == 1


async def test_timeout_leaves_order_pending_and_blocks_blind_retry(use_cases, bundle, duffel, duffel_offer):
    duffel.create_order_delay = 1.0

    result = await use_cases["create_flight_order"].execute(booking_request(duffel_offer))

    assert result.pending is True
    assert result.order.status == FlightOrderStatus.PENDING
    assert bundle["booking_repo"].count() == 0

    duffel.create_order_delay = 0
    retry = await use_cases["create_flight_order"].execute(booking_request(duffel_offer))
    assert retry.duplicate is True
    assert retry.pending is True
    assert duffel.calls["create_order"] == 1


async def test_upstream_rejection_fails_order_and_releases_offer(use_cases, bundle, duffel, duffel_offer):
    duffel.create_order_error = ProviderError(ProviderErrorKind.INVALID_REQUEST, "passenger name too long")

    with pytest.raises(ProviderError):
        await use_cases["create_flight_order"].execute(booking_request(duffel_offer))

    failed = await bundle["flight_order_repo"].get_by_id(1)
    assert failed.status == FlightOrderStatus.FAILED
    assert bundle["booking_repo"].count() == 0

    duffel.create_order_error = None
    result = await use_cases["create_flight_order"].execute(booking_request(duffel_offer))
    assert result.duplicate is False
    assert result.order.status == FlightOrderStatus.CONFIRMED


async def test_concurrent_requests_for_the_same_offer_book_once(use_cases, bundle, duffel, duffel_offer):
    duffel.create_order_delay = 0.05

    results = await asyncio.gather(
        use_cases["create_flight_order"].execute(booking_request(duffel_offer)),
        use_cases["create_flight_order"].execute(booking_request(duffel_offer)),
    )

    assert sorted(result.duplicate for result in results) == [False, True]
    assert results[0].order.order_number == results[1].order.order_number
    assert duffel.calls["create_order"] == 1
    assert bundle["flight_order_repo"].count() == 1


class TestSubmittedOfferIsCheckedAgainstProviderPayload:
    async def test_lowered_price_is_rejected_before_any_call(self, use_cases, bundle, duffel, duffel_offer):
        tampered = _with_price(duffel_offer, "1.00", "0.90", "0.10")

        with pytest.raises(ValidationError, match="does not match"):
            await use_cases["create_flight_order"].execute(booking_request(tampered))

        assert sum(duffel.calls.values()) == 0
        assert bundle["flight_order_repo"].count() == 0

    async def test_inconsistent_price_is_rejected(self, use_cases, duffel, duffel_offer):
        inconsistent = _with_price(duffel_offer, "320.50", "100.00", "5.00")

        with pytest.raises(ValidationError, match="inconsistent"):
            await use_cases["create_flight_order"].execute(booking_request(inconsistent))

        assert duffel.calls["create_order"] == 0

    async def test_expiry_comes_from_provider_payload(self, use_cases, clock, duffel, duffel_offer):
        expired_raw = {**duffel_offer["raw"], "expires_at": (clock.now() - timedelta(minutes=1)).isoformat()}
        offer = {**duffel_offer, "expiresAt": None, "raw": expired_raw}

        with pytest.raises(OfferExpiredError):
            await use_cases["create_flight_order"].execute(booking_request(offer))

        assert duffel.calls["create_order"] == 0

    async def test_rounding_difference_is_accepted_and_provider_total_booked(self, use_cases, duffel_offer):
        rounded = _with_price(duffel_offer, "320.51", "272.44", "48.07")

        result = await use_cases["create_flight_order"].execute(booking_request(rounded))

        assert result.order.status == FlightOrderStatus.CONFIRMED
        assert str(result.order.total_amount) == "320.50"


class TestLateUpstreamResult:
    async def test_late_confirmation_is_visible_on_the_next_read(self, use_cases, bundle, duffel, duffel_offer):
        duffel.create_order_delay = 0.3

        result = await use_cases["create_flight_order"].execute(booking_request(duffel_offer))
        assert result.pending is True
        await asyncio.sleep(0.4)

        details = await use_cases["get_flight_order"].execute(result.order.order_number, OWNER)

        assert details.order.status == FlightOrderStatus.CONFIRMED
        assert details.order.provider_order_id in duffel.orders
        assert details.booking is not None
        assert len(details.travelers) == 1
        assert duffel.calls["create_order"] == 1
        assert duffel.calls["get_order"] == 1

    async def test_late_rejection_releases_the_offer(self, use_cases, bundle, duffel, duffel_offer):
        duffel.create_order_delay = 0.3
        duffel.create_order_error = ProviderError(ProviderErrorKind.INVALID_REQUEST, "rejected")

        pending = await use_cases["create_flight_order"].execute(booking_request(duffel_offer))
        await asyncio.sleep(0.4)

        failed = await bundle["flight_order_repo"].get_by_id(pending.order.id)
        assert failed.status == FlightOrderStatus.FAILED

        duffel.create_order_delay = 0
        duffel.create_order_error = None
        retry = await use_cases["create_flight_order"].execute(booking_request(duffel_offer))
        assert retry.duplicate is False
        assert retry.order.status == FlightOrderStatus.CONFIRMED

    async def test_read_confirms_pending_order_that_has_an_upstream_id(
        self, use_cases, bundle, clock, duffel, duffel_offer
    ):
        request = booking_request(duffel_offer)
        upstream = await duffel.create_order(request.offer, request.travelers, request.contact)
        claim = FlightOrder.claim(
            order_number="ORD-FLT-20251101-TEST",
            user_id="user-1",
            offer=request.offer,
            number_of_travelers=1,
            contact_email=request.contact.email,
            contact_phone=None,
            now=clock.now(),
        )
        claim.provider_order_id = upstream.provider_order_id
        await bundle["flight_order_repo"].create(claim)

        details = await use_cases["get_flight_order"].execute("ORD-FLT-20251101-TEST", OWNER)

        assert details.order.status == FlightOrderStatus.CONFIRMED
        assert details.order.pnr == upstream.booking_reference
        stored = await bundle["flight_order_repo"].get_by_order_number("ORD-FLT-20251101-TEST")
        assert stored.status == FlightOrderStatus.CONFIRMED

    async def test_upstream_cancellation_is_mirrored_on_read(self, use_cases, bundle, duffel, duffel_offer):
        result = await use_cases["create_flight_order"].execute(booking_request(duffel_offer))
        duffel.orders[result.order.provider_order_id]["cancelled_at"] = "2025-11-01T13:00:00Z"

        details = await use_cases["get_flight_order"].execute(result.order.order_number, OWNER)

        assert details.order.status == FlightOrderStatus.CANCELLED
        assert details.booking.booking_status == BookingStatus.CANCELLED
        stored = await bundle["flight_order_repo"].get_by_id(result.order.id)
        assert stored.status == FlightOrderStatus.CANCELLED

    async def test_provider_failure_on_read_returns_stored_order(self, use_cases, duffel, duffel_offer):
        result = await use_cases["create_flight_order"].execute(booking_request(duffel_offer))
        duffel.orders.clear()

        details = await use_cases["get_flight_order"].execute(result.order.order_number, OWNER)

        assert details.order.status == FlightOrderStatus.CONFIRMED
        assert duffel.calls["get_order"] == 1
