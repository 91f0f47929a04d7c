"""
Modelo de dominio:
- Money y ReferenceNumber
- OfferPrice (total = base + tax, base estimada)
- Máquina de estados de FlightOrder
- Normalizadores de ofertas y órdenes de ambos proveedores
"""

import re
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from app.application.interfaces.flight_provider import SearchCriteria
from app.domain.entities.flight_offer import ESTIMATED_BASE_RATIO, OfferPrice, ProviderKind
from app.domain.entities.flight_order import FlightOrder, FlightOrderStatus, TicketingStatus, sources_for
from app.domain.entities.provider_order import ProviderOrder
from app.domain.errors import InvalidOrderStateError
from app.domain.value_objects.money import Money
from app.domain.value_objects.reference_number import ReferenceNumber
from app.infrastructure.gateways import amadeus_normalizer, duffel_normalizer
from app.infrastructure.in_memory import StubAmadeusProvider, StubDuffelProvider

NOW = datetime(2025, 11, 1, 12, 0, tzinfo=timezone.utc)


class TestMoney:
    def test_rounds_to_two_decimals(self):
        assert Money("10.005", "usd").amount == Decimal("10.01")
        assert Money("10.005", "usd").currency_code == "USD"

    def test_rejects_negative_and_bad_currency(self):
        with pytest.raises(ValueError):
            Money("-1", "USD")
        with pytest.raises(ValueError):
            Money("1", "US")

    def test_currency_mismatch(self):
        with pytest.raises(ValueError):
            Money("1", "USD").approx_equals(Money("1", "EUR"))

    def test_approx_equals_tolerates_one_cent(self):
        assert Money("320.50", "USD").approx_equals(Money("320.51", "USD"))
        assert not Money("320.50", "USD").approx_equals(Money("320.53", "USD"))

    def test_cents(self):
        assert Money("320.50", "USD").to_cents() == 32050
        assert Money.from_cents(32050, "usd") == Money("320.50", "USD")


class TestReferenceNumber:
    @pytest.mark.parametrize(
        "factory, prefix",
        [
            (ReferenceNumber.order, "ORD-FLT"),
            (ReferenceNumber.booking, "BKG-FLT"),
            (ReferenceNumber.cart, "CART"),
        ],
    )
    def test_format(self, factory, prefix):
        value = factory(NOW)
        assert re.fullmatch(rf"{prefix}-{int(NOW.timestamp() * 1000)}-[A-Z0-9]{{4}}", value)

    def test_temporary_cart(self):
        assert ReferenceNumber.cart(NOW, temporary=True).startswith("TEMP-")

    def test_same_millisecond_numbers_differ(self):
        numbers = {ReferenceNumber.order(NOW) for _ in range(50)}
        assert len(numbers) > 1

    def test_empty_is_rejected(self):
        with pytest.raises(ValueError):
            ReferenceNumber("")


class TestOfferPrice:
    def test_tax_is_derived_from_total(self):
        price = OfferPrice.from_amounts("usd", "320.50", "272.43")

        assert price.tax == Decimal("48.07")
        assert price.base + price.tax == price.total
        assert price.currency == "USD"
        assert not price.base_estimated

    def test_missing_base_is_estimated(self):
        price = OfferPrice.from_amounts("USD", "100.00")

        assert price.base_estimated
        assert price.base == Decimal("100.00") * ESTIMATED_BASE_RATIO
        assert price.is_consistent()


class TestNormalizers:
    criteria = SearchCriteria(
        origin="JFK", destination="MAD", departure_date="2025-12-15", return_date="2025-12-22", adults=2, children=1
    )

    def test_duffel_offer(self):
        offer = duffel_normalizer.normalize_offer(StubDuffelProvider().raw_offer(self.criteria))

        assert offer.provider == ProviderKind.MODERN
        assert offer.passenger_ids() == ["pas_0001", "pas_0002", "pas_0003"]
        assert [p.type for p in offer.passengers] == ["adult", "adult", "child"]
        assert len(offer.itineraries) == 2
        assert offer.segments[0].departure.iata_code == "JFK"
        assert offer.expires_at is not None
        assert offer.conditions.refund_penalty == Decimal("50.00")
        assert offer.price.is_consistent()

    def test_amadeus_offer(self):
        offer = amadeus_normalizer.normalize_offer(StubAmadeusProvider().raw_offer(self.criteria))

        assert offer.provider == ProviderKind.GDS
        assert offer.expires_at is None
        assert offer.validating_airline == "AA"
        assert offer.segments[1].departure.iata_code == "MAD"
        assert offer.segments[0].checked_bags == 1
        assert offer.price.total == Decimal("320.50")

    def test_snapshot_keeps_provider_and_raw(self):
        offer = duffel_normalizer.normalize_offer(StubDuffelProvider().raw_offer(self.criteria))

        restored = type(offer).from_snapshot(offer.to_snapshot())

        assert restored.provider == ProviderKind.MODERN
        assert restored.raw == offer.raw
        assert restored.price.total == offer.price.total
        assert restored.passenger_ids() == offer.passenger_ids()

    def test_duffel_order_tickets(self):
        order = duffel_normalizer.normalize_order(
            {
                "id": "ord_1",
                "booking_reference": "ABC123",
                "total_amount": "320.50",
                "total_currency": "USD",
                "documents": [{"type": "electronic_ticket", "unique_identifier": "0011234567890"}],
                "slices": [],
            }
        )

        assert order.ticket_numbers == ["0011234567890"]
        assert order.total_amount == Decimal("320.50")

    def test_amadeus_order_without_tickets(self):
        order = amadeus_normalizer.normalize_order(
            {"id": "eJz", "associatedRecords": [{"reference": "QWERTY"}], "flightOffers": []}
        )

        assert order.booking_reference == "QWERTY"
        assert order.total_amount is None
        assert order.ticket_numbers == []


def _pending_order() -> FlightOrder:
    offer = duffel_normalizer.normalize_offer(
        StubDuffelProvider().raw_offer(SearchCriteria(origin="JFK", destination="MAD", departure_date="2025-12-15"))
    )
    return FlightOrder.claim(
        order_number="ORD-FLT-1-AAAA",
        user_id="user-1",
        offer=offer,
        number_of_travelers=1,
        contact_email="ana@example.com",
        contact_phone=None,
        now=NOW,
    )


class TestFlightOrderLifecycle:
    def test_claim_holds_the_offer(self):
        order = _pending_order()

        assert order.status == FlightOrderStatus.PENDING
        assert order.active_offer_key == f"user-1:{order.upstream_offer_id}"
        assert order.total_amount == Decimal("320.50")

    def test_confirm_uses_upstream_total(self):
        order = _pending_order()

        order.confirm(
            ProviderOrder(
                provider_order_id="ord_1",
                provider=ProviderKind.MODERN,
                booking_reference="ABC123",
                total_amount=Decimal("330.50"),
            ),
            NOW,
        )

        assert order.status == FlightOrderStatus.CONFIRMED
        assert order.pnr == "ABC123"
        assert order.total_amount == Decimal("330.50")
        assert order.base_amount + order.tax_amount == order.total_amount

    def test_ticket_then_cancel_voids_ticket(self):
        order = _pending_order()
        order.confirm(ProviderOrder(provider_order_id="ord_1", provider=ProviderKind.MODERN), NOW)
        order.issue_ticket(Decimal("320.50"), NOW)

        order.cancel(NOW)

        assert order.status == FlightOrderStatus.CANCELLED
        assert order.ticketing_status == TicketingStatus.VOIDED
        assert order.active_offer_key is None
        assert order.is_terminal

    def test_pending_cannot_be_ticketed(self):
        order = _pending_order()

        with pytest.raises(InvalidOrderStateError):
            order.issue_ticket(Decimal("1"), NOW)

    def test_failed_is_terminal(self):
        order = _pending_order()
        order.fail(NOW, "rejected upstream")

        assert order.notes == "rejected upstream"
        with pytest.raises(InvalidOrderStateError):
            order.cancel(NOW)

    def test_sources_for_cancelled(self):
        assert sources_for(FlightOrderStatus.CANCELLED) == {
            FlightOrderStatus.PENDING,
            FlightOrderStatus.CONFIRMED,
            FlightOrderStatus.TICKETED,
        }
