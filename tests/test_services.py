import hashlib
import hmac
from datetime import date, datetime, timezone

import pytest

from app.application.interfaces.clock import FakeClock
from app.application.interfaces.flight_provider import SearchCriteria
from app.application.services.saga import Saga, SagaFailed
from app.application.services.traveler_validation import validate_travelers
from app.domain.entities.traveler import Traveler, TravelerDocument
from app.domain.errors import IdempotencyConflictError
from app.infrastructure.gateways import amadeus_normalizer, duffel_normalizer
from app.infrastructure.in_memory import InMemoryIdempotencyGuard, StubAmadeusProvider, StubDuffelProvider
from app.infrastructure.webhook_signature import verify_duffel_signature

TODAY = date(2025, 11, 1)
CRITERIA = SearchCriteria(origin="JFK", destination="MAD", departure_date="2025-12-15", adults=2)


def _traveler(passenger_id="pas_0001", **overrides) -> Traveler:
    values = dict(
        first_name="Ana",
        last_name="Lopez",
        date_of_birth="1990-05-17",
        gender="FEMALE",
        offer_passenger_id=passenger_id,
        documents=[TravelerDocument(number="X1234567", expiry_date="2030-01-01", issuing_country="US")],
    )
    values.update(overrides)
    return Traveler(**values)


class TestTravelerValidation:
    modern_offer = duffel_normalizer.normalize_offer(StubDuffelProvider().raw_offer(CRITERIA))
    gds_offer = amadeus_normalizer.normalize_offer(StubAmadeusProvider().raw_offer(CRITERIA))

    def test_valid_travelers(self):
        travelers = [_traveler("pas_0001"), _traveler("pas_0002", first_name="Luis", gender="MALE")]

        assert validate_travelers(travelers, self.modern_offer, TODAY) == []

    def test_no_travelers(self):
        assert validate_travelers([], self.modern_offer, TODAY) == ["At least one traveler is required"]

    def test_passenger_count_must_match_offer(self):
        errors = validate_travelers([_traveler("pas_0001")], self.modern_offer, TODAY)

        assert errors == ["Offer is priced for 2 passenger(s) but 1 traveler(s) were submitted"]

    def test_passenger_ids_are_checked(self):
        errors = validate_travelers([_traveler("pas_0001"), _traveler("pas_0001")], self.modern_offer, TODAY)

        assert errors == ["Traveler 2: offerPassengerId pas_0001 is used more than once"]

    def test_missing_passenger_id(self):
        errors = validate_travelers([_traveler("pas_0001"), _traveler(None)], self.modern_offer, TODAY)

        assert "Traveler 2: offerPassengerId is required for this offer" in errors

    def test_gds_offers_skip_passenger_ids(self):
        assert validate_travelers([_traveler(None), _traveler(None)], self.gds_offer, TODAY) == []

    def test_every_problem_is_reported(self):
        broken = _traveler(
            None,
            first_name="",
            date_of_birth="17/05/1990",
            gender="X",
            documents=[TravelerDocument(number="", expiry_date="2020-01-01")],
        )

        errors = validate_travelers([broken, broken], self.gds_offer, TODAY)

        assert errors[:5] == [
            "Traveler 1: firstName and lastName are required",
            "Traveler 1: dateOfBirth is required (YYYY-MM-DD)",
            "Traveler 1: gender must be MALE or FEMALE",
            "Traveler 1: document 1 number is required",
            "Traveler 1: document 1 has expired",
        ]
        assert len(errors) == 10


class TestSaga:
    async def test_steps_run_in_order_and_share_context(self):
        calls = []

        async def reserve(ctx):
            calls.append("reserve")
            return "seat-1"

        async def charge(ctx):
            calls.append(f"charge:{ctx['reserve']}")
            return 100

        context = await Saga("booking").step("reserve", reserve).step("charge", charge).run()

        assert calls == ["reserve", "charge:seat-1"]
        assert context == {"reserve": "seat-1", "charge": 100}

    async def test_failure_compensates_completed_steps_in_reverse(self):
        undone = []

        async def ok(ctx):
            return True

        async def boom(ctx):
            raise RuntimeError("upstream down")

        def undo(name):
            async def compensation(ctx, cause):
                undone.append((name, str(cause)))

            return compensation

        saga = Saga("booking").step("first", ok, undo("first")).step("second", ok, undo("second"))
        saga.step("third", boom, undo("third"))

        with pytest.raises(SagaFailed) as exc_info:
            await saga.run()

        assert undone == [("second", "upstream down"), ("first", "upstream down")]
        assert exc_info.value.failed_step == "third"
        assert isinstance(exc_info.value.cause, RuntimeError)
        assert exc_info.value.fully_compensated

    async def test_compensation_failures_are_collected(self):
        async def ok(ctx):
            return None

        async def boom(ctx):
            raise ValueError("rejected")

        async def broken_refund(ctx, cause):
            raise ConnectionError("gateway down")

        saga = Saga("pay_then_book").step("charge", ok, broken_refund).step("book", boom)

        with pytest.raises(SagaFailed) as exc_info:
            await saga.run()

        failures = exc_info.value.compensation_failures
        assert [f.step for f in failures] == ["charge"]
        assert not exc_info.value.fully_compensated


class TestIdempotencyGuard:
    @pytest.fixture
    def clock(self):
        return FakeClock(datetime(2025, 11, 1, 12, 0, tzinfo=timezone.utc))

    @pytest.fixture
    def guard(self, clock):
        return InMemoryIdempotencyGuard(clock=clock, ttl_seconds=300, purge_seconds=600)

    async def test_replays_within_ttl(self, guard, clock):
        await guard.record("key-1", "hash-a", 201, b'{"ok":true}')
        clock.advance(seconds=299)

        cached = await guard.check("key-1", "hash-a")

        assert cached.status_code == 201
        assert cached.body == b'{"ok":true}'

    async def test_expires_after_ttl(self, guard, clock):
        await guard.record("key-1", "hash-a", 200, b"{}")
        clock.advance(seconds=300)

        assert await guard.check("key-1", "hash-a") is None

    async def test_different_payload_conflicts(self, guard):
        await guard.record("key-1", "hash-a", 200, b"{}")

        with pytest.raises(IdempotencyConflictError):
            await guard.check("key-1", "hash-b")

    async def test_errors_are_not_cached(self, guard):
        await guard.record("key-1", "hash-a", 400, b"{}")
        await guard.record("key-2", "hash-a", 500, b"{}")

        assert len(guard) == 0

    async def test_old_entries_are_purged_on_write(self, guard, clock):
        await guard.record("key-1", "hash-a", 200, b"{}")
        clock.advance(seconds=601)
        await guard.record("key-2", "hash-a", 200, b"{}")

        assert len(guard) == 1


class TestWebhookSignature:
    secret = "whsec_test"
    body = b'{"id":"wev_1"}'

    def _digest(self, payload: bytes) -> str:
        return hmac.new(self.secret.encode(), payload, hashlib.sha256).hexdigest()

    def test_bare_hex_digest(self):
        assert verify_duffel_signature(self.secret, self.body, self._digest(self.body))

    def test_timestamped_form(self):
        header = f"t=1700000000,v1={self._digest(b'1700000000.' + self.body)}"

        assert verify_duffel_signature(self.secret, self.body, header)

    def test_tampered_body(self):
        header = f"t=1700000000,v1={self._digest(b'1700000000.' + self.body)}"

        assert not verify_duffel_signature(self.secret, b'{"id":"wev_2"}', header)

    @pytest.mark.parametrize("header", [None, "", "t=1700000000", "v1=abc"])
    def test_incomplete_headers(self, header):
        assert not verify_duffel_signature(self.secret, self.body, header)
