import asyncio
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from app.application.interfaces.audit_log import AuditEvent, AuditLog
from app.application.interfaces.booking_repo import BookingRepo
from app.application.interfaces.clock import Clock
from app.application.interfaces.flight_order_repo import FlightOrderRepo
from app.application.interfaces.flight_provider import FlightProviderClient
from app.application.interfaces.notification_sender import NotificationSender
from app.application.interfaces.transaction_manager import TransactionManager
from app.application.interfaces.traveler_repo import FlightSegmentRepo, TravelerRepo
from app.application.services.offer_payload import verify_offer
from app.application.services.provider_router import ProviderRouter
from app.application.services.saga import Saga, SagaContext, SagaFailed
from app.application.services.traveler_validation import validate_travelers
from app.domain.entities.booking import Booking
from app.domain.entities.flight_offer import FlightOffer
from app.domain.entities.flight_order import FlightOrder, FlightOrderStatus
from app.domain.entities.flight_segment import segments_from_offer
from app.domain.entities.provider_order import ProviderOrder
from app.domain.entities.traveler import ContactInfo, Traveler
from app.domain.errors import (
    DuplicateRequestError,
    InvalidOrderStateError,
    OfferExpiredError,
    ProviderError,
    TimeoutAmbiguousError,
    ValidationError,
)
from app.domain.value_objects.reference_number import ReferenceNumber

# Strong references to settlements of timed-out upstream calls.
_LATE_SETTLEMENTS: set["asyncio.Future[None]"] = set()


@dataclass
class BookingRequest:
    user_id: str
    offer: FlightOffer
    travelers: list[Traveler]
    contact: ContactInfo
    remarks: str | None = None


@dataclass
class CollectedPayment:
    """Payment already captured before booking (pay-then-book)."""

    amount: Decimal
    payment_method: str | None = None


@dataclass
class BookingResult:
    order: FlightOrder
    booking: Booking | None = None
    duplicate: bool = False
    pending: bool = False
    travelers: list[Traveler] = field(default_factory=list)


class CreateFlightOrderUseCase:
    """
    Books an offer upstream and persists Booking + FlightOrder + travelers + segments.

    Steps run as a saga:
      1. claim: a pending FlightOrder reserves the (user, offer) pair. The
         repository enforces uniqueness, so concurrent retries collapse here.
      2. upstream: provider createOrder under a fixed timeout.
      3. persist: booking, confirmation, travelers, segments and audit in one
         transaction.

    A timeout leaves the claim pending and is reported as an unknown outcome.
    The upstream call itself is not abandoned: when it finishes, its result
    confirms the claim (or fails it on a rejection) in the background.
    """

    def __init__(
        self,
        flight_order_repo: FlightOrderRepo,
        booking_repo: BookingRepo,
        traveler_repo: TravelerRepo,
        segment_repo: FlightSegmentRepo,
        audit_log: AuditLog,
        notification_sender: NotificationSender,
        provider_router: ProviderRouter,
        transaction_manager: TransactionManager,
        clock: Clock,
        order_create_timeout_seconds: float = 30.0,
    ) -> None:
        self._flight_order_repo = flight_order_repo
        self._booking_repo = booking_repo
        self._traveler_repo = traveler_repo
        self._segment_repo = segment_repo
        self._audit_log = audit_log
        self._notification_sender = notification_sender
        self._provider_router = provider_router
        self._transaction_manager = transaction_manager
        self._clock = clock
        self._timeout = order_create_timeout_seconds
        self._logger = logging.getLogger(__name__)

    def validate(self, request: BookingRequest) -> FlightProviderClient:
        """Local checks that must pass before anything is written or sent upstream.

        Price and expiry on `request.offer` are replaced by the provider's own
        values, so everything downstream charges and books the upstream total.
        """
        provider = self._provider_router.for_offer(request.offer)
        offer = request.offer = verify_offer(request.offer, provider)
        if offer.is_expired(self._clock.now()):
            raise OfferExpiredError(offer.id, offer.expires_at)
        errors = validate_travelers(request.travelers, offer, self._clock.today())
        if errors:
            raise ValidationError("Traveler validation failed", errors=errors)
        if not request.contact or not request.contact.email:
            raise ValidationError("contacts.email is required")
        return provider

    async def find_duplicate(self, request: BookingRequest) -> BookingResult | None:
        existing = await self._flight_order_repo.find_active_by_offer(request.user_id, request.offer.id)
        if existing is None:
            return None
        self._logger.info(
            "Duplicate flight order request, returning existing order",
            extra={"order_number": existing.order_number, "offer_id": request.offer.id},
        )
        booking = (
            await self._booking_repo.get_by_id(existing.booking_id) if existing.booking_id else None
        )
        return BookingResult(
            order=existing,
            booking=booking,
            duplicate=True,
            pending=existing.status == FlightOrderStatus.PENDING,
        )

    async def execute(
        self,
        request: BookingRequest,
        collected_payment: CollectedPayment | None = None,
    ) -> BookingResult:
        provider = self.validate(request)

        duplicate = await self.find_duplicate(request)
        if duplicate is not None:
            return duplicate

        context: SagaContext = {
            "request": request,
            "provider": provider,
            "payment": collected_payment,
        }
        saga = (
            Saga("create_flight_order")
            .step("claim", self._claim, self._release_claim)
            .step("upstream", self._create_upstream, self._cancel_upstream)
            .step("persist", self._persist)
        )
        try:
            await saga.run(context)
        except SagaFailed as exc:
            cause = exc.cause
            if isinstance(cause, DuplicateRequestError):
                replay = await self.find_duplicate(request)
                if replay is not None:
                    return replay
            if isinstance(cause, TimeoutAmbiguousError):
                order: FlightOrder = context["claim"]
                self._logger.warning(
                    "Upstream order creation timed out, outcome unknown",
                    extra={"order_number": order.order_number, "provider": provider.name},
                )
                return BookingResult(order=order, pending=True)
            raise cause from exc

        order, booking, travelers = context["persist"]
        if collected_payment is not None:
            await self._notification_sender.send_ticket_email(order)
        return BookingResult(order=order, booking=booking, travelers=travelers)

    # === Saga steps ===

    async def _claim(self, context: SagaContext) -> FlightOrder:
        request: BookingRequest = context["request"]
        now = self._clock.now()
        order = FlightOrder.claim(
            order_number=ReferenceNumber.order(now),
            user_id=request.user_id,
            offer=request.offer,
            number_of_travelers=len(request.travelers),
            contact_email=request.contact.email,
            contact_phone=request.contact.phone,
            now=now,
        )
        async with self._transaction_manager.start():
            return await self._flight_order_repo.create(order)

    async def _release_claim(self, context: SagaContext, cause: Exception) -> None:
        order: FlightOrder = context["claim"]
        if isinstance(cause, TimeoutAmbiguousError):
            # The upstream order may exist; keep the pair reserved until it is resolved.
            return
        async with self._transaction_manager.start():
            stored = await self._flight_order_repo.get_by_id(order.id)
            if stored is None or stored.status != FlightOrderStatus.PENDING:
                return
            if context["payment"] is not None:
                await self._flight_order_repo.delete(stored.id)
                return
            stored.fail(self._clock.now(), reason=str(cause))
            await self._flight_order_repo.update(stored, expected_statuses={FlightOrderStatus.PENDING})

    async def _create_upstream(self, context: SagaContext) -> ProviderOrder:
        request: BookingRequest = context["request"]
        provider: FlightProviderClient = context["provider"]
        upstream = asyncio.ensure_future(
            provider.create_order(request.offer, request.travelers, request.contact, request.remarks)
        )
        try:
            return await asyncio.wait_for(asyncio.shield(upstream), timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            # The call keeps running; its outcome settles the pending claim later.
            settlement = asyncio.ensure_future(self._settle_late(context, upstream))
            _LATE_SETTLEMENTS.add(settlement)
            settlement.add_done_callback(_LATE_SETTLEMENTS.discard)
            raise TimeoutAmbiguousError("createOrder", self._timeout, provider.name) from exc

    async def _settle_late(self, context: SagaContext, upstream: "asyncio.Future[ProviderOrder]") -> None:
        """Applies the outcome of a createOrder call that outlived the request budget."""
        order: FlightOrder = context["claim"]
        try:
            provider_order = await upstream
        except ProviderError as exc:
            self._logger.warning(
                "Late upstream rejection, failing pending order",
                extra={"order_number": order.order_number, "error": str(exc)},
            )
            async with self._transaction_manager.start():
                order.fail(self._clock.now(), reason=str(exc))
                await self._flight_order_repo.update(order, expected_statuses={FlightOrderStatus.PENDING})
            return
        except Exception as exc:
            # Transport failure: still unknown, the claim stays pending.
            self._logger.error(
                "Late upstream call failed without an answer",
                extra={"order_number": order.order_number, "error": str(exc)},
            )
            return

        # The upstream id goes in first so a poll can resolve the claim if persisting fails.
        async with self._transaction_manager.start():
            order.provider_order_id = provider_order.provider_order_id
            recorded = await self._flight_order_repo.update(
                order, expected_statuses={FlightOrderStatus.PENDING}
            )
        if not recorded:
            self._logger.warning(
                "Pending order changed before the late upstream result arrived",
                extra={"order_number": order.order_number, "provider_order_id": provider_order.provider_order_id},
            )
            return
        context["upstream"] = provider_order
        try:
            await self._persist(context)
        except Exception:
            self._logger.exception(
                "Could not persist late upstream order",
                extra={"order_number": order.order_number, "provider_order_id": provider_order.provider_order_id},
            )

    async def _cancel_upstream(self, context: SagaContext, cause: Exception) -> None:
        provider: FlightProviderClient = context["provider"]
        provider_order: ProviderOrder = context["upstream"]
        self._logger.warning(
            "Cancelling upstream order after failed persistence",
            extra={"provider_order_id": provider_order.provider_order_id, "error": str(cause)},
        )
        await provider.cancel_order(provider_order.provider_order_id)

    async def _persist(self, context: SagaContext) -> tuple[FlightOrder, Booking, list[Traveler]]:
        request: BookingRequest = context["request"]
        order: FlightOrder = context["claim"]
        provider_order: ProviderOrder = context["upstream"]
        payment: CollectedPayment | None = context["payment"]
        now = self._clock.now()

        async with self._transaction_manager.start():
            order.confirm(provider_order, now)
            booking = Booking(
                booking_number=ReferenceNumber.booking(now),
                user_id=request.user_id,
                total_amount=order.total_amount,
                currency_code=order.currency_code,
                contact_email=request.contact.email,
                contact_phone=request.contact.phone,
                product_id=order.id,
                created_at=now,
                updated_at=now,
            )
            if payment is not None:
                order.issue_ticket(payment.amount, now)
                booking.mark_paid(now, payment.payment_method)
            booking = await self._booking_repo.create(booking)

            order.booking_id = booking.id
            stored = await self._flight_order_repo.update(
                order, expected_statuses={FlightOrderStatus.PENDING}
            )
            if not stored:
                raise InvalidOrderStateError("no longer pending", "confirm order")

            for traveler in request.travelers:
                traveler.booking_id = booking.id
                traveler.flight_order_id = order.id
            travelers = await self._traveler_repo.add_many(request.travelers)
            await self._segment_repo.add_many(segments_from_offer(request.offer, order.id))

            await self._audit_log.record(
                AuditEvent(
                    action="flight_order_created",
                    entity="flight_order",
                    entity_id=order.order_number,
                    user_id=request.user_id,
                    details=self._audit_details(order, provider_order),
                )
            )

        self._logger.info(
            "Flight order created",
            extra={
                "order_number": order.order_number,
                "provider": order.provider.provider_name,
                "provider_order_id": order.provider_order_id,
                "pnr": order.pnr,
                "status": order.status.value,
            },
        )
        return order, booking, travelers

    def _audit_details(self, order: FlightOrder, provider_order: ProviderOrder) -> dict[str, Any]:
        return {
            "provider": order.provider.provider_name,
            "providerOrderId": provider_order.provider_order_id,
            "pnr": provider_order.booking_reference,
            "total": str(order.total_amount),
            "currency": order.currency_code,
            "status": order.status.value,
        }
