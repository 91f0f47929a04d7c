import logging
from decimal import Decimal

from app.application.dtos.order_dto import CancellationOutcome, Caller, RefundQuote
from app.application.interfaces.audit_log import AuditEvent, AuditLog
from app.application.interfaces.booking_repo import BookingRepo
from app.application.interfaces.clock import Clock
from app.application.interfaces.flight_order_repo import FlightOrderRepo
from app.application.interfaces.notification_sender import NotificationSender
from app.application.interfaces.payment_repo import PaymentRepo
from app.application.interfaces.transaction_manager import TransactionManager
from app.application.services.gateway_registry import PaymentGatewayRegistry
from app.application.services.provider_router import ProviderRouter
from app.application.use_cases.get_flight_orders import find_owned_order
from app.domain.entities.flight_order import (
    CANCELLABLE_STATUSES,
    FlightOrder,
    FlightOrderStatus,
    sources_for,
)
from app.domain.entities.payment import Payment, PaymentStatus
from app.domain.entities.provider_order import CancellationResult
from app.domain.errors import InvalidOrderStateError
from app.domain.value_objects.money import quantize, to_decimal


def _ensure_cancellable(order: FlightOrder, operation: str) -> None:
    if order.status not in CANCELLABLE_STATUSES:
        raise InvalidOrderStateError(order.status.value, operation)


def quote_refund(order: FlightOrder) -> RefundQuote:
    """Refund estimate from the fare conditions captured with the offer."""
    conditions = order.flight_offer_data.get("conditions") or {}
    currency = conditions.get("penaltyCurrency") or order.currency_code
    if not conditions.get("refundAllowed"):
        return RefundQuote(
            refundable=False,
            penalty_amount=Decimal("0.00"),
            estimated_refund=Decimal("0.00"),
            currency=currency,
        )
    penalty = quantize(to_decimal(conditions.get("refundPenalty")))
    estimate = max(Decimal("0.00"), quantize(order.total_amount - penalty))
    return RefundQuote(
        refundable=True, penalty_amount=penalty, estimated_refund=estimate, currency=currency
    )


class CancelFlightOrderUseCase:
    """Cancels upstream first, then the local order with a cascade to its booking."""

    def __init__(
        self,
        flight_order_repo: FlightOrderRepo,
        booking_repo: BookingRepo,
        audit_log: AuditLog,
        notification_sender: NotificationSender,
        provider_router: ProviderRouter,
        transaction_manager: TransactionManager,
        clock: Clock,
    ) -> None:
        self._flight_order_repo = flight_order_repo
        self._booking_repo = booking_repo
        self._audit_log = audit_log
        self._notification_sender = notification_sender
        self._provider_router = provider_router
        self._transaction_manager = transaction_manager
        self._clock = clock
        self._logger = logging.getLogger(__name__)

    async def execute(self, identifier: str, caller: Caller) -> CancellationOutcome:
        order = await find_owned_order(self._flight_order_repo, identifier, caller)
        _ensure_cancellable(order, "cancel order")

        cancellation = await self._cancel_upstream(order)
        refund_amount = cancellation.refund_amount if cancellation else None
        now = self._clock.now()
        async with self._transaction_manager.start():
            order.cancel(now)
            stored = await self._flight_order_repo.update(
                order, expected_statuses=sources_for(FlightOrderStatus.CANCELLED)
            )
            if not stored:
                raise InvalidOrderStateError("changed concurrently", "cancel order")
            if order.booking_id:
                booking = await self._booking_repo.get_by_id(order.booking_id)
                if booking is not None:
                    booking.cancel(now)
                    await self._booking_repo.update(booking)
            await self._audit_log.record(
                AuditEvent(
                    action="flight_order_cancelled",
                    entity="flight_order",
                    entity_id=order.order_number,
                    user_id=caller.user_id,
                    details={
                        "providerOrderId": order.provider_order_id,
                        "refundAmount": str(refund_amount) if refund_amount is not None else None,
                    },
                )
            )

        await self._notification_sender.send_cancellation_notice(order)
        self._logger.info(
            "Flight order cancelled",
            extra={"order_number": order.order_number, "cancelled_by": caller.user_id},
        )
        return CancellationOutcome(
            order=order,
            refund_amount=refund_amount,
            refund_currency=cancellation.refund_currency if cancellation else None,
        )

    async def _cancel_upstream(self, order: FlightOrder) -> CancellationResult | None:
        if not order.provider_order_id:
            return None
        provider = self._provider_router.for_kind(order.provider)
        return await provider.cancel_order(order.provider_order_id)


class GetRefundQuoteUseCase:
    def __init__(self, flight_order_repo: FlightOrderRepo) -> None:
        self._flight_order_repo = flight_order_repo

    async def execute(self, identifier: str, caller: Caller) -> RefundQuote:
        order = await find_owned_order(self._flight_order_repo, identifier, caller)
        _ensure_cancellable(order, "quote refund")
        return quote_refund(order)


class RefundFlightOrderUseCase:
    """
    Cancels the order upstream and returns the collected money.

    The refunded amount is the lower of what was paid and the fare-rule estimate.
    Without a collected payment the order just ends cancelled.
    """

    def __init__(
        self,
        flight_order_repo: FlightOrderRepo,
        booking_repo: BookingRepo,
        payment_repo: PaymentRepo,
        audit_log: AuditLog,
        notification_sender: NotificationSender,
        provider_router: ProviderRouter,
        gateways: PaymentGatewayRegistry,
        transaction_manager: TransactionManager,
        clock: Clock,
    ) -> None:
        self._flight_order_repo = flight_order_repo
        self._booking_repo = booking_repo
        self._payment_repo = payment_repo
        self._audit_log = audit_log
        self._notification_sender = notification_sender
        self._provider_router = provider_router
        self._gateways = gateways
        self._transaction_manager = transaction_manager
        self._clock = clock
        self._logger = logging.getLogger(__name__)

    async def execute(self, identifier: str, caller: Caller, reason: str | None = None) -> CancellationOutcome:
        order = await find_owned_order(self._flight_order_repo, identifier, caller)
        _ensure_cancellable(order, "refund order")
        quote = quote_refund(order)

        cancellation = None
        if order.provider_order_id:
            provider = self._provider_router.for_kind(order.provider)
            cancellation = await provider.cancel_order(order.provider_order_id)

        payment = await self._collected_payment(order)
        refunded_amount = Decimal("0.00")
        if payment is not None:
            refunded_amount = min(payment.amount, quote.estimated_refund)
        if payment is not None and refunded_amount > 0:
            await self._refund_payment(payment, refunded_amount, reason)

        now = self._clock.now()
        async with self._transaction_manager.start():
            booking = await self._booking_repo.get_by_id(order.booking_id) if order.booking_id else None
            if refunded_amount > 0:
                order.refund(now)
                target = FlightOrderStatus.REFUNDED
                if booking is not None:
                    booking.mark_refunded(now)
            else:
                order.cancel(now)
                target = FlightOrderStatus.CANCELLED
                if booking is not None:
                    booking.cancel(now)
            stored = await self._flight_order_repo.update(order, expected_statuses=sources_for(target))
            if not stored:
                raise InvalidOrderStateError("changed concurrently", "refund order")
            if booking is not None:
                await self._booking_repo.update(booking)
            await self._audit_log.record(
                AuditEvent(
                    action="flight_order_refunded",
                    entity="flight_order",
                    entity_id=order.order_number,
                    user_id=caller.user_id,
                    details={
                        "refundedAmount": str(refunded_amount),
                        "currency": order.currency_code,
                        "status": order.status.value,
                        "reason": reason,
                    },
                )
            )

        await self._notification_sender.send_cancellation_notice(order)
        return CancellationOutcome(
            order=order,
            refund_amount=refunded_amount,
            refund_currency=payment.currency_code if payment else order.currency_code,
        )

    async def _collected_payment(self, order: FlightOrder) -> Payment | None:
        if not order.booking_id:
            return None
        payments = await self._payment_repo.list_by_booking(order.booking_id)
        completed = [p for p in payments if p.status == PaymentStatus.COMPLETED]
        return completed[-1] if completed else None

    async def _refund_payment(self, payment: Payment, amount: Decimal, reason: str | None) -> None:
        gateway = self._gateways.get(payment.gateway)
        now = self._clock.now()
        async with self._transaction_manager.start():
            payment.start_refund(now)
            started = await self._payment_repo.update(payment, expected_statuses={PaymentStatus.COMPLETED})
        if not started:
            raise InvalidOrderStateError("refund already in progress", "refund payment")

        try:
            result = await gateway.refund(
                payment.transaction_ref, amount, payment.currency_code, reason or "Flight order refund"
            )
        except Exception as exc:
            self._logger.error(
                "Gateway refund raised, payment flagged for manual review",
                extra={"payment_id": payment.id, "error": str(exc)},
            )
            async with self._transaction_manager.start():
                payment.flag_manual_review(f"refund failed: {exc}", self._clock.now())
                await self._payment_repo.update(payment)
            raise
        async with self._transaction_manager.start():
            if result.success:
                payment.mark_refunded(amount, self._clock.now())
            else:
                self._logger.error(
                    "Gateway refund failed, payment flagged for manual review",
                    extra={"payment_id": payment.id, "message": result.message},
                )
                payment.flag_manual_review(result.message or "refund failed", self._clock.now())
            await self._payment_repo.update(payment)
