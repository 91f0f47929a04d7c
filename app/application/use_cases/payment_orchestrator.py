"""
Payment flows around flight bookings.

Two orderings are supported:

- book-then-pay: the upstream order is created first and the customer pays on
  a hosted page afterwards. The gateway callback issues the ticket.
- pay-then-book: the customer pays first. Offer, travelers and contact wait in
  the payment record until the verified callback books the flight. A booking
  failure after capture always ends in a refund or a manual-review flag.
"""

import logging
from decimal import Decimal
from typing import Any

from app.application.dtos.order_dto import Caller
from app.application.dtos.payment_dto import CallbackOutcome, CheckoutResult
from app.application.interfaces.audit_log import AuditEvent, AuditLog
from app.application.interfaces.booking_repo import BookingRepo
from app.application.interfaces.clock import Clock
from app.application.interfaces.flight_order_repo import FlightOrderRepo
from app.application.interfaces.notification_sender import NotificationSender
from app.application.interfaces.payment_gateway import (
    ChargePage,
    ChargeRequest,
    PaymentGateway,
    PaymentVerification,
)
from app.application.interfaces.payment_repo import PaymentRepo
from app.application.interfaces.transaction_manager import TransactionManager
from app.application.services.gateway_registry import PaymentGatewayRegistry
from app.application.services.provider_router import ProviderRouter
from app.application.services.saga import Saga, SagaContext, SagaFailed
from app.application.use_cases.create_flight_order import (
    BookingRequest,
    BookingResult,
    CollectedPayment,
    CreateFlightOrderUseCase,
)
from app.domain.entities.flight_offer import FlightOffer
from app.domain.entities.flight_order import FlightOrderStatus
from app.domain.entities.payment import Payment, PaymentFlow, PaymentStatus
from app.domain.entities.traveler import ContactInfo, Traveler
from app.domain.errors import (
    DuplicateRequestError,
    ForbiddenError,
    NotFoundError,
    PaymentVerificationFailed,
    PostPaymentBookingFailure,
    TimeoutAmbiguousError,
    ValidationError,
)
from app.domain.value_objects.money import MINOR_UNIT
from app.domain.value_objects.reference_number import ReferenceNumber


class PaymentOrchestrator:
    def __init__(
        self,
        create_flight_order: CreateFlightOrderUseCase,
        payment_repo: PaymentRepo,
        booking_repo: BookingRepo,
        flight_order_repo: FlightOrderRepo,
        audit_log: AuditLog,
        notification_sender: NotificationSender,
        provider_router: ProviderRouter,
        gateways: PaymentGatewayRegistry,
        transaction_manager: TransactionManager,
        clock: Clock,
        return_url: str | None = None,
        callback_base_url: str | None = None,
    ) -> None:
        self._create_flight_order = create_flight_order
        self._payment_repo = payment_repo
        self._booking_repo = booking_repo
        self._flight_order_repo = flight_order_repo
        self._audit_log = audit_log
        self._notification_sender = notification_sender
        self._provider_router = provider_router
        self._gateways = gateways
        self._transaction_manager = transaction_manager
        self._clock = clock
        self._return_url = return_url
        self._callback_base_url = (callback_base_url or "").rstrip("/")
        self._logger = logging.getLogger(__name__)

    # === Book-then-pay ===

    async def book_then_pay(self, gateway_name: str, request: BookingRequest) -> CheckoutResult:
        gateway = self._gateways.get(gateway_name)
        self._create_flight_order.validate(request)

        duplicate = await self._create_flight_order.find_duplicate(request)
        if duplicate is not None:
            return await self._replay_checkout(duplicate)

        context: SagaContext = {"request": request, "gateway": gateway}
        saga = (
            Saga("book_then_pay")
            .step("book", self._book_unpaid, self._void_booking)
            .step("charge", self._open_charge_page)
            .step("record", self._record_pending_payment)
        )
        try:
            await saga.run(context)
        except SagaFailed as exc:
            if isinstance(exc.cause, TimeoutAmbiguousError) and "pending_order" in context:
                return CheckoutResult(order=context["pending_order"], pending=True)
            raise exc.cause from exc

        booked: BookingResult = context["book"]
        page: ChargePage = context["charge"]
        return CheckoutResult(
            payment=context["record"],
            payment_url=page.payment_url,
            transaction_ref=page.transaction_ref,
            order=booked.order,
            booking=booked.booking,
        )

    async def _book_unpaid(self, context: SagaContext) -> BookingResult:
        result = await self._create_flight_order.execute(context["request"])
        if result.duplicate:
            raise DuplicateRequestError(result.order.user_id, result.order.upstream_offer_id)
        if result.pending:
            context["pending_order"] = result.order
            raise TimeoutAmbiguousError("createOrder")
        return result

    async def _void_booking(self, context: SagaContext, cause: Exception) -> None:
        booked: BookingResult = context["book"]
        order = booked.order
        self._logger.warning(
            "Charge page could not be created, cancelling held booking",
            extra={"order_number": order.order_number, "error": str(cause)},
        )
        if order.provider_order_id:
            provider = self._provider_router.for_kind(order.provider)
            await provider.cancel_order(order.provider_order_id)
        now = self._clock.now()
        async with self._transaction_manager.start():
            order.cancel(now)
            await self._flight_order_repo.update(order, expected_statuses={FlightOrderStatus.CONFIRMED})
            if booked.booking is not None:
                booked.booking.cancel(now)
                await self._booking_repo.update(booked.booking)

    async def _open_charge_page(self, context: SagaContext) -> ChargePage:
        request: BookingRequest = context["request"]
        booked: BookingResult = context["book"]
        gateway: PaymentGateway = context["gateway"]
        order = booked.order
        return await gateway.create_charge_page(
            self._charge_request(
                gateway=gateway,
                amount=order.total_amount,
                currency=order.currency_code,
                cart_id=booked.booking.booking_number,
                description=f"Flight booking {order.order_number}",
                request=request,
                callback_path="callback",
            )
        )

    async def _record_pending_payment(self, context: SagaContext) -> Payment:
        request: BookingRequest = context["request"]
        booked: BookingResult = context["book"]
        gateway: PaymentGateway = context["gateway"]
        page: ChargePage = context["charge"]
        now = self._clock.now()
        payment = Payment(
            user_id=request.user_id,
            gateway=gateway.name,
            amount=booked.order.total_amount,
            currency_code=booked.order.currency_code,
            flow=PaymentFlow.BOOK_THEN_PAY,
            booking_id=booked.booking.id,
            transaction_ref=page.transaction_ref,
            cart_id=page.cart_id,
            details={
                "flow": PaymentFlow.BOOK_THEN_PAY.value,
                "orderNumber": booked.order.order_number,
                "paymentUrl": page.payment_url,
            },
            created_at=now,
            updated_at=now,
        )
        async with self._transaction_manager.start():
            payment = await self._payment_repo.create(payment)
        self._logger.info(
            "Book-then-pay checkout created",
            extra={
                "order_number": booked.order.order_number,
                "payment_id": payment.id,
                "transaction_ref": page.transaction_ref,
            },
        )
        return payment

    async def _replay_checkout(self, duplicate: BookingResult) -> CheckoutResult:
        payment = None
        if duplicate.booking is not None:
            payments = await self._payment_repo.list_by_booking(duplicate.booking.id)
            payment = payments[-1] if payments else None
        return CheckoutResult(
            payment=payment,
            payment_url=payment.details.get("paymentUrl") if payment else None,
            transaction_ref=payment.transaction_ref if payment else None,
            order=duplicate.order,
            booking=duplicate.booking,
            duplicate=True,
            pending=duplicate.pending,
        )

    # === Pay-then-book ===

    async def pay_then_book(self, gateway_name: str, request: BookingRequest) -> CheckoutResult:
        gateway = self._gateways.get(gateway_name)
        self._create_flight_order.validate(request)

        duplicate = await self._create_flight_order.find_duplicate(request)
        if duplicate is not None:
            return await self._replay_checkout(duplicate)

        offer = request.offer
        now = self._clock.now()
        cart_id = ReferenceNumber.cart(now, temporary=True)
        page = await gateway.create_charge_page(
            self._charge_request(
                gateway=gateway,
                amount=offer.price.total,
                currency=offer.price.currency,
                cart_id=cart_id,
                description=self._describe(offer),
                request=request,
                callback_path="pay-then-book-callback",
            )
        )

        payment = Payment(
            user_id=request.user_id,
            gateway=gateway.name,
            amount=offer.price.total,
            currency_code=offer.price.currency,
            flow=PaymentFlow.PAY_THEN_BOOK,
            transaction_ref=page.transaction_ref,
            cart_id=page.cart_id,
            details={
                "flow": PaymentFlow.PAY_THEN_BOOK.value,
                "paymentUrl": page.payment_url,
                "flightOffer": offer.to_snapshot(),
                "travelers": [traveler.to_snapshot() for traveler in request.travelers],
                "contact": request.contact.to_snapshot(),
                "remarks": request.remarks,
            },
            created_at=now,
            updated_at=now,
        )
        async with self._transaction_manager.start():
            payment = await self._payment_repo.create(payment)

        self._logger.info(
            "Pay-then-book checkout created",
            extra={"payment_id": payment.id, "cart_id": cart_id, "offer_id": offer.id},
        )
        return CheckoutResult(
            payment=payment,
            payment_url=page.payment_url,
            transaction_ref=page.transaction_ref,
        )

    # === Gateway callback ===

    async def handle_callback(self, gateway_name: str, payload: dict[str, Any]) -> CallbackOutcome:
        """Completes a payment after the gateway confirms it. Callback bodies are never trusted."""
        gateway = self._gateways.get(gateway_name)
        reference = gateway.extract_callback_reference(payload)
        payment = await self._find_payment(reference.transaction_ref, reference.cart_id)

        if payment.status != PaymentStatus.PENDING:
            self._logger.info(
                "Payment callback already processed",
                extra={"payment_id": payment.id, "status": payment.status.value},
            )
            return await self._outcome(payment, already_processed=True)

        verification = await gateway.verify_payment(payment.transaction_ref)
        failure = self._verification_failure(payment, verification)
        if failure is not None:
            await self._reject_payment(payment, verification, failure)
            raise PaymentVerificationFailed(payment.transaction_ref, failure)

        if payment.flow == PaymentFlow.BOOK_THEN_PAY:
            return await self._complete_book_then_pay(payment, verification)
        return await self._complete_pay_then_book(payment, verification)

    def _verification_failure(self, payment: Payment, verification: PaymentVerification) -> str | None:
        if not verification.approved:
            return verification.message or verification.status or "payment not approved"
        if verification.amount is not None and abs(verification.amount - payment.amount) > MINOR_UNIT:
            return f"amount mismatch: charged {verification.amount}, expected {payment.amount}"
        if verification.currency and verification.currency.upper() != payment.currency_code:
            return f"currency mismatch: charged {verification.currency}, expected {payment.currency_code}"
        return None

    async def _reject_payment(self, payment: Payment, verification: PaymentVerification, reason: str) -> None:
        async with self._transaction_manager.start():
            payment.fail(self._clock.now())
            payment.gateway_response = verification.raw
            await self._payment_repo.update(payment, expected_statuses={PaymentStatus.PENDING})
            await self._audit_log.record(
                AuditEvent(
                    action="payment_failed",
                    entity="payment",
                    entity_id=str(payment.id),
                    user_id=payment.user_id,
                    details={"transactionRef": payment.transaction_ref, "reason": reason},
                    status="failure",
                )
            )
        self._logger.warning(
            "Payment verification failed",
            extra={"payment_id": payment.id, "transaction_ref": payment.transaction_ref, "reason": reason},
        )

    async def _capture(self, payment: Payment, verification: PaymentVerification) -> bool:
        payment.complete(self._clock.now(), verification.payment_method)
        payment.gateway_response = verification.raw
        return await self._payment_repo.update(payment, expected_statuses={PaymentStatus.PENDING})

    async def _complete_book_then_pay(
        self, payment: Payment, verification: PaymentVerification
    ) -> CallbackOutcome:
        now = self._clock.now()
        async with self._transaction_manager.start():
            if not await self._capture(payment, verification):
                return await self._outcome(await self._reload(payment), already_processed=True)

            booking = order = None
            if payment.booking_id:
                booking = await self._booking_repo.get_by_id(payment.booking_id)
                order = await self._flight_order_repo.get_by_booking_id(payment.booking_id)
            if booking is not None:
                booking.mark_paid(now, payment.payment_method)
                await self._booking_repo.update(booking)

            ticketed = False
            if order is not None and order.status == FlightOrderStatus.CONFIRMED:
                order.issue_ticket(payment.amount, now)
                ticketed = await self._flight_order_repo.update(
                    order, expected_statuses={FlightOrderStatus.CONFIRMED}
                )
            if not ticketed:
                payment.flag_manual_review("order was not in a ticketable state when payment arrived", now)
                await self._payment_repo.update(payment)
                self._logger.error(
                    "Payment collected for an order that cannot be ticketed",
                    extra={
                        "payment_id": payment.id,
                        "order_number": order.order_number if order else None,
                        "status": order.status.value if order else None,
                    },
                )

            await self._audit_log.record(
                AuditEvent(
                    action="payment_completed",
                    entity="payment",
                    entity_id=str(payment.id),
                    user_id=payment.user_id,
                    details={
                        "flow": payment.flow.value,
                        "transactionRef": payment.transaction_ref,
                        "orderNumber": order.order_number if order else None,
                    },
                )
            )

        if order is not None and ticketed:
            await self._notification_sender.send_ticket_email(order)
        return CallbackOutcome(payment=payment, order=order, booking=booking)

    async def _complete_pay_then_book(
        self, payment: Payment, verification: PaymentVerification
    ) -> CallbackOutcome:
        async with self._transaction_manager.start():
            if not await self._capture(payment, verification):
                return await self._outcome(await self._reload(payment), already_processed=True)

        context: SagaContext = {"payment": payment}
        saga = (
            Saga("pay_then_book")
            .step("capture", self._captured, self._refund_capture)
            .step("book", self._book_paid)
        )
        try:
            await saga.run(context)
        except SagaFailed as exc:
            refunded = payment.status == PaymentStatus.REFUNDED
            manual_review = payment.needs_manual_review or not refunded
            await self._audit_log.record(
                AuditEvent(
                    action="post_payment_booking_failed",
                    entity="payment",
                    entity_id=str(payment.id),
                    user_id=payment.user_id,
                    details={
                        "reason": str(exc.cause),
                        "refunded": refunded,
                        "manualReview": manual_review,
                    },
                    status="failure",
                )
            )
            raise PostPaymentBookingFailure(payment.id, refunded, manual_review, str(exc.cause)) from exc

        booked: BookingResult = context["book"]
        async with self._transaction_manager.start():
            payment.booking_id = booked.booking.id
            payment.details = {**payment.details, "orderNumber": booked.order.order_number}
            payment.updated_at = self._clock.now()
            await self._payment_repo.update(payment)
            await self._audit_log.record(
                AuditEvent(
                    action="payment_completed",
                    entity="payment",
                    entity_id=str(payment.id),
                    user_id=payment.user_id,
                    details={
                        "flow": payment.flow.value,
                        "transactionRef": payment.transaction_ref,
                        "orderNumber": booked.order.order_number,
                    },
                )
            )
        return CallbackOutcome(payment=payment, order=booked.order, booking=booked.booking)

    async def _captured(self, context: SagaContext) -> Payment:
        return context["payment"]

    async def _book_paid(self, context: SagaContext) -> BookingResult:
        payment: Payment = context["payment"]
        request = self._request_from_details(payment)
        result = await self._create_flight_order.execute(
            request, CollectedPayment(amount=payment.amount, payment_method=payment.payment_method)
        )
        if result.pending:
            raise TimeoutAmbiguousError("createOrder")
        if result.duplicate:
            raise DuplicateRequestError(payment.user_id, request.offer.id)
        return result

    async def _refund_capture(self, context: SagaContext, cause: Exception) -> None:
        payment: Payment = context["payment"]
        if isinstance(cause, TimeoutAmbiguousError):
            # The upstream order may exist; refunding now could leave a paid-for seat unpaid.
            await self._escalate(payment, f"booking outcome unknown after payment: {cause}")
            return

        gateway = self._gateways.get(payment.gateway)
        async with self._transaction_manager.start():
            payment.start_refund(self._clock.now())
            await self._payment_repo.update(payment, expected_statuses={PaymentStatus.COMPLETED})

        try:
            result = await gateway.refund(
                payment.transaction_ref,
                payment.amount,
                payment.currency_code,
                "Booking failed after payment",
            )
        except Exception as exc:
            await self._escalate(payment, f"refund failed: {exc}")
            raise

        if not result.success:
            await self._escalate(payment, f"refund declined: {result.message}")
            return

        async with self._transaction_manager.start():
            payment.mark_refunded(payment.amount, self._clock.now())
            await self._payment_repo.update(payment)
        self._logger.warning(
            "Payment refunded after booking failure",
            extra={"payment_id": payment.id, "amount": str(payment.amount), "reason": str(cause)},
        )

    async def _escalate(self, payment: Payment, reason: str) -> None:
        async with self._transaction_manager.start():
            payment.flag_manual_review(reason, self._clock.now())
            await self._payment_repo.update(payment)
        self._logger.error(
            "Payment escalated to manual review",
            extra={"payment_id": payment.id, "transaction_ref": payment.transaction_ref, "reason": reason},
        )

    # === Verification and admin refunds ===

    async def verify(self, gateway_name: str, transaction_ref: str) -> PaymentVerification:
        return await self._gateways.get(gateway_name).verify_payment(transaction_ref)

    async def refund(
        self,
        gateway_name: str,
        payment_id: int,
        caller: Caller,
        amount: Decimal | None = None,
        reason: str | None = None,
    ) -> Payment:
        if not caller.is_admin:
            raise ForbiddenError("Admin role required")
        payment = await self._payment_repo.get_by_id(payment_id)
        if payment is None:
            raise NotFoundError("Payment", payment_id)
        if payment.status != PaymentStatus.COMPLETED:
            raise ValidationError(f"Only completed payments can be refunded (status: {payment.status.value})")
        amount = payment.amount if amount is None else amount
        if amount <= 0 or amount > payment.amount:
            raise ValidationError(f"Refund amount must be between 0 and {payment.amount}")

        if gateway_name.lower() != payment.gateway:
            raise ValidationError(f"Payment {payment_id} was collected through {payment.gateway}, not {gateway_name}")

        gateway = self._gateways.get(gateway_name)
        async with self._transaction_manager.start():
            payment.start_refund(self._clock.now())
            started = await self._payment_repo.update(payment, expected_statuses={PaymentStatus.COMPLETED})
        if not started:
            raise ValidationError("A refund for this payment is already in progress")

        try:
            result = await gateway.refund(payment.transaction_ref, amount, payment.currency_code, reason)
        except Exception as exc:
            await self._escalate(payment, f"refund failed: {exc}")
            raise
        now = self._clock.now()
        async with self._transaction_manager.start():
            if not result.success:
                payment.flag_manual_review(f"refund declined: {result.message}", now)
                await self._payment_repo.update(payment)
                raise ValidationError(f"Refund was declined by the gateway: {result.message}")
            payment.mark_refunded(amount, now)
            await self._payment_repo.update(payment)
            if payment.status == PaymentStatus.REFUNDED and payment.booking_id:
                booking = await self._booking_repo.get_by_id(payment.booking_id)
                if booking is not None:
                    booking.mark_refunded(now)
                    await self._booking_repo.update(booking)
            await self._audit_log.record(
                AuditEvent(
                    action="payment_refunded",
                    entity="payment",
                    entity_id=str(payment.id),
                    user_id=caller.user_id,
                    details={"amount": str(amount), "reason": reason, "refundRef": result.refund_ref},
                )
            )
        return payment

    # === Helpers ===

    async def _find_payment(self, transaction_ref: str | None, cart_id: str | None) -> Payment:
        payment = None
        if transaction_ref:
            payment = await self._payment_repo.find_by_transaction_ref(transaction_ref)
        if payment is None and cart_id:
            payment = await self._payment_repo.find_by_cart_id(cart_id)
        if payment is None:
            raise NotFoundError("Payment", transaction_ref or cart_id)
        return payment

    async def _reload(self, payment: Payment) -> Payment:
        return await self._payment_repo.get_by_id(payment.id) or payment

    async def _outcome(self, payment: Payment, already_processed: bool = False) -> CallbackOutcome:
        booking = order = None
        if payment.booking_id:
            booking = await self._booking_repo.get_by_id(payment.booking_id)
            order = await self._flight_order_repo.get_by_booking_id(payment.booking_id)
        return CallbackOutcome(
            payment=payment, order=order, booking=booking, already_processed=already_processed
        )

    def _request_from_details(self, payment: Payment) -> BookingRequest:
        details = payment.details
        return BookingRequest(
            user_id=payment.user_id,
            offer=FlightOffer.from_snapshot(details["flightOffer"]),
            travelers=[Traveler.from_snapshot(item) for item in details.get("travelers", [])],
            contact=ContactInfo.from_snapshot(details["contact"]),
            remarks=details.get("remarks"),
        )

    def _charge_request(
        self,
        gateway: PaymentGateway,
        amount: Decimal,
        currency: str,
        cart_id: str,
        description: str,
        request: BookingRequest,
        callback_path: str,
    ) -> ChargeRequest:
        lead = request.travelers[0] if request.travelers else None
        name = request.contact.name or (f"{lead.first_name} {lead.last_name}" if lead else None)
        callback_url = (
            f"{self._callback_base_url}/{gateway.name}/{callback_path}" if self._callback_base_url else None
        )
        return ChargeRequest(
            amount=amount,
            currency=currency,
            cart_id=cart_id,
            description=description,
            customer_name=name,
            customer_email=request.contact.email,
            customer_phone=request.contact.phone,
            return_url=self._return_url,
            callback_url=callback_url,
        )

    def _describe(self, offer: FlightOffer) -> str:
        segments = offer.segments
        if not segments:
            return f"Flight offer {offer.id}"
        return f"Flight {segments[0].departure.iata_code}-{segments[-1].arrival.iata_code}"
