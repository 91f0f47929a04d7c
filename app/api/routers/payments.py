import json
import logging
from urllib.parse import parse_qsl

from fastapi import APIRouter, Depends, Header, HTTPException, Request, Response, status

from app.api.dependencies import get_caller, get_idempotency_guard, get_use_cases
from app.api.idempotency import replay_or_execute
from app.api.routers.flights import booking_request
from app.api.schemas.flights import CreateOrderRequest
from app.api.schemas.payments import PaymentRefundRequest
from app.api.schemas.serializers import callback_out, checkout_out, payment_out, verification_out
from app.application.dtos.order_dto import Caller
from app.application.interfaces.idempotency_guard import IdempotencyGuard
from app.domain.errors import PostPaymentBookingFailure

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments")


async def _callback_payload(request: Request) -> dict:
    raw_body = await request.body()
    if not raw_body:
        return {}
    if "application/json" in request.headers.get("content-type", ""):
        try:
            payload = json.loads(raw_body)
        except ValueError:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON body")
        if not isinstance(payload, dict):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Callback body must be an object")
        return payload
    # Return-URL posts from the hosted page arrive form encoded.
    return dict(parse_qsl(raw_body.decode("utf-8")))


async def _checkout(
    flow: str,
    gateway: str,
    payload: CreateOrderRequest,
    caller: Caller,
    idem_key: str | None,
    guard: IdempotencyGuard,
    use_cases,
) -> Response:
    async def handler():
        orchestrator = use_cases["payments"]
        request = booking_request(caller, payload)
        if flow == "book-and-pay":
            result = await orchestrator.book_then_pay(gateway, request)
        else:
            result = await orchestrator.pay_then_book(gateway, request)
        if result.pending:
            return status.HTTP_202_ACCEPTED, checkout_out(result)
        code = status.HTTP_200_OK if result.duplicate else status.HTTP_201_CREATED
        return code, checkout_out(result)

    return await replay_or_execute(
        guard,
        idem_key,
        scope=f"{caller.user_id}:{gateway}:{flow}",
        payload=payload.model_dump(mode="json", by_alias=True),
        handler=handler,
    )


@router.post("/{gateway}/book-and-pay")
async def book_and_pay(
    gateway: str,
    payload: CreateOrderRequest,
    caller: Caller = Depends(get_caller),
    idem_key: str | None = Header(default=None, convert_underscores=False, alias="Idempotency-Key"),
    guard: IdempotencyGuard = Depends(get_idempotency_guard),
    use_cases=Depends(get_use_cases),
) -> Response:
    return await _checkout("book-and-pay", gateway, payload, caller, idem_key, guard, use_cases)


@router.post("/{gateway}/pay-then-book")
async def pay_then_book(
    gateway: str,
    payload: CreateOrderRequest,
    caller: Caller = Depends(get_caller),
    idem_key: str | None = Header(default=None, convert_underscores=False, alias="Idempotency-Key"),
    guard: IdempotencyGuard = Depends(get_idempotency_guard),
    use_cases=Depends(get_use_cases),
) -> Response:
    return await _checkout("pay-then-book", gateway, payload, caller, idem_key, guard, use_cases)


async def _handle_callback(gateway: str, request: Request, use_cases) -> dict:
    payload = await _callback_payload(request)
    try:
        outcome = await use_cases["payments"].handle_callback(gateway, payload)
    except PostPaymentBookingFailure as exc:
        # The gateway only needs an acknowledgement; the failure is already settled.
        logger.error(
            "Booking failed after payment",
            extra={"payment_id": exc.payment_id, "refunded": exc.refunded, "reason": exc.reason},
        )
        return {
            "success": False,
            "message": exc.message,
            "refunded": exc.refunded,
            "manualReview": exc.manual_review,
        }
    return callback_out(outcome)


@router.post("/{gateway}/callback")
async def payment_callback(gateway: str, request: Request, use_cases=Depends(get_use_cases)) -> dict:
    return await _handle_callback(gateway, request, use_cases)


@router.post("/{gateway}/pay-then-book-callback")
async def pay_then_book_callback(gateway: str, request: Request, use_cases=Depends(get_use_cases)) -> dict:
    return await _handle_callback(gateway, request, use_cases)


@router.get("/{gateway}/verify/{transaction_ref}")
async def verify_payment(gateway: str, transaction_ref: str, use_cases=Depends(get_use_cases)) -> dict:
    return verification_out(await use_cases["payments"].verify(gateway, transaction_ref))


@router.post("/{gateway}/refund")
async def refund_payment(
    gateway: str,
    payload: PaymentRefundRequest,
    caller: Caller = Depends(get_caller),
    use_cases=Depends(get_use_cases),
) -> dict:
    payment = await use_cases["payments"].refund(
        gateway, payload.payment_id, caller, payload.amount, payload.reason
    )
    return {"success": True, "payment": payment_out(payment)}
