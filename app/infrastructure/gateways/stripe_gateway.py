import logging
from decimal import Decimal
from typing import Any

import stripe

from app.application.interfaces.payment_gateway import (
    CallbackReference,
    ChargePage,
    ChargeRequest,
    PaymentGateway,
    PaymentVerification,
    RefundResult,
)
from app.domain.errors import ProviderError, ProviderErrorKind
from app.domain.value_objects.money import Money
from app.infrastructure.circuit_breaker import CircuitBreakerError, stripe_breaker

logger = logging.getLogger(__name__)

PAID = "paid"


class StripeGateway(PaymentGateway):
    """
    Stripe Checkout as a hosted payment page.

    The checkout session id plays the role of the transaction reference and the
    cart id travels as `client_reference_id`.
    """

    name = "stripe"

    def __init__(self, api_key: str, timeout_seconds: float = 10.0) -> None:
        stripe.api_key = api_key
        # Upstream calls are never retried automatically.
        stripe.max_network_retries = 0
        # The SDK call is blocking, so the connection timeout is the only bound on it.
        stripe.default_http_client = stripe.RequestsClient(timeout=timeout_seconds)

    def _call(self, operation: str, func, **kwargs):
        # stripe has no async client; the sync call runs inline
        try:
            return stripe_breaker.call(func, **kwargs)
        except CircuitBreakerError as exc:
            logger.error("Stripe circuit breaker is open - service unavailable", extra={"operation": operation})
            raise ProviderError(
                ProviderErrorKind.UPSTREAM_UNAVAILABLE, "stripe is temporarily unavailable", provider=self.name
            ) from exc
        except stripe.StripeError as exc:
            logger.error("Stripe API error", exc_info=exc, extra={"operation": operation})
            status = getattr(exc, "http_status", None)
            kind = (
                ProviderErrorKind.INVALID_REQUEST
                if status is not None and 400 <= status < 500
                else ProviderErrorKind.UPSTREAM_UNAVAILABLE
            )
            raise ProviderError(kind, str(exc), provider=self.name, http_status=status) from exc

    async def create_charge_page(self, request: ChargeRequest) -> ChargePage:
        amount = Money(request.amount, request.currency)
        params: dict[str, Any] = {
            "mode": "payment",
            "client_reference_id": request.cart_id,
            "line_items": [
                {
                    "quantity": 1,
                    "price_data": {
                        "currency": amount.currency_code.lower(),
                        "unit_amount": amount.to_cents(),
                        "product_data": {"name": request.description},
                    },
                }
            ],
            "metadata": {"cart_id": request.cart_id},
            "success_url": request.return_url or request.callback_url,
            "cancel_url": request.return_url or request.callback_url,
        }
        if request.customer_email:
            params["customer_email"] = request.customer_email

        session = self._call("createCheckoutSession", stripe.checkout.Session.create, **params)
        logger.info("Stripe checkout session created", extra={"cart_id": request.cart_id, "session_id": session.id})
        return ChargePage(
            transaction_ref=session.id,
            payment_url=session.url,
            cart_id=request.cart_id,
            gateway=self.name,
        )

    async def verify_payment(self, transaction_ref: str) -> PaymentVerification:
        session = self._call("retrieveCheckoutSession", stripe.checkout.Session.retrieve, id=transaction_ref)
        amount_total = session.get("amount_total")
        currency = session.get("currency")
        return PaymentVerification(
            approved=session.get("payment_status") == PAID,
            transaction_ref=transaction_ref,
            amount=Money.from_cents(amount_total, currency).amount if amount_total is not None and currency else None,
            currency=currency.upper() if currency else None,
            status=session.get("payment_status"),
            message=session.get("status"),
            payment_method="card",
            raw={"payment_intent": session.get("payment_intent"), "status": session.get("status")},
        )

    async def refund(
        self,
        transaction_ref: str,
        amount: Decimal,
        currency: str,
        reason: str | None = None,
    ) -> RefundResult:
        session = self._call("retrieveCheckoutSession", stripe.checkout.Session.retrieve, id=transaction_ref)
        payment_intent = session.get("payment_intent")
        if not payment_intent:
            return RefundResult(success=False, message="Checkout session has no payment to refund")

        refund = self._call(
            "createRefund",
            stripe.Refund.create,
            payment_intent=payment_intent,
            amount=Money(amount, currency).to_cents(),
            metadata={"reason": reason or "Flight booking refund"},
        )
        status = refund.get("status")
        success = status in ("succeeded", "pending")
        if not success:
            logger.warning("Stripe refund not accepted", extra={"session_id": transaction_ref, "status": status})
        return RefundResult(success=success, refund_ref=refund.get("id"), amount=amount, status=status)

    def extract_callback_reference(self, payload: dict[str, Any]) -> CallbackReference:
        obj = (payload.get("data") or {}).get("object") or {}
        return CallbackReference(
            transaction_ref=obj.get("id") or payload.get("session_id"),
            cart_id=obj.get("client_reference_id") or payload.get("client_reference_id"),
        )
