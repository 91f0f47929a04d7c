import logging
from decimal import Decimal
from typing import Any

import httpx

from app.application.interfaces.payment_gateway import (
    CallbackReference,
    ChargePage,
    ChargeRequest,
    PaymentGateway,
    PaymentVerification,
    RefundResult,
)
from app.domain.errors import ProviderError, ProviderErrorKind
from app.domain.value_objects.money import quantize, to_decimal
from app.infrastructure.circuit_breaker import CircuitBreakerError, call_async, paytabs_breaker

logger = logging.getLogger(__name__)

PAYTABS_BASE_URL = "https://secure.paytabs.com"
APPROVED = "A"


def _customer_details(request: ChargeRequest) -> dict[str, Any]:
    return {
        "name": request.customer_name or "Traveler",
        "email": request.customer_email or "",
        "phone": request.customer_phone or "",
        # PayTabs requires an address block even for digital goods.
        "street1": "N/A",
        "city": "N/A",
        "country": "US",
    }


class PaytabsGateway(PaymentGateway):
    """PayTabs hosted payment page. Amounts travel as decimal strings with two places."""

    name = "paytabs"

    def __init__(
        self,
        profile_id: str,
        server_key: str,
        base_url: str = PAYTABS_BASE_URL,
        timeout_seconds: float = 20.0,
    ) -> None:
        self._profile_id = profile_id
        self._server_key = server_key
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_seconds

    async def _send(self, path: str, payload: dict[str, Any]) -> httpx.Response:
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            response = await client.post(
                f"{self._base_url}{path}",
                json=payload,
                headers={"Authorization": self._server_key, "Content-Type": "application/json"},
            )
        if response.status_code >= 500:
            response.raise_for_status()
        return response

    async def _post(self, path: str, payload: dict[str, Any], operation: str) -> dict[str, Any]:
        try:
            response = await call_async(paytabs_breaker, self._send, path, payload)
        except CircuitBreakerError as exc:
            logger.error("PayTabs circuit breaker is open - service unavailable", extra={"operation": operation})
            raise ProviderError(
                ProviderErrorKind.UPSTREAM_UNAVAILABLE, "paytabs is temporarily unavailable", provider=self.name
            ) from exc
        except httpx.HTTPError as exc:
            logger.error("PayTabs request failed", exc_info=exc, extra={"operation": operation})
            raise ProviderError(
                ProviderErrorKind.UPSTREAM_UNAVAILABLE, f"paytabs request failed: {exc}", provider=self.name
            ) from exc

        try:
            body = response.json()
        except ValueError:
            body = {}
        if response.status_code >= 400:
            message = body.get("message") if isinstance(body, dict) else None
            logger.warning(
                "PayTabs rejected request",
                extra={"operation": operation, "status": response.status_code, "paytabs_message": message},
            )
            raise ProviderError(
                ProviderErrorKind.INVALID_REQUEST,
                message or f"paytabs rejected {operation}",
                provider=self.name,
                http_status=response.status_code,
            )
        return body

    async def create_charge_page(self, request: ChargeRequest) -> ChargePage:
        payload: dict[str, Any] = {
            "profile_id": self._profile_id,
            "tran_type": "sale",
            "tran_class": "ecom",
            "cart_id": request.cart_id,
            "cart_description": request.description,
            "cart_currency": request.currency,
            "cart_amount": float(quantize(request.amount)),
            "customer_details": _customer_details(request),
            "hide_shipping": True,
        }
        if request.return_url:
            payload["return"] = request.return_url
        if request.callback_url:
            payload["callback"] = request.callback_url

        body = await self._post("/payment/request", payload, "createPaymentPage")
        if not body.get("tran_ref") or not body.get("redirect_url"):
            raise ProviderError(
                ProviderErrorKind.UPSTREAM_UNAVAILABLE,
                body.get("message") or "paytabs did not return a payment page",
                provider=self.name,
            )
        logger.info("PayTabs payment page created", extra={"cart_id": request.cart_id, "tran_ref": body["tran_ref"]})
        return ChargePage(
            transaction_ref=body["tran_ref"],
            payment_url=body["redirect_url"],
            cart_id=request.cart_id,
            gateway=self.name,
        )

    async def verify_payment(self, transaction_ref: str) -> PaymentVerification:
        body = await self._post(
            "/payment/query", {"profile_id": self._profile_id, "tran_ref": transaction_ref}, "verifyPayment"
        )
        result = body.get("payment_result") or {}
        status = result.get("response_status")
        amount = body.get("cart_amount")
        return PaymentVerification(
            approved=status == APPROVED,
            transaction_ref=body.get("tran_ref") or transaction_ref,
            amount=to_decimal(amount) if amount not in (None, "") else None,
            currency=body.get("cart_currency"),
            status=status,
            message=result.get("response_message"),
            payment_method=(body.get("payment_info") or {}).get("payment_method"),
            raw=body,
        )

    async def refund(
        self,
        transaction_ref: str,
        amount: Decimal,
        currency: str,
        reason: str | None = None,
    ) -> RefundResult:
        payload = {
            "profile_id": self._profile_id,
            "tran_type": "refund",
            "tran_class": "ecom",
            "cart_id": f"REF-{transaction_ref}",
            "cart_currency": currency,
            "cart_amount": float(quantize(amount)),
            "cart_description": reason or "Flight booking refund",
            "tran_ref": transaction_ref,
        }
        body = await self._post("/payment/request", payload, "refund")
        result = body.get("payment_result") or {}
        success = result.get("response_status") == APPROVED
        if not success:
            logger.warning(
                "PayTabs refund declined",
                extra={"tran_ref": transaction_ref, "paytabs_message": result.get("response_message")},
            )
        return RefundResult(
            success=success,
            refund_ref=body.get("tran_ref"),
            amount=amount,
            status=result.get("response_status"),
            message=result.get("response_message"),
        )

    def extract_callback_reference(self, payload: dict[str, Any]) -> CallbackReference:
        return CallbackReference(
            transaction_ref=payload.get("tran_ref") or payload.get("tranRef"),
            cart_id=payload.get("cart_id") or payload.get("cartId"),
        )
