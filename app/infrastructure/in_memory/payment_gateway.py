from decimal import Decimal
from typing import Any
from uuid import uuid4

from app.application.interfaces.payment_gateway import (
    CallbackReference,
    ChargePage,
    ChargeRequest,
    PaymentGateway,
    PaymentVerification,
    RefundResult,
)


class StubPaymentGateway(PaymentGateway):
    """
    Hosted-page gateway simulator.

    Charges are approved unless `approve` is switched off; `declined_refunds` and
    `refund_error` simulate refund failures.
    """

    def __init__(self, name: str = "paytabs") -> None:
        self.name = name
        self.approve = True
        self.declined_refunds = False
        self.refund_error: Exception | None = None
        self.verified_amount: Decimal | None = None
        self.charges: dict[str, ChargeRequest] = {}
        self.refunds: list[tuple[str, Decimal]] = []
        self.verify_calls = 0

    async def create_charge_page(self, request: ChargeRequest) -> ChargePage:
        transaction_ref = f"TST{uuid4().hex[:12].upper()}"
        self.charges[transaction_ref] = request
        return ChargePage(
            transaction_ref=transaction_ref,
            payment_url=f"https://secure.example.test/payment/page/{transaction_ref}",
            cart_id=request.cart_id,
            gateway=self.name,
        )

    async def verify_payment(self, transaction_ref: str) -> PaymentVerification:
        self.verify_calls += 1
        charge = self.charges.get(transaction_ref)
        amount = self.verified_amount if self.verified_amount is not None else (charge.amount if charge else None)
        return PaymentVerification(
            approved=self.approve and charge is not None,
            transaction_ref=transaction_ref,
            amount=amount,
            currency=charge.currency if charge else None,
            status="A" if self.approve else "D",
            message="Authorised" if self.approve else "Declined",
            payment_method="card",
            raw={"tran_ref": transaction_ref},
        )

    async def refund(
        self,
        transaction_ref: str,
        amount: Decimal,
        currency: str,
        reason: str | None = None,
    ) -> RefundResult:
        if self.refund_error is not None:
            raise self.refund_error
        if self.declined_refunds:
            return RefundResult(success=False, message="Refund declined")
        self.refunds.append((transaction_ref, amount))
        return RefundResult(
            success=True, refund_ref=f"REF-{transaction_ref}", amount=amount, status="A", message="Refunded"
        )

    def extract_callback_reference(self, payload: dict[str, Any]) -> CallbackReference:
        return CallbackReference(
            transaction_ref=payload.get("tran_ref") or payload.get("tranRef"),
            cart_id=payload.get("cart_id") or payload.get("cartId"),
        )
