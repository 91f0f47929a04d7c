from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any


@dataclass
class ChargeRequest:
    amount: Decimal
    currency: str
    cart_id: str
    description: str
    customer_name: str | None = None
    customer_email: str | None = None
    customer_phone: str | None = None
    return_url: str | None = None
    callback_url: str | None = None


@dataclass
class ChargePage:
    transaction_ref: str
    payment_url: str
    cart_id: str
    gateway: str


@dataclass
class PaymentVerification:
    approved: bool
    transaction_ref: str
    amount: Decimal | None = None
    currency: str | None = None
    status: str | None = None
    message: str | None = None
    payment_method: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass
class RefundResult:
    success: bool
    refund_ref: str | None = None
    amount: Decimal | None = None
    status: str | None = None
    message: str | None = None


@dataclass
class CallbackReference:
    transaction_ref: str | None
    cart_id: str | None


class PaymentGateway(ABC):
    """Hosted payment page gateway. Webhook bodies are never trusted: callers verify."""

    name: str

    @abstractmethod
    async def create_charge_page(self, request: ChargeRequest) -> ChargePage:
        pass

    @abstractmethod
    async def verify_payment(self, transaction_ref: str) -> PaymentVerification:
        pass

    @abstractmethod
    async def refund(
        self,
        transaction_ref: str,
        amount: Decimal,
        currency: str,
        reason: str | None = None,
    ) -> RefundResult:
        pass

    @abstractmethod
    def extract_callback_reference(self, payload: dict[str, Any]) -> CallbackReference:
        """Pulls the lookup keys out of a gateway callback body."""
        pass
