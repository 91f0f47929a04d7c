import copy
from collections.abc import Iterable, Sequence

from app.application.interfaces.payment_repo import PaymentRepo
from app.domain.entities.payment import Payment, PaymentStatus


class InMemoryPaymentRepo(PaymentRepo):
    def __init__(self) -> None:
        self._by_id: dict[int, Payment] = {}
        self._next_id = 1

    async def create(self, payment: Payment) -> Payment:
        payment.id = self._next_id
        self._next_id += 1
        self._by_id[payment.id] = copy.deepcopy(payment)
        return payment

    async def get_by_id(self, payment_id: int) -> Payment | None:
        payment = self._by_id.get(payment_id)
        return copy.deepcopy(payment) if payment else None

    async def find_by_transaction_ref(self, transaction_ref: str) -> Payment | None:
        return self._first(lambda p: p.transaction_ref == transaction_ref)

    async def find_by_cart_id(self, cart_id: str) -> Payment | None:
        return self._first(lambda p: p.cart_id == cart_id)

    async def list_by_booking(self, booking_id: int) -> Sequence[Payment]:
        return [copy.deepcopy(p) for p in self._by_id.values() if p.booking_id == booking_id]

    async def update(
        self,
        payment: Payment,
        expected_statuses: Iterable[PaymentStatus] | None = None,
    ) -> bool:
        stored = self._by_id.get(payment.id)
        if stored is None:
            return False
        if expected_statuses is not None and stored.status not in set(expected_statuses):
            return False
        self._by_id[payment.id] = copy.deepcopy(payment)
        return True

    def _first(self, predicate) -> Payment | None:
        for payment in self._by_id.values():
            if predicate(payment):
                return copy.deepcopy(payment)
        return None

    def count(self) -> int:
        return len(self._by_id)

    def all(self) -> list[Payment]:
        return [copy.deepcopy(p) for p in self._by_id.values()]
