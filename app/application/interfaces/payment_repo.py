from collections.abc import Iterable, Sequence

from app.domain.entities.payment import Payment, PaymentStatus


class PaymentRepo:
    async def create(self, payment: Payment) -> Payment:
        raise NotImplementedError

    async def get_by_id(self, payment_id: int) -> Payment | None:
        raise NotImplementedError

    async def find_by_transaction_ref(self, transaction_ref: str) -> Payment | None:
        raise NotImplementedError

    async def find_by_cart_id(self, cart_id: str) -> Payment | None:
        raise NotImplementedError

    async def list_by_booking(self, booking_id: int) -> Sequence[Payment]:
        raise NotImplementedError

    async def update(
        self,
        payment: Payment,
        expected_statuses: Iterable[PaymentStatus] | None = None,
    ) -> bool:
        """Compare-and-set on status when `expected_statuses` is given."""
        raise NotImplementedError
