from collections.abc import Iterable, Sequence

from sqlalchemy import insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.application.interfaces.payment_repo import PaymentRepo
from app.domain.entities.payment import Payment, PaymentFlow, PaymentStatus
from app.infrastructure.db.engine import as_utc
from app.infrastructure.db.tables import payments


class PaymentRepoSQL(PaymentRepo):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, payment: Payment) -> Payment:
        result = await self._session.execute(insert(payments).values(**self._values(payment)))
        payment.id = result.inserted_primary_key[0]
        return payment

    async def get_by_id(self, payment_id: int) -> Payment | None:
        return await self._fetch_one(payments.c.id == payment_id)

    async def find_by_transaction_ref(self, transaction_ref: str) -> Payment | None:
        return await self._fetch_one(payments.c.transaction_ref == transaction_ref)

    async def find_by_cart_id(self, cart_id: str) -> Payment | None:
        return await self._fetch_one(payments.c.cart_id == cart_id)

    async def list_by_booking(self, booking_id: int) -> Sequence[Payment]:
        stmt = select(payments).where(payments.c.booking_id == booking_id).order_by(payments.c.id)
        result = await self._session.execute(stmt)
        return [self._map(row) for row in result.mappings().all()]

    async def update(
        self,
        payment: Payment,
        expected_statuses: Iterable[PaymentStatus] | None = None,
    ) -> bool:
        stmt = update(payments).where(payments.c.id == payment.id)
        if expected_statuses is not None:
            stmt = stmt.where(payments.c.status.in_([s.value for s in expected_statuses]))
        result = await self._session.execute(stmt.values(**self._values(payment)))
        return result.rowcount == 1

    async def _fetch_one(self, condition) -> Payment | None:
        result = await self._session.execute(select(payments).where(condition).limit(1))
        row = result.mappings().first()
        return self._map(row) if row else None

    @staticmethod
    def _values(payment: Payment) -> dict:
        return {
            "user_id": payment.user_id,
            "booking_id": payment.booking_id,
            "gateway": payment.gateway,
            "flow": payment.flow.value,
            "status": payment.status.value,
            "amount": payment.amount,
            "currency_code": payment.currency_code,
            "refunded_amount": payment.refunded_amount,
            "transaction_ref": payment.transaction_ref,
            "cart_id": payment.cart_id,
            "payment_method": payment.payment_method,
            "details": payment.details,
            "gateway_response": payment.gateway_response,
            "needs_manual_review": payment.needs_manual_review,
            "paid_at": payment.paid_at,
            "refunded_at": payment.refunded_at,
            "created_at": payment.created_at,
            "updated_at": payment.updated_at,
        }

    @staticmethod
    def _map(row) -> Payment:
        return Payment(
            id=row["id"],
            user_id=row["user_id"],
            booking_id=row["booking_id"],
            gateway=row["gateway"],
            flow=PaymentFlow(row["flow"]),
            status=PaymentStatus(row["status"]),
            amount=row["amount"],
            currency_code=row["currency_code"],
            refunded_amount=row["refunded_amount"],
            transaction_ref=row["transaction_ref"],
            cart_id=row["cart_id"],
            payment_method=row["payment_method"],
            details=row["details"] or {},
            gateway_response=row["gateway_response"] or {},
            needs_manual_review=bool(row["needs_manual_review"]),
            paid_at=as_utc(row["paid_at"]),
            refunded_at=as_utc(row["refunded_at"]),
            created_at=as_utc(row["created_at"]),
            updated_at=as_utc(row["updated_at"]),
        )
