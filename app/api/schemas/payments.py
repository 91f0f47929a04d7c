from app.api.schemas.flights import CamelModel, Money


class PaymentRefundRequest(CamelModel):
    payment_id: int
    amount: Money | None = None
    reason: str | None = None
