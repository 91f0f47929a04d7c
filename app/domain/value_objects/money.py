"""Value Object Money - representa un valor monetario con su moneda."""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

MINOR_UNIT = Decimal("0.01")


def to_decimal(value) -> Decimal:
    """Convierte montos de proveedores (str, int, float) a Decimal sin pasar por binario."""
    if value is None or value == "":
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def quantize(value: Decimal) -> Decimal:
    return value.quantize(MINOR_UNIT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class Money:
    """
    Value Object inmutable que representa un monto monetario.

    Attributes:
        amount: Monto decimal (redondeado a 2 decimales).
        currency_code: Código ISO 4217 de la moneda (ej: USD, AED, EUR).
    """

    amount: Decimal
    currency_code: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", quantize(to_decimal(self.amount)))
        object.__setattr__(self, "currency_code", (self.currency_code or "").upper())

        if len(self.currency_code) != 3:
            raise ValueError(f"currency_code must have 3 characters: {self.currency_code}")

        if self.amount < 0:
            raise ValueError(f"amount cannot be negative: {self.amount}")

    def _check_currency(self, other: "Money") -> None:
        if not isinstance(other, Money):
            raise TypeError(f"Cannot combine Money with {type(other)}")
        if self.currency_code != other.currency_code:
            raise ValueError(
                f"Currency mismatch: {self.currency_code} vs {other.currency_code}"
            )

    def approx_equals(self, other: "Money") -> bool:
        """Igualdad tolerando una unidad menor de redondeo."""
        self._check_currency(other)
        return abs(self.amount - other.amount) <= MINOR_UNIT

    def __str__(self) -> str:
        return f"{self.amount:.2f} {self.currency_code}"

    @classmethod
    def from_cents(cls, cents: int, currency_code: str) -> "Money":
        """Crea un Money desde centavos (útil para Stripe)."""
        return cls(amount=Decimal(cents) / 100, currency_code=currency_code)

    def to_cents(self) -> int:
        """Convierte a centavos (útil para Stripe)."""
        return int(self.amount * 100)
