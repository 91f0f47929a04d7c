"""Value Objects del dominio de reservas de vuelos."""

from app.domain.value_objects.money import Money
from app.domain.value_objects.reference_number import ReferenceNumber

__all__ = [
    "Money",
    "ReferenceNumber",
]
