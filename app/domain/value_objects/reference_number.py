"""Value Object ReferenceNumber - números de orden, reserva y carrito generados por la agencia."""

import secrets
import string
from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class ReferenceNumber:
    """
    Value Object inmutable para los números visibles al cliente.

    Formato: PREFIJO-<epoch en ms>-<4 alfanuméricos> (ej: ORD-FLT-1765800000000-A1B2).
    El sufijo aleatorio evita colisiones entre solicitudes del mismo milisegundo.
    """

    value: str

    SUFFIX_LENGTH = 4
    ALLOWED_CHARS = string.ascii_uppercase + string.digits

    ORDER_PREFIX = "ORD-FLT"
    BOOKING_PREFIX = "BKG-FLT"
    CART_PREFIX = "CART"
    TEMP_CART_PREFIX = "TEMP"

    def __post_init__(self) -> None:
        if not self.value:
            raise ValueError("reference number no puede estar vacío")

        if len(self.value) > 64:
            raise ValueError(f"reference number excede 64 caracteres: {len(self.value)}")

    def __str__(self) -> str:
        return self.value

    @classmethod
    def generate(cls, prefix: str, now: datetime) -> "ReferenceNumber":
        """Genera un número nuevo con el prefijo indicado."""
        suffix = "".join(secrets.choice(cls.ALLOWED_CHARS) for _ in range(cls.SUFFIX_LENGTH))
        return cls(value=f"{prefix}-{int(now.timestamp() * 1000)}-{suffix}")

    @classmethod
    def order(cls, now: datetime) -> str:
        return str(cls.generate(cls.ORDER_PREFIX, now))

    @classmethod
    def booking(cls, now: datetime) -> str:
        return str(cls.generate(cls.BOOKING_PREFIX, now))

    @classmethod
    def cart(cls, now: datetime, temporary: bool = False) -> str:
        return str(cls.generate(cls.TEMP_CART_PREFIX if temporary else cls.CART_PREFIX, now))
