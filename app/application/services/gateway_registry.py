from app.application.interfaces.payment_gateway import PaymentGateway
from app.domain.errors import ValidationError


class PaymentGatewayRegistry:
    """Payment gateways addressable by the `{gateway}` path segment."""

    def __init__(self, gateways: dict[str, PaymentGateway]) -> None:
        self._gateways = {name.lower(): gateway for name, gateway in gateways.items()}

    def names(self) -> list[str]:
        return sorted(self._gateways)

    def get(self, name: str) -> PaymentGateway:
        gateway = self._gateways.get((name or "").lower())
        if gateway is None:
            raise ValidationError(
                f"Unsupported payment gateway: {name}",
                errors=[f"available gateways: {', '.join(self.names()) or 'none'}"],
            )
        return gateway
