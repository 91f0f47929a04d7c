import logging

from app.application.interfaces.clock import Clock
from app.application.interfaces.flight_provider import FlightProviderClient
from app.application.interfaces.payment_gateway import PaymentGateway
from app.application.services.gateway_registry import PaymentGatewayRegistry
from app.application.services.provider_router import ProviderRouter
from app.config import Settings
from app.domain.entities.flight_offer import ProviderKind
from app.infrastructure.gateways.amadeus_provider import AmadeusFlightProvider
from app.infrastructure.gateways.duffel_provider import DuffelFlightProvider
from app.infrastructure.gateways.paytabs_gateway import PaytabsGateway
from app.infrastructure.gateways.stripe_gateway import StripeGateway
from app.infrastructure.in_memory.flight_provider import StubAmadeusProvider, StubDuffelProvider
from app.infrastructure.in_memory.payment_gateway import StubPaymentGateway

logger = logging.getLogger(__name__)


class GatewayFactory:
    """
    Builds the upstream clients from settings.

    A provider or gateway is only available when its credentials are set.
    In-memory mode wires the stubs for both providers and both gateways.
    """

    def __init__(self, settings: Settings):
        self.settings = settings

    def flight_providers(self, clock: Clock) -> dict[ProviderKind, FlightProviderClient]:
        s = self.settings
        if s.use_in_memory:
            return {
                ProviderKind.MODERN: StubDuffelProvider(clock),
                ProviderKind.GDS: StubAmadeusProvider(clock),
            }

        clients: dict[ProviderKind, FlightProviderClient] = {}
        if s.duffel_api_key:
            clients[ProviderKind.MODERN] = DuffelFlightProvider(
                api_key=s.duffel_api_key,
                base_url=s.duffel_base_url,
                timeout_seconds=s.provider_timeout_seconds,
            )
        if s.amadeus_client_id and s.amadeus_client_secret:
            clients[ProviderKind.GDS] = AmadeusFlightProvider(
                client_id=s.amadeus_client_id,
                client_secret=s.amadeus_client_secret,
                base_url=s.amadeus_base_url,
                timeout_seconds=s.provider_timeout_seconds,
            )
        if not clients:
            logger.warning("No flight provider credentials configured")
        return clients

    def provider_router(self, clock: Clock) -> ProviderRouter:
        clients = self.flight_providers(clock)
        default = ProviderKind.from_name(self.settings.default_flight_provider)
        if default not in clients and clients:
            fallback = next(iter(clients))
            logger.warning(
                "Default flight provider is not configured, falling back",
                extra={"configured": default.provider_name, "fallback": fallback.provider_name},
            )
            default = fallback
        return ProviderRouter(clients, default)

    def payment_gateways(self) -> PaymentGatewayRegistry:
        s = self.settings
        if s.use_in_memory:
            return PaymentGatewayRegistry(
                {"paytabs": StubPaymentGateway("paytabs"), "stripe": StubPaymentGateway("stripe")}
            )

        gateways: dict[str, PaymentGateway] = {}
        if s.paytabs_profile_id and s.paytabs_server_key:
            gateways["paytabs"] = PaytabsGateway(
                profile_id=s.paytabs_profile_id,
                server_key=s.paytabs_server_key,
                base_url=s.paytabs_base_url,
                timeout_seconds=s.provider_timeout_seconds,
            )
        if s.stripe_api_key:
            gateways["stripe"] = StripeGateway(api_key=s.stripe_api_key, timeout_seconds=s.stripe_timeout_seconds)
        return PaymentGatewayRegistry(gateways)
