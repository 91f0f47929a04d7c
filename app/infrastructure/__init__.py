"""
Capa de Infraestructura - Orquestación de reservas de vuelos.

Esta capa contiene las implementaciones concretas de los puertos (interfaces).
Incluye adaptadores para bases de datos, proveedores de vuelos y gateways de pago.

Estructura:
- db/: Tablas, engine y repositorios SQL (SQLAlchemy async)
- gateways/: Clientes HTTP de proveedores (Duffel, Amadeus) y gateways de pago (PayTabs, Stripe)
- in_memory/: Implementaciones in-memory y stubs para testing y ejecución local
- circuit_breaker.py: Circuit breakers por servicio externo
- webhook_signature.py: Verificación de firmas de webhooks
"""

# Database
from app.infrastructure.db.repositories.audit_log_sql import AuditLogSQL
from app.infrastructure.db.repositories.booking_repo_sql import BookingRepoSQL
from app.infrastructure.db.repositories.flight_order_repo_sql import FlightOrderRepoSQL
from app.infrastructure.db.repositories.payment_repo_sql import PaymentRepoSQL
from app.infrastructure.db.repositories.traveler_repo_sql import FlightSegmentRepoSQL, TravelerRepoSQL
from app.infrastructure.db.transaction_manager import SQLAlchemyTransactionManager

# Gateways
from app.infrastructure.gateways.amadeus_provider import AmadeusFlightProvider
from app.infrastructure.gateways.duffel_provider import DuffelFlightProvider
from app.infrastructure.gateways.factory import GatewayFactory
from app.infrastructure.gateways.paytabs_gateway import PaytabsGateway
from app.infrastructure.gateways.stripe_gateway import StripeGateway

__all__ = [
    # Database - Repositories SQL
    "FlightOrderRepoSQL",
    "BookingRepoSQL",
    "PaymentRepoSQL",
    "TravelerRepoSQL",
    "FlightSegmentRepoSQL",
    "AuditLogSQL",
    "SQLAlchemyTransactionManager",
    # Gateways
    "DuffelFlightProvider",
    "AmadeusFlightProvider",
    "PaytabsGateway",
    "StripeGateway",
    "GatewayFactory",
]
