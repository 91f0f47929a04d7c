import logging
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.api.dependencies import get_idempotency_guard
from app.api.deps import get_engine
from app.api.routers.flights import router as flights_router
from app.api.routers.health import router as health_router
from app.api.routers.payments import router as payments_router
from app.api.routers.webhooks import router as webhooks_router
from app.config import get_settings
from app.domain.errors import (
    DomainError,
    DuplicateRequestError,
    ForbiddenError,
    IdempotencyConflictError,
    InvalidOrderStateError,
    NotFoundError,
    OfferExpiredError,
    PaymentVerificationFailed,
    PostPaymentBookingFailure,
    ProviderError,
    ProviderErrorKind,
    TimeoutAmbiguousError,
    ValidationError,
)
from app.infrastructure.db.engine import create_schema

# Configure structured logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

PROVIDER_STATUS = {
    ProviderErrorKind.INVALID_REQUEST: 400,
    ProviderErrorKind.OFFER_EXPIRED: 400,
    ProviderErrorKind.RATE_LIMITED: 429,
    ProviderErrorKind.UPSTREAM_UNAVAILABLE: 502,
}

DOMAIN_STATUS = {
    ValidationError: 400,
    OfferExpiredError: 400,
    InvalidOrderStateError: 400,
    PaymentVerificationFailed: 402,
    ForbiddenError: 403,
    NotFoundError: 404,
    DuplicateRequestError: 409,
    IdempotencyConflictError: 409,
    PostPaymentBookingFailure: 502,
    TimeoutAmbiguousError: 504,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    if not settings.use_in_memory:
        # Creates missing tables only; migrations are out of scope.
        await create_schema(get_engine())
    get_idempotency_guard()
    logger.info(
        "Flight booking API started",
        extra={"in_memory": settings.use_in_memory, "default_provider": settings.default_flight_provider},
    )
    yield
    if not settings.use_in_memory:
        await get_engine().dispose()

app = FastAPI(
    title="Flight Booking API",
    version="0.1.0",
    lifespan=lifespan
)


def status_for(exc: DomainError) -> int:
    if isinstance(exc, ProviderError):
        return PROVIDER_STATUS.get(exc.kind, 502)
    for error_type, status_code in DOMAIN_STATUS.items():
        if isinstance(exc, error_type):
            return status_code
    return 400


@app.exception_handler(DomainError)
async def domain_exception_handler(request: Request, exc: DomainError):
    status_code = status_for(exc)
    log = logger.warning if status_code < 500 else logger.error
    log(
        "Request failed",
        extra={
            "code": exc.code,
            "status_code": status_code,
            "path": request.url.path,
            "method": request.method,
            "error": exc.message,
        },
    )
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message, "code": exc.code, **exc.extra()},
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [
        f"{'.'.join(str(part) for part in error['loc'] if part != 'body')}: {error['msg']}"
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"detail": "Invalid request", "code": "VALIDATION_ERROR", "errors": errors},
    )


# Global Exception Handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Global exception handler to prevent stack trace exposure to clients.
    All unhandled exceptions are logged internally and return a generic error message.
    """
    error_id = str(uuid.uuid4())

    # Log the full error with context for internal debugging
    logger.error(
        "Unhandled exception occurred",
        exc_info=exc,
        extra={
            "error_id": error_id,
            "path": request.url.path,
            "method": request.method,
            "client_host": request.client.host if request.client else None,
        }
    )

    # Return a generic error to the client without exposing internal details
    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "error_id": error_id,
            "message": "An unexpected error occurred. Please contact support with the error_id if the issue persists."
        }
    )


app.include_router(health_router, tags=["Health"])
app.include_router(flights_router, prefix="/api/v1", tags=["Flights"])
app.include_router(payments_router, prefix="/api/v1", tags=["Payments"])
app.include_router(webhooks_router, prefix="/api/v1", tags=["Webhooks"])
