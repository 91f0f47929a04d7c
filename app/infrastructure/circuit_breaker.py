"""
Circuit Breaker configuration for external service calls.

This module provides pre-configured Circuit Breakers for the upstream flight
providers and the payment gateways, so a failing upstream fails fast instead
of tying up request workers until every call times out.

Circuit Breaker Pattern:
- CLOSED: Normal operation, requests pass through
- OPEN: Too many failures, requests fail immediately
- HALF_OPEN: Testing if service recovered, limited requests allowed

Configuration:
- fail_max: Number of consecutive failures before opening circuit
- reset_timeout: Seconds to wait before attempting recovery (HALF_OPEN)
"""

import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from pybreaker import STATE_CLOSED, CircuitBreaker, CircuitBreakerError, CircuitBreakerListener

logger = logging.getLogger(__name__)

T = TypeVar("T")


class StateChangeLogger(CircuitBreakerListener):
    """Logs circuit breaker state changes for monitoring and alerting."""

    def __init__(self, name: str):
        self.name = name

    def state_change(self, cb, old_state, new_state):
        logger.warning(
            "Circuit breaker state changed",
            extra={
                "breaker_name": self.name,
                "old_state": old_state.name if old_state else None,
                "new_state": new_state.name,
            },
        )


def _build(name: str) -> CircuitBreaker:
    return CircuitBreaker(
        fail_max=5,  # Open circuit after 5 consecutive failures
        reset_timeout=60,  # Wait 60 seconds before attempting recovery
        name=f"{name}_circuit_breaker",
        listeners=[StateChangeLogger(name)],
    )


amadeus_breaker = _build("amadeus")
duffel_breaker = _build("duffel")
paytabs_breaker = _build("paytabs")
stripe_breaker = _build("stripe")

ALL_BREAKERS = (amadeus_breaker, duffel_breaker, paytabs_breaker, stripe_breaker)


def _passthrough(value=None):
    return value


def _reraise(exc: Exception):
    raise exc


async def call_async(breaker: CircuitBreaker, func: Callable[..., Awaitable[T]], *args, **kwargs) -> T:
    """
    Runs an async call under `breaker`.

    pybreaker only drives synchronous callables (its call_async needs tornado),
    so the awaited outcome is fed back through `breaker.call`: a success resets
    the failure counter, an exception counts towards opening the circuit.

    Raises:
        CircuitBreakerError: When the circuit is open.
    """
    if breaker.current_state != STATE_CLOSED:
        # Open: raises CircuitBreakerError until reset_timeout elapses.
        breaker.call(_passthrough)

    try:
        result = await func(*args, **kwargs)
    except Exception as exc:
        try:
            breaker.call(_reraise, exc)
        except CircuitBreakerError:
            logger.error(
                "Circuit breaker opened after upstream failure",
                extra={"breaker_name": breaker.name, "error": str(exc)},
            )
        except Exception:  # noqa: BLE001 - the original error is re-raised below
            pass
        raise
    breaker.call(_passthrough, result)
    return result


__all__ = [
    "amadeus_breaker",
    "duffel_breaker",
    "paytabs_breaker",
    "stripe_breaker",
    "ALL_BREAKERS",
    "call_async",
    "CircuitBreakerError",
]
