"""
Explicit saga runner for operations that span external systems.

Each step declares its action together with the compensation that undoes it.
When a step fails, the compensations of the steps that already completed run
in reverse order, and the failure is re-raised as SagaFailed.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

SagaContext = dict[str, Any]
Action = Callable[[SagaContext], Awaitable[Any]]
Compensation = Callable[[SagaContext, Exception], Awaitable[None]]


@dataclass
class SagaStep:
    name: str
    action: Action
    compensation: Compensation | None = None


@dataclass
class CompensationFailure:
    step: str
    error: Exception


class SagaFailed(Exception):
    def __init__(
        self,
        saga: str,
        failed_step: str,
        cause: Exception,
        compensation_failures: list[CompensationFailure],
    ):
        super().__init__(f"Saga {saga} failed at step {failed_step}: {cause}")
        self.saga = saga
        self.failed_step = failed_step
        self.cause = cause
        self.compensation_failures = compensation_failures

    @property
    def fully_compensated(self) -> bool:
        return not self.compensation_failures


@dataclass
class Saga:
    name: str
    steps: list[SagaStep] = field(default_factory=list)

    def step(self, name: str, action: Action, compensation: Compensation | None = None) -> "Saga":
        self.steps.append(SagaStep(name=name, action=action, compensation=compensation))
        return self

    async def run(self, context: SagaContext | None = None) -> SagaContext:
        context = context if context is not None else {}
        completed: list[SagaStep] = []
        for step in self.steps:
            try:
                context[step.name] = await step.action(context)
            except Exception as exc:
                logger.warning(
                    "Saga step failed, compensating",
                    extra={"saga": self.name, "step": step.name, "error": str(exc)},
                )
                failures = await self._compensate(completed, context, exc)
                raise SagaFailed(self.name, step.name, exc, failures) from exc
            completed.append(step)
        return context

    async def _compensate(
        self, steps: list[SagaStep], context: SagaContext, cause: Exception
    ) -> list[CompensationFailure]:
        failures: list[CompensationFailure] = []
        for step in reversed(steps):
            if step.compensation is None:
                continue
            try:
                await step.compensation(context, cause)
            except Exception as exc:
                logger.error(
                    "Saga compensation failed",
                    exc_info=exc,
                    extra={"saga": self.name, "step": step.name},
                )
                failures.append(CompensationFailure(step=step.name, error=exc))
        return failures
