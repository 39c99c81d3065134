"""A minimal saga runner.

Steps run in order. When a step fails, the compensations of the steps that
already completed run in reverse order and the original error is re-raised
with the failing step's name stamped on it.
"""

import typing as t
from dataclasses import dataclass, field

import structlog

from orders.exceptions import OrderError

logger = structlog.get_logger(__name__)


@dataclass
class SagaStep:
    name: str
    action: t.Callable[[], t.Any]
    compensation: t.Callable[[], None] | None = None


@dataclass
class Saga:
    name: str
    steps: list[SagaStep] = field(default_factory=list)
    completed: list[SagaStep] = field(default_factory=list, init=False)

    def add_step(
        self, name: str, action: t.Callable[[], t.Any], compensation: t.Callable[[], None] | None = None
    ) -> "Saga":
        self.steps.append(SagaStep(name=name, action=action, compensation=compensation))
        return self

    def run(self) -> list[t.Any]:
        """Run every step, returning their results in order."""
        results: list[t.Any] = []
        for step in self.steps:
            try:
                results.append(step.action())
            except Exception as e:
                logger.warning("saga_step_failed", saga=self.name, step=step.name, error=str(e))
                self.compensate()
                if isinstance(e, OrderError) and e.stage is None:
                    e.stage = step.name
                raise
            self.completed.append(step)
        return results

    def compensate(self) -> None:
        """Undo completed steps, newest first. A failing compensation does not stop the others."""
        while self.completed:
            step = self.completed.pop()
            if step.compensation is None:
                continue
            try:
                step.compensation()
            except Exception:
                logger.exception("saga_compensation_failed", saga=self.name, step=step.name)
            else:
                logger.info("saga_step_compensated", saga=self.name, step=step.name)
