"""
Ordered steps with compensations.

A saga runs its steps in order. When a step fails, the compensations of the
steps that already completed run in reverse order and the step's error is
raised. Nothing is retried.
"""

from typing import Any, Callable, List, Optional

from pydantic import BaseModel, Field

from ..exceptions import CompensationError, FlowCancelledError
from ..utils.logger import get_logger


class SagaStep(BaseModel):
    """One forward action and the optional action that undoes it."""

    name: str = Field(description="Step name used in logs and errors")
    action: Callable[[], Any]
    compensation: Optional[Callable[[], Any]] = None
    unwind: bool = Field(default=True, description="Undo completed steps when this one fails")


class Saga:
    """
    A short-lived sequence of fallible steps.

    Steps declared with ``unwind=False`` leave completed steps in place when
    they fail. ``should_abort`` is consulted before every forward step;
    compensations always run to completion.
    """

    def __init__(self, name: str):
        self.name = name
        self.steps: List[SagaStep] = []
        self.completed: List[str] = []
        self.logger = get_logger()

    def step(
        self,
        name: str,
        action: Callable[[], Any],
        compensation: Optional[Callable[[], Any]] = None,
        unwind: bool = True,
    ) -> "Saga":
        self.steps.append(
            SagaStep(name=name, action=action, compensation=compensation, unwind=unwind)
        )
        return self

    def run(self, should_abort: Optional[Callable[[], bool]] = None) -> None:
        done: List[SagaStep] = []
        self.completed = []

        for current in self.steps:
            if should_abort is not None and should_abort():
                cancelled = FlowCancelledError(saga=self.name, step=current.name)
                self._unwind(done, cancelled)
                raise cancelled

            try:
                current.action()
            except Exception as e:
                self.logger.warning(
                    f"Saga {self.name}: step {current.name} failed",
                    extra={"saga": self.name, "step": current.name, "error_type": type(e).__name__},
                )
                if current.unwind:
                    self._unwind(done, e)
                raise

            done.append(current)
            self.completed.append(current.name)

    def _unwind(self, done: List[SagaStep], original: Exception) -> None:
        for completed in reversed(done):
            if completed.compensation is None:
                continue

            self.logger.info(
                f"Saga {self.name}: compensating {completed.name}",
                extra={"saga": self.name, "step": completed.name},
            )
            try:
                completed.compensation()
            except Exception as e:
                raise CompensationError(
                    f"could not undo {completed.name} after failure: {original}",
                    original_error=original,
                    cause=e,
                    saga=self.name,
                    step=completed.name,
                ) from e
