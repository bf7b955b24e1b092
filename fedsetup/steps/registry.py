"""Ordered registry of step definitions."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from ..api.logger import ApiLogger
from ..constants import StepErrorCode
from ..contracts import StepCheckResult, StepContext, StepExecutionResult, StepInput, StepOutput
from ..errors import StepNotFoundError
from .base import Checkable, Executable, Step

logger = logging.getLogger(__name__)


class StepRegistry:
    """Holds the steps in workflow order and dispatches check/execute calls.

    Unknown step ids raise :class:`StepNotFoundError`. Known steps without
    the requested capability return a structured result instead.
    """

    def __init__(self, steps: Iterable[Step] = ()) -> None:
        self._steps: Dict[str, Step] = {}
        for step in steps:
            self.register(step)

    def register(self, step: Step) -> None:
        if step.id in self._steps:
            raise ValueError(f"Duplicate step id: {step.id}")
        if step.automatable and not isinstance(step, Executable):
            logger.warning(f"Step {step.id} is automatable but has no execute logic")
        self._steps[step.id] = step

    def __iter__(self) -> Iterator[Step]:
        return iter(self._steps.values())

    def __len__(self) -> int:
        return len(self._steps)

    def __contains__(self, step_id: object) -> bool:
        return step_id in self._steps

    @property
    def ids(self) -> List[str]:
        return list(self._steps)

    def get_step(self, step_id: str) -> Optional[Step]:
        return self._steps.get(step_id)

    def require_step(self, step_id: str) -> Step:
        step = self._steps.get(step_id)
        if step is None:
            raise StepNotFoundError(step_id)
        return step

    def get_step_inputs(self, step_id: str) -> Tuple[StepInput, ...]:
        step = self.get_step(step_id)
        return step.inputs if step else ()

    def get_step_outputs(self, step_id: str) -> Tuple[StepOutput, ...]:
        step = self.get_step(step_id)
        return step.outputs if step else ()

    def automatable_ids(self) -> List[str]:
        return [step.id for step in self if step.automatable]

    def checkable_steps(self, automatable_only: bool = False) -> List[Step]:
        return [
            step
            for step in self
            if isinstance(step, Checkable) and (step.automatable or not automatable_only)
        ]

    # ------------------------------------------------------------------
    # Dispatch
    async def check_step(self, step_id: str, context: StepContext) -> StepCheckResult:
        step = self.require_step(step_id)
        if not isinstance(step, Checkable):
            return StepCheckResult(
                completed=False, message=f"No check logic available for step {step_id}"
            )
        api_logger = ApiLogger()
        result = await step.check(context.model_copy(update={"logger": api_logger}))
        return result.model_copy(update={"api_logs": api_logger.get_logs()})

    async def execute_step(self, step_id: str, context: StepContext) -> StepExecutionResult:
        step = self.require_step(step_id)
        if not isinstance(step, Executable):
            return StepExecutionResult.failure(
                StepErrorCode.NO_EXECUTE_FUNCTION,
                f"No execute logic available for step {step_id}",
            )
        api_logger = ApiLogger()
        logger.info(f"Executing step {step_id}")
        result = await step.execute(context.model_copy(update={"logger": api_logger}))
        if result.success:
            logger.info(f"Step {step_id} succeeded: {result.message}")
        else:
            logger.warning(f"Step {step_id} failed: {result.error.message if result.error else ''}")
        return result.model_copy(update={"api_logs": api_logger.get_logs()})
