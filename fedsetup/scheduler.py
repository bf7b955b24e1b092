"""Background re-verification of automatable steps."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from .constants import DEFAULT_CHECK_INTERVAL, StepStatus
from .state import WorkflowStore
from .steps import StepRegistry

logger = logging.getLogger(__name__)

CheckCallback = Callable[[str], Awaitable[Any]]


class AutoCheckScheduler:
    """Runs ``execute_check`` for every automatable checkable step.

    Checks of one refresh run concurrently. A failing callback is logged and
    reported in the result map; it never stops the other checks.
    """

    def __init__(
        self,
        registry: StepRegistry,
        store: WorkflowStore,
        execute_check: CheckCallback,
        interval: float = DEFAULT_CHECK_INTERVAL,
    ) -> None:
        self.registry = registry
        self.store = store
        self.execute_check = execute_check
        self.interval = interval
        self.is_checking = False
        self._task: Optional[asyncio.Task] = None

    def _eligible_ids(self, include_manual: bool) -> list[str]:
        state = self.store.get_state()
        return [
            step.id
            for step in self.registry.checkable_steps(automatable_only=not include_manual)
            if state.step_status(step.id).status != StepStatus.IN_PROGRESS
        ]

    async def manual_refresh(self, include_manual: bool = False) -> Dict[str, Any]:
        state = self.store.get_state()
        if not (state.domain and state.tenant_id):
            logger.debug("Skipping auto-check: domain or tenant not configured")
            return {}

        step_ids = self._eligible_ids(include_manual)
        logger.info(f"Running checks for {len(step_ids)} steps")
        self.is_checking = True
        try:
            results = await asyncio.gather(
                *(self.execute_check(step_id) for step_id in step_ids),
                return_exceptions=True,
            )
        finally:
            self.is_checking = False

        for step_id, result in zip(step_ids, results):
            if isinstance(result, Exception):
                logger.error(f"Check failed for {step_id}: {result!r}")
        return dict(zip(step_ids, results))

    # ------------------------------------------------------------------
    # Periodic trigger
    async def _loop(self) -> None:
        while True:
            await self.manual_refresh()
            await asyncio.sleep(self.interval)

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.create_task(self._loop())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        finally:
            self._task = None
