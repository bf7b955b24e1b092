"""Assembles the store, registry, runner and scheduler for one setup."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from .api import ProviderApis, build_provider_apis
from .auth import SessionValidator, TokenStoreSessionProvider
from .constants import CompletionType, StepStatus
from .context import AppContext
from .contracts import PersistedProgress, StepStatusInfo
from .error_manager import ErrorManager
from .persistence import ProgressRepository, get_repository
from .runner import StepRunner
from .scheduler import AutoCheckScheduler
from .state import (
    AddOutputs,
    ClearAllData,
    InitializeSteps,
    MarkStepComplete,
    MarkStepIncomplete,
    SetConfig,
    WorkflowStore,
)
from .steps import Checkable, StepRegistry, build_registry

logger = logging.getLogger(__name__)


class SetupWorkflow:
    """Entry point used by the CLI and by embedding applications.

    Progress is restored when a domain is configured and written back with
    :meth:`save`.
    """

    def __init__(
        self,
        context: AppContext,
        repository: Optional[ProgressRepository] = None,
        http: Optional[httpx.AsyncClient] = None,
        store: Optional[WorkflowStore] = None,
    ) -> None:
        self.context = context
        self.repository = repository or get_repository(config=context.config)
        self.store = store or WorkflowStore()
        self.validator = SessionValidator(TokenStoreSessionProvider(context.token_store))
        self.apis: ProviderApis = build_provider_apis(
            context.config,
            self.validator,
            cache=context.cache,
            server_logger=context.server_logger,
            http=http,
        )
        self.registry: StepRegistry = build_registry(self.apis)
        self.error_manager = ErrorManager(self.store)
        self.runner = StepRunner(self.store, self.registry, self.validator, self.error_manager)
        self.scheduler = AutoCheckScheduler(
            self.registry,
            self.store,
            self.runner.execute_check,
            interval=context.config.scheduler.interval_seconds,
        )

    @property
    def state(self):
        return self.store.get_state()

    # ------------------------------------------------------------------
    # Configuration and persistence
    async def configure(self, domain: str, tenant_id: str) -> None:
        """Select the domain and tenant to work on and restore their progress."""
        current = self.state
        if current.domain and current.domain != domain:
            logger.info(f"Switching domain from {current.domain} to {domain}")
            self.store.dispatch(ClearAllData())
        self.store.dispatch(SetConfig(domain=domain, tenant_id=tenant_id))
        await self.restore()

    def _default_steps(self) -> Dict[str, StepStatusInfo]:
        return {step.id: StepStatusInfo(status=StepStatus.PENDING) for step in self.registry}

    async def restore(self) -> bool:
        """Load persisted progress for the configured domain.

        Statuses of checkable steps are dropped because the scheduler
        re-verifies them. Completions the user attested by hand are kept.
        Returns whether anything was found.
        """
        steps = self._default_steps()
        persisted = await self.repository.load_progress(self.state.domain or "")
        if persisted is None:
            self.store.dispatch(InitializeSteps(steps))
            return False

        user_marked = []
        for step_id, info in persisted.steps.items():
            step = self.registry.get_step(step_id)
            if step is None:
                continue
            if info.completion_type == CompletionType.USER_MARKED:
                steps[step_id] = info
                user_marked.append(step_id)
            elif not isinstance(step, Checkable):
                steps[step_id] = info
        self.store.dispatch(InitializeSteps(steps))
        for step_id in user_marked:
            self.store.dispatch(MarkStepComplete(step_id, is_user_marked=True))
        if persisted.outputs:
            self.store.dispatch(AddOutputs(persisted.outputs))
        logger.info(f"Restored progress for {self.state.domain}")
        return True

    async def save(self) -> None:
        state = self.state
        if not state.domain:
            return
        await self.repository.save_progress(
            state.domain, PersistedProgress(steps=state.steps, outputs=state.outputs)
        )

    async def reset(self) -> None:
        """Delete stored progress and start the configured domain from scratch."""
        state = self.state
        if state.domain:
            await self.repository.clear_progress(state.domain)
        domain, tenant_id = state.domain, state.tenant_id
        self.store.dispatch(ClearAllData())
        if domain and tenant_id:
            self.store.dispatch(SetConfig(domain=domain, tenant_id=tenant_id))
        self.store.dispatch(InitializeSteps(self._default_steps()))

    # ------------------------------------------------------------------
    # Operations
    async def check_all(self, include_manual: bool = False) -> Dict[str, Any]:
        return await self.scheduler.manual_refresh(include_manual=include_manual)

    async def run_all_pending(self):
        return await self.runner.run_all_pending()

    async def execute(self, step_id: str) -> bool:
        return await self.runner.handle_execute(step_id)

    def mark_complete(self, step_id: str) -> None:
        self.registry.require_step(step_id)
        self.store.dispatch(MarkStepComplete(step_id, is_user_marked=True))

    def mark_incomplete(self, step_id: str) -> None:
        self.registry.require_step(step_id)
        self.store.dispatch(MarkStepIncomplete(step_id))

    # ------------------------------------------------------------------
    async def aclose(self) -> None:
        await self.scheduler.stop()
        await self.apis.aclose()
        close = getattr(self.repository, "close", None)
        if close is not None:
            close()

    async def __aenter__(self) -> "SetupWorkflow":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
