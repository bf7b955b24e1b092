"""Drives step checks and executions and records their results in the store."""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from .auth.session import SessionValidator
from .constants import CompletionType, Provider, StepErrorCode, StepStatus
from .contracts import StepCheckResult, StepContext, StepError, StepExecutionResult, utc_now
from .error_manager import ErrorManager
from .errors import APIError, AuthenticationError, StepNotFoundError, StepValidationError
from .state import AddOutputs, ClearCheckTimestamp, UpdateStep, WorkflowStore
from .steps import Step, StepRegistry

logger = logging.getLogger(__name__)

ExecuteHook = Callable[[str], Awaitable[Any]]

_VALIDATION_CODES = {
    StepErrorCode.MISSING_CONFIG.value,
    StepErrorCode.MISSING_DEPENDENCY.value,
    StepErrorCode.VALIDATION_ERROR.value,
    StepErrorCode.AUTH_MISSING.value,
}


def _as_exception(error: StepError, provider: Optional[str]) -> Exception:
    """Rebuild a typed exception from a step error so it can be classified."""
    if error.is_auth_expired and provider:
        return AuthenticationError(error.message, provider)
    if error.code in _VALIDATION_CODES:
        return StepValidationError(error.message, error.code)
    if error.code == StepErrorCode.UNKNOWN_ERROR.value:
        return RuntimeError(error.message)
    return APIError(error.message, 0, error.code)


def _split_resource_url(outputs: Dict[str, Any]) -> tuple[Dict[str, Any], Optional[str]]:
    outputs = dict(outputs)
    return outputs, outputs.pop("resourceUrl", None)


class StepRunner:
    """Runs single steps, or every pending step in registry order.

    ``execute_hook`` replaces :meth:`execute_step` as the way
    :meth:`run_all_pending` performs a step.
    """

    def __init__(
        self,
        store: WorkflowStore,
        registry: StepRegistry,
        validator: SessionValidator,
        error_manager: Optional[ErrorManager] = None,
        execute_hook: Optional[ExecuteHook] = None,
        require_both_providers: bool = True,
    ) -> None:
        self.store = store
        self.registry = registry
        self.validator = validator
        self.error_manager = error_manager or ErrorManager(store)
        self.execute_hook = execute_hook or self.execute_step
        self.require_both_providers = require_both_providers

    # ------------------------------------------------------------------
    # Helpers
    def _context(self) -> StepContext:
        state = self.store.get_state()
        return StepContext(domain=state.domain, tenant_id=state.tenant_id, outputs=dict(state.outputs))

    @property
    def is_configured(self) -> bool:
        state = self.store.get_state()
        return bool(state.domain and state.tenant_id)

    async def authorization_error(self, step: Step) -> Optional[str]:
        """Return why ``step`` may not run now, or ``None`` if it may."""
        if not self.is_configured:
            return "Configure the domain and tenant ID before running steps."
        validation = await self.validator.validate()
        if validation.valid:
            return None
        if not self.require_both_providers:
            if step.provider is Provider.GOOGLE and validation.google_valid:
                return None
            if step.provider is Provider.MICROSOFT and validation.microsoft_valid:
                return None
        if validation.error is not None:
            return validation.error.message
        return "Please sign in to both Google and Microsoft to continue."

    # ------------------------------------------------------------------
    # Checks
    async def execute_check(self, step_id: str) -> StepCheckResult:
        if not self.is_configured:
            return StepCheckResult(completed=False)

        step = self.registry.require_step(step_id)
        self.store.dispatch(
            UpdateStep(step_id, {"status": StepStatus.IN_PROGRESS, "message": "Checking status..."})
        )
        try:
            result = await self.registry.check_step(step_id, self._context())
        except StepNotFoundError:
            raise
        except Exception as exc:
            logger.exception(f"Check of {step_id} raised")
            self.store.dispatch(
                UpdateStep(
                    step_id,
                    {
                        "status": StepStatus.FAILED,
                        "error": str(exc) or "Check failed",
                        "last_checked_at": utc_now(),
                    },
                )
            )
            self.error_manager.dispatch(exc, {"step_id": step_id, "step_title": step.title})
            return StepCheckResult(completed=False, message=str(exc))

        outputs, resource_url = _split_resource_url(result.outputs)
        if result.error is None and outputs:
            self.store.dispatch(AddOutputs(outputs))

        if result.error is not None:
            message = result.message or result.error.message or "Check failed"
            provider = outputs.get("errorProvider") or step.provider.value
            if result.error.is_auth_expired:
                changes = {
                    "status": StepStatus.FAILED,
                    "error": "Authentication expired",
                    "metadata": {
                        "errorCode": StepErrorCode.AUTH_EXPIRED.value,
                        "errorProvider": provider,
                    },
                }
            else:
                changes = {"status": StepStatus.FAILED, "error": message, "metadata": outputs}
            changes["last_checked_at"] = utc_now()
            self.store.dispatch(UpdateStep(step_id, changes))
            self.error_manager.dispatch(
                _as_exception(result.error.model_copy(update={"message": message}), provider),
                {"step_id": step_id, "step_title": step.title},
            )
        elif result.completed:
            metadata: Dict[str, Any] = {"preExisting": True, "checkedAt": utc_now(), **outputs}
            if resource_url:
                metadata["resourceUrl"] = resource_url
            self.store.dispatch(
                UpdateStep(
                    step_id,
                    {
                        "status": StepStatus.COMPLETED,
                        "completion_type": CompletionType.SERVER_VERIFIED,
                        "message": result.message or "Check passed",
                        "error": None,
                        "metadata": metadata,
                        "last_checked_at": utc_now(),
                    },
                )
            )
        else:
            self.store.dispatch(
                UpdateStep(
                    step_id,
                    {
                        "status": StepStatus.PENDING,
                        "message": result.message or "Not completed",
                        "error": None,
                        "metadata": outputs,
                        "last_checked_at": utc_now(),
                    },
                )
            )
        return result

    # ------------------------------------------------------------------
    # Execution
    async def execute_step(self, step_id: str) -> StepExecutionResult:
        """Execute ``step_id`` and record the outcome as the step's status."""
        step = self.registry.require_step(step_id)
        self.store.dispatch(ClearCheckTimestamp(step_id))
        self.store.dispatch(
            UpdateStep(step_id, {"status": StepStatus.IN_PROGRESS, "error": None, "message": None})
        )
        error_context = {"step_id": step_id, "step_title": step.title}

        try:
            result = await self.registry.execute_step(step_id, self._context())
        except Exception as exc:
            logger.exception(f"Execution of {step_id} raised")
            self.store.dispatch(
                UpdateStep(
                    step_id,
                    {
                        "status": StepStatus.FAILED,
                        "error": str(exc) or "Unknown error",
                        "last_checked_at": utc_now(),
                    },
                )
            )
            self.error_manager.dispatch(exc, error_context)
            return StepExecutionResult.failure(StepErrorCode.UNKNOWN_ERROR, str(exc))

        outputs, _ = _split_resource_url(result.outputs)
        if result.success:
            if outputs:
                self.store.dispatch(AddOutputs(outputs))
            self.store.dispatch(
                UpdateStep(
                    step_id,
                    {
                        "status": StepStatus.COMPLETED,
                        "completion_type": CompletionType.SERVER_VERIFIED,
                        "message": result.message,
                        "error": None,
                        "metadata": {
                            "resourceUrl": result.resource_url,
                            "completedAt": utc_now(),
                            **outputs,
                        },
                        "last_checked_at": utc_now(),
                    },
                )
            )
        else:
            error = result.error or StepError(
                message="An unknown error occurred during execution."
            )
            self.store.dispatch(
                UpdateStep(
                    step_id,
                    {
                        "status": StepStatus.FAILED,
                        "error": error.message,
                        "message": result.message,
                        "metadata": outputs,
                        "last_checked_at": utc_now(),
                    },
                )
            )
            provider = outputs.get("errorProvider") or step.provider.value
            self.error_manager.dispatch(
                _as_exception(error, provider), {**error_context, **outputs}
            )
        return result

    async def handle_execute(self, step_id: str) -> bool:
        """Execute a single step behind the authorization gate.

        Returns ``False`` without touching the step when the caller is not
        authorized for it.
        """
        step = self.registry.require_step(step_id)
        reason = await self.authorization_error(step)
        if reason is not None:
            logger.warning(f"Refusing to execute {step_id}: {reason}")
            self.error_manager.dispatch(
                StepValidationError(reason, StepErrorCode.AUTH_MISSING.value),
                {"step_id": step_id},
            )
            return False
        await self.execute_hook(step_id)
        return True

    async def run_all_pending(self) -> List[str]:
        """Execute pending automatable steps in order, stopping at the first failure.

        Returns the ids of the steps that were attempted.
        """
        attempted: List[str] = []
        for step_id in self.registry.automatable_ids():
            if self.store.get_state().step_status(step_id).status != StepStatus.PENDING:
                continue
            if not await self.handle_execute(step_id):
                break
            attempted.append(step_id)
            if self.store.get_state().step_status(step_id).status == StepStatus.FAILED:
                logger.warning(f"Stopping run: {step_id} failed")
                break
        else:
            logger.info("All pending steps processed")
        return attempted
