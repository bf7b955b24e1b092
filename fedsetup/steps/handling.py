"""Precondition checks and error normalisation around step logic.

Both wrappers guarantee that step logic never raises past them: every
failure comes back as a structured result whose ``error`` carries a
:class:`~fedsetup.constants.StepErrorCode`.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Mapping, Optional, Sequence

from ..constants import StepErrorCode
from ..contracts import StepCheckResult, StepContext, StepError, StepExecutionResult, ValidationResult
from ..error_manager import classify_error
from ..errors import APIError, AuthenticationError, StepValidationError

logger = logging.getLogger(__name__)

ExecuteLogic = Callable[[StepContext], Awaitable[StepExecutionResult]]
CheckLogic = Callable[[StepContext], Awaitable[StepCheckResult]]


def missing_outputs(context: StepContext, required_outputs: Sequence[str]) -> list[str]:
    return [key for key in required_outputs if context.outputs.get(key) in (None, "")]


def validate_required_outputs(
    context: StepContext,
    required_outputs: Sequence[str],
    step_id: Optional[str] = None,
    producers: Optional[Mapping[str, str]] = None,
) -> ValidationResult:
    """Check that configuration and upstream outputs are available.

    Configuration is checked first, so an unconfigured workflow reports
    ``MISSING_CONFIG`` even when outputs are missing too.
    """
    missing_config = [
        name
        for name, value in (("domain", context.domain), ("tenantId", context.tenant_id))
        if not value
    ]
    if missing_config:
        return ValidationResult(
            valid=False,
            error=StepError(
                code=StepErrorCode.MISSING_CONFIG.value,
                message=f"Missing required configuration: {', '.join(missing_config)}.",
            ),
        )

    missing = missing_outputs(context, required_outputs)
    if missing:
        sources = sorted({(producers or {}).get(key) for key in missing} - {None})
        hint = ", ".join(sources) if sources else "the previous steps"
        prefix = f"{step_id}: " if step_id else ""
        return ValidationResult(
            valid=False,
            error=StepError(
                code=StepErrorCode.MISSING_DEPENDENCY.value,
                message=(
                    f"{prefix}Complete these steps first: {', '.join(missing)}. "
                    f"Ensure {hint} completed successfully."
                ),
            ),
        )
    return ValidationResult(valid=True)


def handle_execution_error(error: BaseException, step_id: str) -> StepExecutionResult:
    if isinstance(error, AuthenticationError):
        logger.warning(f"{step_id}: {error.provider.value} authentication expired")
        return StepExecutionResult.failure(
            StepErrorCode.AUTH_EXPIRED,
            error.message,
            outputs={
                "errorCode": StepErrorCode.AUTH_EXPIRED.value,
                "errorProvider": error.provider.value,
            },
        )
    if isinstance(error, APIError):
        logger.warning(f"{step_id}: API error {error.status}: {error.message}")
        return StepExecutionResult.failure(
            error.code or StepErrorCode.API_ERROR, error.message
        )
    if isinstance(error, StepValidationError):
        return StepExecutionResult.failure(error.code, error.message)
    logger.exception(f"{step_id}: unexpected error during execution")
    return StepExecutionResult.failure(
        StepErrorCode.UNKNOWN_ERROR, str(error) or "Unknown error occurred"
    )


def handle_check_error(error: BaseException, step_id: str) -> StepCheckResult:
    if isinstance(error, AuthenticationError):
        provider = error.provider.value
        logger.warning(f"{step_id}: check needs re-authentication with {provider}")
        return StepCheckResult(
            completed=False,
            message=error.message,
            outputs={
                "errorCode": StepErrorCode.AUTH_EXPIRED.value,
                "errorProvider": provider,
                "requiresReauth": True,
            },
            error=StepError(code=StepErrorCode.AUTH_EXPIRED.value, message=error.message),
        )

    managed = classify_error(error, {"step_id": step_id})
    if managed.category == "system":
        logger.exception(f"{step_id}: unexpected error during check")
    else:
        logger.warning(f"{step_id}: check failed: {managed.message}")
    code = managed.code or StepErrorCode.UNKNOWN_ERROR.value
    return StepCheckResult(
        completed=False,
        message=managed.message,
        outputs={
            "errorCode": code,
            "errorMessage": managed.message,
            "errorCategory": managed.category,
        },
        error=StepError(code=code, message=managed.message),
    )


def with_execution_handling(
    step_id: str,
    required_outputs: Sequence[str],
    execute_logic: ExecuteLogic,
    producers: Optional[Mapping[str, str]] = None,
) -> ExecuteLogic:
    async def _execute(context: StepContext) -> StepExecutionResult:
        validation = validate_required_outputs(context, required_outputs, step_id, producers)
        if not validation.valid:
            return StepExecutionResult(success=False, error=validation.error)
        try:
            return await execute_logic(context)
        except Exception as exc:
            return handle_execution_error(exc, step_id)

    return _execute


def with_check_handling(
    step_id: str,
    required_outputs: Sequence[str],
    check_logic: CheckLogic,
) -> CheckLogic:
    async def _check(context: StepContext) -> StepCheckResult:
        missing = missing_outputs(context, required_outputs)
        if missing:
            return StepCheckResult(
                completed=False,
                message=(
                    "This step is blocked. Required outputs are missing: "
                    f"{', '.join(missing)}"
                ),
            )
        try:
            return await check_logic(context)
        except Exception as exc:
            return handle_check_error(exc, step_id)

    return _check
