"""Classify errors into a small taxonomy and route them to the error slot."""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional

from .constants import Provider, StepErrorCode
from .contracts import ErrorAction, ErrorInfo, ManagedError
from .errors import APIError, AuthenticationError, StepValidationError
from .state import ShowError, WorkflowStore

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "An unexpected error occurred"

_URL_PATTERN = re.compile(r"https?://[^\s)]+")

_TITLES = {
    "auth": "Authentication Required",
    "api": "API Error",
    "validation": "Validation Error",
    "system": "Unexpected Error",
}


def _provider_name(provider: Optional[str]) -> str:
    if provider == Provider.GOOGLE.value:
        return "Google"
    if provider == Provider.MICROSOFT.value:
        return "Microsoft"
    return "your provider"


def classify_error(error: BaseException | Any, context: Optional[Dict[str, Any]] = None) -> ManagedError:
    """Map ``error`` onto a :class:`ManagedError`.

    The function is pure: the same error always yields an equal result.
    """
    if isinstance(error, AuthenticationError):
        provider = error.provider.value
        return ManagedError(
            category="auth",
            message=error.message,
            code=StepErrorCode.AUTH_EXPIRED.value,
            provider=provider,
            recoverable=True,
            action=ErrorAction(kind="SIGN_IN", label="Sign In"),
        )

    if isinstance(error, StepValidationError):
        return ManagedError(category="validation", message=error.message, code=error.code)

    if isinstance(error, APIError):
        code = error.code or StepErrorCode.API_ERROR.value
        if code == StepErrorCode.API_NOT_ENABLED.value:
            match = _URL_PATTERN.search(error.message or "")
            return ManagedError(
                category="api",
                message=error.message,
                code=code,
                provider=Provider.GOOGLE.value,
                recoverable=True,
                action=ErrorAction(
                    kind="ENABLE_API",
                    label="Enable API",
                    url=match.group(0) if match else None,
                ),
            )
        return ManagedError(category="api", message=error.message, code=code)

    if isinstance(error, BaseException):
        message = str(error) or GENERIC_ERROR_MESSAGE
    else:
        message = GENERIC_ERROR_MESSAGE
    return ManagedError(category="system", message=message)


class ErrorManager:
    """Pushes classified errors into the store's global error slot."""

    def __init__(self, store: WorkflowStore) -> None:
        self._store = store

    def handle(self, error: BaseException | Any, context: Optional[Dict[str, Any]] = None) -> ManagedError:
        return classify_error(error, context)

    def to_error_info(
        self, managed: ManagedError, context: Optional[Dict[str, Any]] = None
    ) -> ErrorInfo:
        actions: List[ErrorAction] = []
        if managed.action is not None:
            actions.append(managed.action)
        step_id = (context or {}).get("step_id")
        if step_id and managed.category in ("api", "system"):
            actions.append(ErrorAction(kind="RETRY_STEP", label="Retry", step_id=step_id))
        actions.append(ErrorAction(kind="DISMISS", label="Dismiss"))

        title = _TITLES[managed.category]
        if managed.category == "auth":
            title = f"{_provider_name(managed.provider)} Sign-In Required"

        return ErrorInfo(
            title=title,
            message=managed.message,
            code=managed.code,
            category=managed.category,
            provider=managed.provider,
            recoverable=managed.recoverable,
            details=dict(context or {}),
            actions=actions,
        )

    def dispatch(
        self,
        error: BaseException | Any,
        context: Optional[Dict[str, Any]] = None,
        dismissible: bool = True,
    ) -> ManagedError:
        managed = self.handle(error, context)
        log = logger.warning if managed.recoverable else logger.error
        log(f"[{managed.category}] {managed.code or 'no code'}: {managed.message}")
        self._store.dispatch(
            ShowError(error=self.to_error_info(managed, context), dismissible=dismissible)
        )
        return managed
