"""Data contracts shared by the step engine, the API layer and the store."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .constants import CompletionType, StepErrorCode, StepStatus

logger = logging.getLogger(__name__)

ProviderScope = Literal["google", "microsoft", "both"]
ErrorCategory = Literal["auth", "api", "validation", "system"]


def utc_now() -> str:
    """Return the current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


class CamelModel(BaseModel):
    """Base model serialised with camelCase keys, as persisted and streamed."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class StepInput(CamelModel):
    """A value a step consumes, usually an output of an earlier step."""

    type: Literal["keyValue", "stepCompletion"] = "keyValue"
    key: Optional[str] = None
    description: Optional[str] = None
    produced_by: Optional[str] = None
    step_id: Optional[str] = None


class StepOutput(CamelModel):
    key: str
    description: Optional[str] = None
    value: Any = None


class ApiLogEntry(CamelModel):
    """One outbound API call captured during a check or execute."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: str = Field(default_factory=utc_now)
    method: str
    url: str
    headers: Dict[str, str] = Field(default_factory=dict)
    request_body: Any = None
    response_status: Optional[int] = None
    response_body: Any = None
    error: Optional[str] = None
    duration: Optional[float] = None
    provider: Literal["google", "microsoft", "other"] = "other"


class LogEntry(CamelModel):
    """A structured entry of the per-session debug log."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: str = Field(default_factory=utc_now)
    level: Literal["debug", "info", "warn", "error"] = "info"
    category: Literal["api", "auth", "step", "system"] = "system"
    provider: Optional[Literal["google", "microsoft"]] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class StepStatusInfo(CamelModel):
    """Dynamic status of a single step, owned by the workflow store."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    status: StepStatus = StepStatus.PENDING
    completion_type: Optional[CompletionType] = None
    error: Optional[str] = None
    message: Optional[str] = None
    last_checked_at: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class StepContext(BaseModel):
    """Per-invocation view of the workflow handed to step logic."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    domain: Optional[str] = None
    tenant_id: Optional[str] = None
    outputs: Dict[str, Any] = Field(default_factory=dict)
    logger: Optional[Any] = Field(default=None, exclude=True)


class StepError(BaseModel):
    code: str = StepErrorCode.UNKNOWN_ERROR.value
    message: str = ""

    @property
    def is_auth_expired(self) -> bool:
        return self.code == StepErrorCode.AUTH_EXPIRED.value


class StepCheckResult(CamelModel):
    completed: bool
    message: Optional[str] = None
    outputs: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[StepError] = None
    api_logs: List[ApiLogEntry] = Field(default_factory=list)


class StepExecutionResult(CamelModel):
    success: bool
    message: Optional[str] = None
    resource_url: Optional[str] = None
    outputs: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[StepError] = None
    api_logs: List[ApiLogEntry] = Field(default_factory=list)

    @classmethod
    def failure(
        cls, code: str | StepErrorCode, message: str, **kwargs: Any
    ) -> "StepExecutionResult":
        code_value = code.value if isinstance(code, StepErrorCode) else code
        return cls(success=False, error=StepError(code=code_value, message=message), **kwargs)


class ValidationResult(BaseModel):
    valid: bool
    error: Optional[StepError] = None


class SessionError(BaseModel):
    provider: ProviderScope
    message: str
    code: Optional[str] = None


class SessionValidation(CamelModel):
    valid: bool
    google_valid: bool = False
    microsoft_valid: bool = False
    error: Optional[SessionError] = None


class ErrorAction(CamelModel):
    """A remedial action offered alongside a classified error."""

    kind: Literal["SIGN_IN", "ENABLE_API", "OPEN_URL", "RETRY_STEP", "DISMISS"]
    label: str
    url: Optional[str] = None
    step_id: Optional[str] = None


class ManagedError(BaseModel):
    category: ErrorCategory
    message: str
    code: Optional[str] = None
    provider: Optional[str] = None
    recoverable: bool = False
    action: Optional[ErrorAction] = None


class ErrorInfo(CamelModel):
    """Error presented through the store's global error slot."""

    title: str = "Error"
    message: str
    code: Optional[str] = None
    category: ErrorCategory = "system"
    provider: Optional[str] = None
    recoverable: bool = False
    details: Dict[str, Any] = Field(default_factory=dict)
    actions: List[ErrorAction] = Field(default_factory=list)


class ErrorRecord(CamelModel):
    error: ErrorInfo
    timestamp: str = Field(default_factory=utc_now)
    dismissed: bool = False


class PersistedProgress(CamelModel):
    """Snapshot of a domain's progress as stored by a repository."""

    steps: Dict[str, StepStatusInfo] = Field(default_factory=dict)
    outputs: Dict[str, Any] = Field(default_factory=dict)
