"""Mutation actions accepted by :class:`~fedsetup.state.store.WorkflowStore`."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from ..contracts import ErrorInfo, StepStatusInfo


@dataclass(frozen=True)
class InitializeSteps:
    """Replace the whole steps map."""

    steps: Mapping[str, StepStatusInfo]


@dataclass(frozen=True)
class UpdateStep:
    """Shallow-merge ``changes`` into the status entry of ``step_id``."""

    step_id: str
    changes: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class MarkStepComplete:
    step_id: str
    is_user_marked: bool = False


@dataclass(frozen=True)
class MarkStepIncomplete:
    step_id: str


@dataclass(frozen=True)
class ClearCheckTimestamp:
    step_id: str


@dataclass(frozen=True)
class ClearAllCheckTimestamps:
    pass


@dataclass(frozen=True)
class ClearAllData:
    pass


@dataclass(frozen=True)
class AddOutput:
    key: str
    value: Any


@dataclass(frozen=True)
class AddOutputs:
    outputs: Mapping[str, Any]


@dataclass(frozen=True)
class SetConfig:
    domain: Optional[str]
    tenant_id: Optional[str]


@dataclass(frozen=True)
class ShowError:
    error: ErrorInfo
    dismissible: bool = True


@dataclass(frozen=True)
class DismissError:
    pass


@dataclass(frozen=True)
class ClearErrorHistory:
    pass
