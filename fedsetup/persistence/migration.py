"""Upgrading of persisted step status records."""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping

from pydantic import ValidationError

from ..constants import CompletionType, StepStatus
from ..contracts import PersistedProgress, StepStatusInfo

logger = logging.getLogger(__name__)


def migrate_step_status(raw: Any) -> StepStatusInfo:
    """Turn any stored shape of a step status into a :class:`StepStatusInfo`.

    Old records were bare status strings; later ones lacked
    ``completionType`` on completed steps. Such steps count as
    server-verified when ``metadata.preExisting`` is set and as
    user-marked otherwise.
    """
    data: Dict[str, Any] = {"status": StepStatus(raw).value} if isinstance(raw, str) else dict(raw)
    completed = data.get("status") == StepStatus.COMPLETED.value
    if completed and not (data.get("completionType") or data.get("completion_type")):
        pre_existing = bool((data.get("metadata") or {}).get("preExisting"))
        data["completionType"] = (
            CompletionType.SERVER_VERIFIED if pre_existing else CompletionType.USER_MARKED
        ).value
    return StepStatusInfo.model_validate(data)


def parse_progress(data: Mapping[str, Any]) -> PersistedProgress:
    """Build progress from stored JSON, dropping step records that cannot be read."""
    steps: Dict[str, StepStatusInfo] = {}
    for step_id, raw in (data.get("steps") or {}).items():
        try:
            steps[step_id] = migrate_step_status(raw)
        except (ValidationError, ValueError, TypeError) as exc:
            logger.warning(f"Discarding unreadable status for step {step_id}: {exc}")
    return PersistedProgress(steps=steps, outputs=dict(data.get("outputs") or {}))
