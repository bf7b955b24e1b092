"""Reducer-style store holding the workflow's mutable state."""

from __future__ import annotations

import logging
from functools import singledispatch
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..constants import CompletionType, StepStatus
from ..contracts import ErrorInfo, ErrorRecord, StepStatusInfo
from .actions import (
    AddOutput,
    AddOutputs,
    ClearAllCheckTimestamps,
    ClearAllData,
    ClearCheckTimestamp,
    ClearErrorHistory,
    DismissError,
    InitializeSteps,
    MarkStepComplete,
    MarkStepIncomplete,
    SetConfig,
    ShowError,
    UpdateStep,
)

logger = logging.getLogger(__name__)

Listener = Callable[["WorkflowState"], None]


class WorkflowState(BaseModel):
    """Immutable snapshot of the workflow.

    ``steps`` and ``outputs`` are updated independently of each other; a step
    may be completed without outputs and an output may exist for a step that
    was never marked complete.
    """

    model_config = ConfigDict(frozen=True)

    domain: Optional[str] = None
    tenant_id: Optional[str] = None
    steps: Dict[str, StepStatusInfo] = Field(default_factory=dict)
    user_completions: Dict[str, bool] = Field(default_factory=dict)
    outputs: Dict[str, Any] = Field(default_factory=dict)
    active_error: Optional[ErrorInfo] = None
    is_dismissible: bool = True
    error_history: List[ErrorRecord] = Field(default_factory=list)

    def step_status(self, step_id: str) -> StepStatusInfo:
        return self.steps.get(step_id) or StepStatusInfo()


def _with_step(state: WorkflowState, step_id: str, info: StepStatusInfo) -> WorkflowState:
    return state.model_copy(update={"steps": {**state.steps, step_id: info}})


@singledispatch
def reduce(action: Any, state: WorkflowState) -> WorkflowState:
    raise TypeError(f"Unsupported action: {type(action).__name__}")


@reduce.register
def _(action: InitializeSteps, state: WorkflowState) -> WorkflowState:
    return state.model_copy(update={"steps": dict(action.steps)})


@reduce.register
def _(action: UpdateStep, state: WorkflowState) -> WorkflowState:
    current = state.step_status(action.step_id)
    return _with_step(state, action.step_id, current.model_copy(update=dict(action.changes)))


@reduce.register
def _(action: MarkStepComplete, state: WorkflowState) -> WorkflowState:
    current = state.step_status(action.step_id)
    completion = (
        CompletionType.USER_MARKED if action.is_user_marked else CompletionType.SERVER_VERIFIED
    )
    new_state = _with_step(
        state,
        action.step_id,
        current.model_copy(update={"status": StepStatus.COMPLETED, "completion_type": completion}),
    )
    if action.is_user_marked:
        new_state = new_state.model_copy(
            update={"user_completions": {**state.user_completions, action.step_id: True}}
        )
    return new_state


@reduce.register
def _(action: MarkStepIncomplete, state: WorkflowState) -> WorkflowState:
    current = state.step_status(action.step_id)
    new_state = _with_step(
        state,
        action.step_id,
        current.model_copy(update={"status": StepStatus.PENDING, "completion_type": None}),
    )
    return new_state.model_copy(
        update={"user_completions": {**state.user_completions, action.step_id: False}}
    )


@reduce.register
def _(action: ClearCheckTimestamp, state: WorkflowState) -> WorkflowState:
    current = state.steps.get(action.step_id)
    if current is None:
        return state
    return _with_step(state, action.step_id, current.model_copy(update={"last_checked_at": None}))


@reduce.register
def _(action: ClearAllCheckTimestamps, state: WorkflowState) -> WorkflowState:
    steps = {
        step_id: info.model_copy(update={"last_checked_at": None})
        for step_id, info in state.steps.items()
    }
    return state.model_copy(update={"steps": steps})


@reduce.register
def _(action: ClearAllData, state: WorkflowState) -> WorkflowState:
    return state.model_copy(
        update={
            "domain": None,
            "tenant_id": None,
            "steps": {},
            "user_completions": {},
            "outputs": {},
        }
    )


@reduce.register
def _(action: AddOutput, state: WorkflowState) -> WorkflowState:
    return state.model_copy(update={"outputs": {**state.outputs, action.key: action.value}})


@reduce.register
def _(action: AddOutputs, state: WorkflowState) -> WorkflowState:
    return state.model_copy(update={"outputs": {**state.outputs, **action.outputs}})


@reduce.register
def _(action: SetConfig, state: WorkflowState) -> WorkflowState:
    return state.model_copy(update={"domain": action.domain, "tenant_id": action.tenant_id})


@reduce.register
def _(action: ShowError, state: WorkflowState) -> WorkflowState:
    return state.model_copy(
        update={
            "active_error": action.error,
            "is_dismissible": action.dismissible,
            "error_history": [*state.error_history, ErrorRecord(error=action.error)],
        }
    )


@reduce.register
def _(action: DismissError, state: WorkflowState) -> WorkflowState:
    history = list(state.error_history)
    if state.active_error is not None and history:
        history[-1] = history[-1].model_copy(update={"dismissed": True})
    return state.model_copy(
        update={"active_error": None, "is_dismissible": True, "error_history": history}
    )


@reduce.register
def _(action: ClearErrorHistory, state: WorkflowState) -> WorkflowState:
    return state.model_copy(update={"error_history": []})


class WorkflowStore:
    """Holds the current :class:`WorkflowState` and applies actions to it."""

    def __init__(self, initial: Optional[WorkflowState] = None) -> None:
        self._state = initial or WorkflowState()
        self._listeners: List[Listener] = []

    def get_state(self) -> WorkflowState:
        return self._state

    def dispatch(self, action: Any) -> WorkflowState:
        self._state = reduce(action, self._state)
        logger.debug(f"Applied {type(action).__name__}")
        for listener in list(self._listeners):
            listener(self._state)
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener``; returns a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe
