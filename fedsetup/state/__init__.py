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
from .store import WorkflowState, WorkflowStore, reduce

__all__ = [
    "AddOutput",
    "AddOutputs",
    "ClearAllCheckTimestamps",
    "ClearAllData",
    "ClearCheckTimestamp",
    "ClearErrorHistory",
    "DismissError",
    "InitializeSteps",
    "MarkStepComplete",
    "MarkStepIncomplete",
    "SetConfig",
    "ShowError",
    "UpdateStep",
    "WorkflowState",
    "WorkflowStore",
    "reduce",
]
