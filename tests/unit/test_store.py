import pytest

from fedsetup.constants import CompletionType, StepStatus
from fedsetup.contracts import ErrorInfo, StepStatusInfo
from fedsetup.state import (
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
    WorkflowStore,
)


@pytest.fixture
def store():
    store = WorkflowStore()
    store.dispatch(SetConfig(domain="example.com", tenant_id="tenant-123"))
    store.dispatch(InitializeSteps({"G-1": StepStatusInfo(), "G-2": StepStatusInfo()}))
    return store


def test_mark_complete_is_idempotent(store):
    store.dispatch(MarkStepComplete("G-1", is_user_marked=True))
    once = store.get_state()
    store.dispatch(MarkStepComplete("G-1", is_user_marked=True))
    twice = store.get_state()

    assert once == twice
    assert twice.step_status("G-1").completion_type == CompletionType.USER_MARKED
    assert twice.user_completions == {"G-1": True}


def test_mark_incomplete_resets_to_pending(store):
    store.dispatch(MarkStepComplete("G-1"))
    store.dispatch(MarkStepIncomplete("G-1"))

    info = store.get_state().step_status("G-1")
    assert info.status == StepStatus.PENDING
    assert info.completion_type is None
    assert store.get_state().user_completions == {"G-1": False}


def test_steps_and_outputs_are_independent(store):
    store.dispatch(AddOutput("g1AutomationOuId", "ou-1"))
    store.dispatch(MarkStepComplete("G-2"))

    state = store.get_state()
    assert state.step_status("G-1").status == StepStatus.PENDING
    assert state.outputs == {"g1AutomationOuId": "ou-1"}

    store.dispatch(AddOutputs({"g1AutomationOuPath": "/Automation"}))
    assert set(store.get_state().outputs) == {"g1AutomationOuId", "g1AutomationOuPath"}


def test_update_step_merges_and_check_timestamps_clear(store):
    store.dispatch(UpdateStep("G-1", {"message": "Checking", "last_checked_at": "t1"}))
    store.dispatch(UpdateStep("G-2", {"last_checked_at": "t2"}))
    store.dispatch(UpdateStep("G-1", {"status": StepStatus.IN_PROGRESS}))

    info = store.get_state().step_status("G-1")
    assert (info.status, info.message, info.last_checked_at) == (
        StepStatus.IN_PROGRESS,
        "Checking",
        "t1",
    )

    store.dispatch(ClearCheckTimestamp("G-1"))
    assert store.get_state().step_status("G-1").last_checked_at is None
    assert store.get_state().step_status("G-2").last_checked_at == "t2"

    store.dispatch(ClearAllCheckTimestamps())
    assert store.get_state().step_status("G-2").last_checked_at is None


def test_clear_all_data_keeps_error_history(store):
    store.dispatch(AddOutput("g4CustomerId", "C01"))
    store.dispatch(ShowError(ErrorInfo(message="boom")))
    store.dispatch(ClearAllData())

    state = store.get_state()
    assert state.domain is None
    assert state.steps == {}
    assert state.outputs == {}
    assert len(state.error_history) == 1

    store.dispatch(ClearErrorHistory())
    assert store.get_state().error_history == []


def test_dismiss_error_and_listeners(store):
    seen = []
    unsubscribe = store.subscribe(lambda state: seen.append(state.active_error))

    store.dispatch(ShowError(ErrorInfo(message="boom"), dismissible=False))
    assert store.get_state().is_dismissible is False

    store.dispatch(DismissError())
    unsubscribe()
    store.dispatch(DismissError())

    assert store.get_state().active_error is None
    assert store.get_state().is_dismissible is True
    assert [error.message if error else None for error in seen] == ["boom", None]


def test_unknown_action_rejected(store):
    with pytest.raises(TypeError):
        store.dispatch(object())
