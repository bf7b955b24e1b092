import sqlite3

import pytest

from fedsetup.auth import Session
from fedsetup.constants import CompletionType, OutputKeys, StepStatus
from fedsetup.persistence import InMemoryProgressRepository, SQLiteProgressRepository
from fedsetup.state import AddOutput, MarkStepComplete

DOMAIN = "example.com"
TENANT_ID = "tenant-123"
OU_URL = "/customer/my_customer/orgunits/Automation"


@pytest.mark.asyncio
async def test_configure_initializes_every_step_pending(make_workflow):
    async with make_workflow() as workflow:
        await workflow.configure(DOMAIN, TENANT_ID)

        assert set(workflow.state.steps) == set(workflow.registry.ids)
        assert all(info.status == StepStatus.PENDING for info in workflow.state.steps.values())


@pytest.mark.asyncio
async def test_check_marks_existing_ou_server_verified(make_workflow, providers):
    providers.json("GET", OU_URL, {"orgUnitId": "ou-123", "orgUnitPath": "/Automation"})

    async with make_workflow() as workflow:
        await workflow.configure(DOMAIN, TENANT_ID)
        await workflow.check_all()

        info = workflow.state.step_status("G-1")
        assert info.status == StepStatus.COMPLETED
        assert info.completion_type == CompletionType.SERVER_VERIFIED
        assert info.metadata["preExisting"] is True
        assert "admin.google.com" in info.metadata["resourceUrl"]
        assert info.last_checked_at is not None
        assert workflow.state.outputs[OutputKeys.AUTOMATION_OU_ID] == "ou-123"
        assert "resourceUrl" not in workflow.state.outputs


@pytest.mark.asyncio
async def test_execute_records_outputs_and_resource_url(make_workflow, providers):
    providers.json(
        "POST",
        "/customer/my_customer/orgunits",
        {"orgUnitId": "ou-1", "orgUnitPath": "/Automation"},
    )

    async with make_workflow() as workflow:
        await workflow.configure(DOMAIN, TENANT_ID)
        allowed = await workflow.execute("G-1")

        info = workflow.state.step_status("G-1")
        assert allowed is True
        assert info.status == StepStatus.COMPLETED
        assert info.metadata["resourceUrl"].startswith("https://admin.google.com")
        assert workflow.state.outputs[OutputKeys.AUTOMATION_OU_PATH] == "/Automation"
        assert workflow.state.active_error is None


@pytest.mark.asyncio
async def test_failed_execution_fills_error_slot(make_workflow, providers):
    providers.error("POST", "/customer/my_customer/orgunits", 500, "Backend Error")

    async with make_workflow() as workflow:
        await workflow.configure(DOMAIN, TENANT_ID)
        await workflow.execute("G-1")

        info = workflow.state.step_status("G-1")
        assert info.status == StepStatus.FAILED
        assert info.error == "Backend Error"
        error = workflow.state.active_error
        assert error.category == "api"
        assert [action.kind for action in error.actions] == ["RETRY_STEP", "DISMISS"]
        assert error.details["step_id"] == "G-1"


@pytest.mark.asyncio
async def test_execute_refused_without_microsoft_sign_in(make_workflow, providers):
    session = Session(has_google_auth=True, google_token="google-token")

    async with make_workflow(session=session) as workflow:
        await workflow.configure(DOMAIN, TENANT_ID)
        allowed = await workflow.execute("G-1")

        assert allowed is False
        assert providers.requests == []
        assert workflow.state.step_status("G-1").status == StepStatus.PENDING
        assert workflow.state.active_error.message == "Please sign in with Microsoft"


@pytest.mark.asyncio
async def test_restore_keeps_outputs_and_drops_verified_statuses(make_workflow):
    repository = InMemoryProgressRepository()

    async with make_workflow(repository=repository) as workflow:
        await workflow.configure(DOMAIN, TENANT_ID)
        workflow.store.dispatch(MarkStepComplete("G-1"))
        workflow.store.dispatch(AddOutput(OutputKeys.AUTOMATION_OU_ID, "ou-1"))
        await workflow.save()

    async with make_workflow(repository=repository) as workflow:
        await workflow.configure(DOMAIN, TENANT_ID)

        assert workflow.state.step_status("G-1").status == StepStatus.PENDING
        assert workflow.state.outputs[OutputKeys.AUTOMATION_OU_ID] == "ou-1"

    stored = await repository.load_progress(DOMAIN)
    assert stored.steps["G-1"].completion_type == CompletionType.SERVER_VERIFIED


@pytest.mark.asyncio
async def test_restore_keeps_user_marked_completions(make_workflow):
    repository = InMemoryProgressRepository()

    async with make_workflow(repository=repository) as workflow:
        await workflow.configure(DOMAIN, TENANT_ID)
        workflow.mark_complete("M-10")
        await workflow.save()

    async with make_workflow(repository=repository) as workflow:
        await workflow.configure(DOMAIN, TENANT_ID)

        info = workflow.state.step_status("M-10")
        assert info.status == StepStatus.COMPLETED
        assert info.completion_type == CompletionType.USER_MARKED
        assert workflow.state.user_completions["M-10"] is True
        assert workflow.state.step_status("M-9").status == StepStatus.PENDING


@pytest.mark.asyncio
async def test_aclose_closes_sqlite_repository(make_workflow, tmp_path):
    repository = SQLiteProgressRepository(tmp_path / "progress.db")

    async with make_workflow(repository=repository) as workflow:
        await workflow.configure(DOMAIN, TENANT_ID)
        await workflow.save()

    with pytest.raises(sqlite3.ProgrammingError):
        await repository.load_progress(DOMAIN)


@pytest.mark.asyncio
async def test_reset_clears_stored_progress(make_workflow):
    repository = InMemoryProgressRepository()

    async with make_workflow(repository=repository) as workflow:
        await workflow.configure(DOMAIN, TENANT_ID)
        workflow.mark_complete("G-1")
        await workflow.save()
        await workflow.reset()

        assert await repository.load_progress(DOMAIN) is None
        assert workflow.state.domain == DOMAIN
        assert workflow.state.step_status("G-1").status == StepStatus.PENDING


@pytest.mark.asyncio
async def test_switching_domain_clears_previous_outputs(make_workflow, providers):
    providers.json("GET", OU_URL, {"orgUnitId": "ou-123", "orgUnitPath": "/Automation"})

    async with make_workflow() as workflow:
        await workflow.configure(DOMAIN, TENANT_ID)
        await workflow.check_all()
        await workflow.configure("other.example", TENANT_ID)

        assert workflow.state.domain == "other.example"
        assert workflow.state.outputs == {}
