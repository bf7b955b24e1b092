import pytest

from fedsetup.constants import CompletionType, StepStatus
from fedsetup.contracts import PersistedProgress, StepStatusInfo
from fedsetup.persistence import (
    InMemoryProgressRepository,
    SQLiteProgressRepository,
    get_repository,
    migrate_step_status,
    parse_progress,
    storage_key,
)


def _progress() -> PersistedProgress:
    return PersistedProgress(
        steps={
            "G-1": StepStatusInfo(
                status=StepStatus.COMPLETED,
                completion_type=CompletionType.SERVER_VERIFIED,
                metadata={"preExisting": True},
            ),
            "M-10": StepStatusInfo(
                status=StepStatus.COMPLETED, completion_type=CompletionType.USER_MARKED
            ),
        },
        outputs={"g1AutomationOuId": "ou-1"},
    )


@pytest.mark.asyncio
async def test_sqlite_repository_crud(tmp_path):
    repo = SQLiteProgressRepository(tmp_path / "progress.db")

    await repo.save_progress("example.com", _progress())
    loaded = await repo.load_progress("example.com")

    assert loaded is not None
    assert loaded.outputs == {"g1AutomationOuId": "ou-1"}
    assert loaded.steps["G-1"].completion_type == CompletionType.SERVER_VERIFIED
    assert loaded.steps["G-1"].metadata == {"preExisting": True}
    assert loaded.steps["M-10"].completion_type == CompletionType.USER_MARKED
    assert await repo.load_progress("other.example") is None

    await repo.clear_progress("example.com")
    assert await repo.load_progress("example.com") is None
    repo.close()


@pytest.mark.asyncio
async def test_sqlite_repository_overwrites_and_survives_reopen(tmp_path):
    db_path = tmp_path / "progress.db"
    repo = SQLiteProgressRepository(db_path)
    await repo.save_progress("example.com", _progress())
    await repo.save_progress("example.com", PersistedProgress(outputs={"g4CustomerId": "C01"}))
    repo.close()

    reopened = SQLiteProgressRepository(db_path)
    loaded = await reopened.load_progress("example.com")
    assert loaded.steps == {}
    assert loaded.outputs == {"g4CustomerId": "C01"}
    reopened.close()


@pytest.mark.asyncio
async def test_sqlite_repository_ignores_corrupt_rows(tmp_path):
    repo = SQLiteProgressRepository(tmp_path / "progress.db")
    repo._execute(
        "INSERT INTO progress (storage_key, data, updated_at) VALUES (?, ?, ?)",
        storage_key("example.com"),
        "{not json",
        "2024-01-01T00:00:00+00:00",
    )

    assert await repo.load_progress("example.com") is None
    repo.close()


@pytest.mark.asyncio
async def test_inmemory_repository_isolates_domains():
    repo = InMemoryProgressRepository()
    await repo.save_progress("example.com", _progress())
    await repo.save_progress("", _progress())

    assert (await repo.load_progress("example.com")).outputs == {"g1AutomationOuId": "ou-1"}
    assert await repo.load_progress("other.example") is None
    assert await repo.load_progress("") is None


def test_storage_key_is_prefixed_by_domain():
    assert storage_key("example.com") == "automation-progress-example.com"


def test_migrate_bare_status_string():
    info = migrate_step_status("failed")

    assert info.status == StepStatus.FAILED
    assert info.completion_type is None


def test_migrate_infers_completion_type():
    verified = migrate_step_status({"status": "completed", "metadata": {"preExisting": True}})
    marked = migrate_step_status({"status": "completed"})
    pending = migrate_step_status({"status": "pending"})

    assert verified.completion_type == CompletionType.SERVER_VERIFIED
    assert marked.completion_type == CompletionType.USER_MARKED
    assert pending.completion_type is None


def test_parse_progress_drops_unreadable_steps():
    progress = parse_progress(
        {
            "steps": {"G-1": "completed", "G-2": "exploded", "G-3": {"status": "pending"}},
            "outputs": {"g4CustomerId": "C01"},
        }
    )

    assert set(progress.steps) == {"G-1", "G-3"}
    assert progress.steps["G-1"].completion_type == CompletionType.USER_MARKED
    assert progress.outputs == {"g4CustomerId": "C01"}


def test_get_repository_backends(tmp_path):
    assert isinstance(get_repository(""), InMemoryProgressRepository)

    repo = get_repository(f"sqlite://{tmp_path / 'progress.db'}")
    assert isinstance(repo, SQLiteProgressRepository)
    repo.close()

    with pytest.raises(ValueError):
        get_repository("postgresql://localhost/db")
