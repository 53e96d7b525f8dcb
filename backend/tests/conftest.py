"""
Shared test fixtures for TeamTrack tests.
"""
import pytest
from datetime import date, datetime, timezone

from httpx import AsyncClient, ASGITransport

from teamtrack.infrastructure.config import Settings
from teamtrack.models.task import EODUpdate, Task, TaskStatus
from teamtrack.services.notification_service import NotificationFeed
from teamtrack.services.workspace_store import WorkspaceStore


LEAD = "admin123"
MEMBER = "team2024"

# Fixed "now" used by status tests: halfway through a Jan 1 -> Jan 11 window.
NOW = datetime(2025, 1, 6, tzinfo=timezone.utc)


@pytest.fixture
def test_workspace(tmp_path):
    """Create a temporary workspace directory."""
    workspace = tmp_path / "workspace"
    workspace.mkdir()
    return str(workspace)


@pytest.fixture
def test_settings(test_workspace, tmp_path):
    """Settings pointing at the temporary workspace and client state dir."""
    return Settings(
        workspace_dir=test_workspace,
        client_state_dir=str(tmp_path / "client"),
        remote_url="http://teamtrack.test",
        poll_interval_seconds=60,
        request_timeout_seconds=2,
    )


@pytest.fixture
def app(test_settings):
    from teamtrack.main import create_app
    return create_app(test_settings)


@pytest.fixture
async def client(app):
    """Async HTTP client for testing FastAPI endpoints.

    ASGITransport does not send lifespan events, so the lifespan context is
    entered explicitly to run startup checks and create the document service.
    """
    async with app.router.lifespan_context(app):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac


@pytest.fixture
def notifications():
    return NotificationFeed()


def make_update(progress, status=TaskStatus.IN_PROGRESS, blockers=None, when=None):
    return EODUpdate(
        progress=progress,
        status=status,
        work_completed="did things",
        blockers=blockers,
        date=when or datetime(2025, 1, 5, 18, tzinfo=timezone.utc),
    )


def make_task(task_id="t1", assignee="Chandu", updates=None, start=date(2025, 1, 1), target=date(2025, 1, 11)):
    return Task(
        id=task_id,
        title=f"Task {task_id}",
        project="Portal",
        assignee=assignee,
        start_date=start,
        target_date=target,
        updates=updates or [],
    )


@pytest.fixture
def sample_task():
    """Task assigned Jan 1, due Jan 11, with one update at 30%."""
    return make_task(updates=[make_update(30)])


@pytest.fixture
def store(test_settings, sample_task):
    return WorkspaceStore(
        tasks=[sample_task],
        team_members=["Akhilesh", "Pravallika", "Chandu", "Sharanya"],
        settings=test_settings,
        clock=lambda: NOW,
    )


@pytest.fixture
def sample_task_payload():
    """Camel-case task as exchanged on the wire."""
    return {
        "id": "abc123def",
        "title": "Migrate billing",
        "project": "Billing",
        "sprint": "Sprint 4",
        "category": "Migration",
        "assignee": "Pravallika",
        "startDate": "2025-01-01",
        "targetDate": "2025-01-11T00:00:00.000Z",
        "updates": [
            {
                "progress": 40,
                "status": "In Progress",
                "workCompleted": "schema",
                "pendingItems": "data copy",
                "blockers": "",
                "expectedCompletionDate": "2025-01-10",
                "date": "2025-01-04T17:30:00.000Z",
            }
        ],
        "leadComments": None,
        "healthStatus": None,
    }
