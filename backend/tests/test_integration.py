"""
Integration and smoke tests for the TeamTrack API.
"""
import pytest

from conftest import LEAD, MEMBER


def sync_body(tasks, members=None, passcode=LEAD):
    return {
        "tasks": tasks,
        "teamMembers": members if members is not None else ["Akhilesh", "Pravallika"],
        "passcode": passcode,
    }


def task_payload(task_id, progress=None, status="In Progress", blockers="", start="2020-01-01", target="2020-01-10"):
    updates = []
    if progress is not None:
        updates.append({
            "progress": progress,
            "status": status,
            "workCompleted": "work",
            "pendingItems": "",
            "blockers": blockers,
            "date": "2020-01-09T12:00:00.000Z",
        })
    return {
        "id": task_id,
        "title": f"Task {task_id}",
        "project": "Portal",
        "sprint": "Sprint 1",
        "category": "Element",
        "assignee": "Pravallika",
        "startDate": start,
        "targetDate": target,
        "updates": updates,
        "leadComments": [],
    }


class TestHealthEndpoints:
    """Smoke tests for health check endpoints."""

    @pytest.mark.asyncio
    async def test_root_endpoint(self, client):
        response = await client.get("/")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["service"] == "TeamTrack API"

    @pytest.mark.asyncio
    async def test_health_endpoint(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["components"]["storage"] == "ok"


class TestDataEndpoints:
    """The fetch/overwrite pair used by the sync client."""

    @pytest.mark.asyncio
    async def test_default_document(self, client):
        response = await client.get("/api/data")
        assert response.status_code == 200
        data = response.json()
        assert data["id"] == "main_storage"
        assert data["tasks"] == []
        assert data["teamMembers"] == ["Akhilesh", "Pravallika", "Chandu", "Sharanya"]

        again = await client.get("/api/data")
        assert again.json() == data

    @pytest.mark.asyncio
    async def test_sync_then_fetch(self, client, sample_task_payload):
        response = await client.post("/api/sync", json=sync_body([sample_task_payload], passcode=MEMBER))
        assert response.status_code == 200
        ack = response.json()
        assert ack["success"] is True
        assert "lastUpdated" in ack

        data = (await client.get("/api/data")).json()
        assert data["lastUpdated"] is not None
        assert data["teamMembers"] == ["Akhilesh", "Pravallika"]
        task = data["tasks"][0]
        assert task["id"] == "abc123def"
        assert task["targetDate"] == "2025-01-11"
        assert task["leadComments"] == []
        assert task["updates"][0]["workCompleted"] == "schema"

    @pytest.mark.asyncio
    async def test_sync_rejects_bad_passcode(self, client):
        response = await client.post("/api/sync", json=sync_body([], passcode="wrong"))
        assert response.status_code == 403
        error = response.json()["error"]
        assert error["type"] == "InvalidPasscode"
        assert error["message"] == "Access Denied: Invalid Passcode"

        data = (await client.get("/api/data")).json()
        assert len(data["teamMembers"]) == 4

    @pytest.mark.asyncio
    async def test_sync_rejects_malformed_payload(self, client):
        response = await client.post("/api/sync", json={"tasks": [{"id": "x"}], "passcode": LEAD})
        assert response.status_code == 422
        assert response.json()["error"]["type"] == "ValidationError"

    @pytest.mark.asyncio
    async def test_sync_rejects_illegal_history(self, client):
        bad = task_payload("bad", progress=80, status="Completed")
        response = await client.post("/api/sync", json=sync_body([bad]))
        assert response.status_code == 422
        error = response.json()["error"]
        assert error["type"] == "InvalidHistory"
        assert error["details"]["reason"] == "InvalidHistory"
        assert "bad" in error["details"]["violations"]


class TestTaskEndpoints:
    """Derived read-only views over the stored document."""

    @pytest.fixture
    async def seeded(self, client):
        tasks = [
            task_payload("late", progress=10),
            task_payload("blocked", progress=90, blockers="waiting on vendor"),
            task_payload("done", progress=100, status="Completed"),
            {**task_payload("mine"), "assignee": "Akhilesh", "startDate": "2099-01-01", "targetDate": "2099-02-01"},
        ]
        response = await client.post("/api/sync", json=sync_body(tasks))
        assert response.status_code == 200
        return client

    @pytest.mark.asyncio
    async def test_list_tasks(self, seeded):
        response = await seeded.get("/api/tasks")
        assert response.status_code == 200
        flags = {v["task"]["id"]: v["scheduleFlag"] for v in response.json()}
        assert flags == {
            "late": "Delayed",
            "blocked": "Delayed (Blocked)",
            "done": "Completed",
            "mine": "On Track",
        }

    @pytest.mark.asyncio
    async def test_list_tasks_by_assignee(self, seeded):
        response = await seeded.get("/api/tasks", params={"assignee": "Akhilesh"})
        views = response.json()
        assert [v["task"]["id"] for v in views] == ["mine"]
        assert views[0]["currentStatus"] == "Assigned"
        assert views[0]["plannedProgress"] == 0.0

    @pytest.mark.asyncio
    async def test_dashboard(self, seeded):
        response = await seeded.get("/api/tasks/dashboard")
        assert response.status_code == 200
        data = response.json()
        assert sorted(v["task"]["id"] for v in data["tasks"]) == ["blocked", "late", "mine"]
        assert data["summary"]["total"] == 4
        assert data["summary"]["completed"] == 1
        assert data["summary"]["by_flag"]["Delayed"] == 1

    @pytest.mark.asyncio
    async def test_archive(self, seeded):
        response = await seeded.get("/api/tasks/archive")
        views = response.json()
        assert [v["task"]["id"] for v in views] == ["done"]
        assert views[0]["timeStatus"]["kind"] == "delivered_on_time"

    @pytest.mark.asyncio
    async def test_get_task(self, seeded):
        response = await seeded.get("/api/tasks/blocked")
        assert response.status_code == 200
        assert response.json()["task"]["updates"][0]["blockers"] == "waiting on vendor"

    @pytest.mark.asyncio
    async def test_get_missing_task(self, client):
        response = await client.get("/api/tasks/nope")
        assert response.status_code == 404
        assert response.json()["error"]["type"] == "TaskNotFound"


class TestExportEndpoints:

    @pytest.mark.asyncio
    async def test_export_json(self, client, sample_task_payload):
        await client.post("/api/sync", json=sync_body([sample_task_payload]))
        response = await client.get("/api/export/json")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/json")
        assert "attachment" in response.headers["content-disposition"]
        assert response.json()["tasks"][0]["id"] == "abc123def"

    @pytest.mark.asyncio
    async def test_export_csv(self, client, sample_task_payload):
        await client.post("/api/sync", json=sync_body([sample_task_payload]))
        response = await client.get("/api/export/csv")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert ".csv" in response.headers["content-disposition"]
        lines = response.text.strip().splitlines()
        assert lines[0].startswith("id,title,project,sprint")
        assert lines[1].startswith("abc123def,Migrate billing,Billing,Sprint 4,Migration,Pravallika")
