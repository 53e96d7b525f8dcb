"""
Tests for the polling sync client.

The remote is either an httpx.MockTransport handler or the real ASGI app.
"""
import asyncio
import json
import pytest

import httpx
from httpx import ASGITransport

from conftest import LEAD, MEMBER, make_task, make_update
from teamtrack.services.notification_service import NotificationFeed
from teamtrack.services.session_service import ClientSession
from teamtrack.services.sync_client import SyncClient, SyncState
from teamtrack.services.workspace_store import WorkspaceStore


class FakeRemote:
    """Records requests and serves a canned document."""

    def __init__(self, document=None, fail_get=False, fail_post=False):
        self.document = document or {
            "id": "main_storage",
            "tasks": [make_task("remote", updates=[make_update(40)]).to_wire()],
            "teamMembers": ["Akhilesh", "Chandu"],
            "lastUpdated": "2025-01-06T00:00:00Z",
        }
        self.fail_get = fail_get
        self.fail_post = fail_post
        self.pushed = []
        self.fetches = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.method == "GET" and request.url.path == "/api/data":
            self.fetches += 1
            if self.fail_get:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200, json=self.document)
        if request.method == "POST" and request.url.path == "/api/sync":
            body = json.loads(request.content)
            self.pushed.append(body)
            if self.fail_post:
                return httpx.Response(403, json={"error": {"message": "Access Denied: Invalid Passcode"}})
            return httpx.Response(200, json={
                "success": True,
                "message": "State synchronized",
                "lastUpdated": "2025-01-06T00:00:01Z",
            })
        return httpx.Response(404)


class GatedRemote(FakeRemote):
    """Holds the first push open until the test releases it."""

    def __init__(self):
        super().__init__()
        self.first_push_started = asyncio.Event()
        self.release = asyncio.Event()

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        response = super().__call__(request)
        if request.method == "POST" and len(self.pushed) == 1:
            self.first_push_started.set()
            await self.release.wait()
        return response


@pytest.fixture
def feed():
    return NotificationFeed()


@pytest.fixture
async def lead_session(test_settings, feed):
    session = ClientSession(test_settings, notifications=feed)
    await session.login(LEAD)
    return session


def local_store(test_settings):
    return WorkspaceStore(
        tasks=[make_task("local", updates=[make_update(10)])],
        team_members=["Akhilesh"],
        settings=test_settings,
    )


class TestFetch:

    @pytest.mark.asyncio
    async def test_poll_replaces_local_state(self, test_settings, lead_session):
        remote = FakeRemote()
        store = local_store(test_settings)
        async with httpx.AsyncClient(transport=httpx.MockTransport(remote)) as http:
            sync = SyncClient(store, lead_session, settings=test_settings, http_client=http)
            assert await sync.poll_once() is True

        assert [t.id for t in store.tasks] == ["remote"]
        assert store.team_members == ["Akhilesh", "Chandu"]
        assert sync.last_fetch_at is not None
        assert sync.state == SyncState.IDLE
        # a fetch is not a local mutation
        assert remote.pushed == []

    @pytest.mark.asyncio
    async def test_fetch_failure_keeps_state_and_notifies(self, test_settings, lead_session, feed):
        store = local_store(test_settings)
        before = store.snapshot()
        async with httpx.AsyncClient(transport=httpx.MockTransport(FakeRemote(fail_get=True))) as http:
            sync = SyncClient(store, lead_session, settings=test_settings, http_client=http)
            assert await sync.poll_once() is False

        assert store.snapshot() == before
        assert sync.last_error is not None
        assert feed.active()[-1].message == "Retrying sync..."

    @pytest.mark.asyncio
    async def test_malformed_remote_document(self, test_settings, lead_session):
        remote = FakeRemote(document={"tasks": "nope", "teamMembers": []})
        store = local_store(test_settings)
        async with httpx.AsyncClient(transport=httpx.MockTransport(remote)) as http:
            sync = SyncClient(store, lead_session, settings=test_settings, http_client=http)
            assert await sync.poll_once() is False
        assert [t.id for t in store.tasks] == ["local"]


class TestPush:

    @pytest.mark.asyncio
    async def test_mutation_pushes_full_snapshot(self, test_settings, lead_session):
        remote = FakeRemote()
        store = local_store(test_settings)
        async with httpx.AsyncClient(transport=httpx.MockTransport(remote)) as http:
            sync = SyncClient(store, lead_session, settings=test_settings, http_client=http)
            store.add_member("Sharanya", is_lead=True)
            await sync.wait_for_pushes()

        assert len(remote.pushed) == 1
        body = remote.pushed[0]
        assert body["passcode"] == LEAD
        assert body["teamMembers"] == ["Akhilesh", "Sharanya"]
        assert body["tasks"][0]["id"] == "local"
        assert "startDate" in body["tasks"][0]
        assert sync.last_push_at is not None

    @pytest.mark.asyncio
    async def test_push_failure_keeps_optimistic_state(self, test_settings, lead_session, feed):
        remote = FakeRemote(fail_post=True)
        store = local_store(test_settings)
        async with httpx.AsyncClient(transport=httpx.MockTransport(remote)) as http:
            sync = SyncClient(store, lead_session, settings=test_settings, http_client=http)
            store.append_update("local", {"progress": 55})
            await sync.wait_for_pushes()

        assert store.get_task("local").last_progress == 55
        assert feed.active()[-1].message == "Cloud sync failed"

    @pytest.mark.asyncio
    async def test_restored_session_pushes_role_secret(self, test_settings, feed):
        first = ClientSession(test_settings, notifications=feed)
        await first.login(MEMBER)
        restored = ClientSession(test_settings, notifications=feed)
        await restored.restore()

        remote = FakeRemote()
        store = local_store(test_settings)
        async with httpx.AsyncClient(transport=httpx.MockTransport(remote)) as http:
            sync = SyncClient(store, restored, settings=test_settings, http_client=http)
            await sync.push()
        assert remote.pushed[0]["passcode"] == MEMBER

    @pytest.mark.asyncio
    async def test_mutations_during_push_go_out_in_next_push(self, test_settings, lead_session):
        remote = GatedRemote()
        store = local_store(test_settings)
        async with httpx.AsyncClient(transport=httpx.MockTransport(remote)) as http:
            sync = SyncClient(store, lead_session, settings=test_settings, http_client=http)
            store.add_member("Pravallika", is_lead=True)
            await asyncio.wait_for(remote.first_push_started.wait(), timeout=2)
            assert sync.state == SyncState.PUSHING

            store.add_member("Chandu", is_lead=True)
            store.add_member("Sharanya", is_lead=True)
            remote.release.set()
            await sync.wait_for_pushes()

        assert [body["teamMembers"] for body in remote.pushed] == [
            ["Akhilesh", "Pravallika"],
            ["Akhilesh", "Pravallika", "Chandu", "Sharanya"],
        ]
        assert remote.pushed[-1]["teamMembers"] == store.team_members

    @pytest.mark.asyncio
    async def test_back_to_back_mutations_share_one_push(self, test_settings, lead_session):
        remote = FakeRemote()
        store = local_store(test_settings)
        async with httpx.AsyncClient(transport=httpx.MockTransport(remote)) as http:
            sync = SyncClient(store, lead_session, settings=test_settings, http_client=http)
            for name in ("Ravi", "Sharanya", "Chandu"):
                store.add_member(name, is_lead=True)
            await sync.wait_for_pushes()

        assert len(remote.pushed) == 1
        assert remote.pushed[0]["teamMembers"] == ["Akhilesh", "Ravi", "Sharanya", "Chandu"]


class TestLifecycle:

    @pytest.mark.asyncio
    async def test_start_fetches_and_stop_detaches(self, test_settings, lead_session):
        remote = FakeRemote()
        store = local_store(test_settings)
        async with httpx.AsyncClient(transport=httpx.MockTransport(remote)) as http:
            async with SyncClient(store, lead_session, settings=test_settings, http_client=http) as sync:
                assert sync.running
                assert [t.id for t in store.tasks] == ["remote"]
            assert not sync.running

            # detached: later mutations are not pushed
            store.add_member("Ravi", is_lead=True)
            await sync.wait_for_pushes()
        assert remote.pushed == []

    @pytest.mark.asyncio
    async def test_polls_on_interval_until_stopped(self, test_settings, lead_session):
        settings = test_settings.model_copy(update={"poll_interval_seconds": 0.05})
        remote = FakeRemote()
        store = local_store(settings)
        async with httpx.AsyncClient(transport=httpx.MockTransport(remote)) as http:
            sync = SyncClient(store, lead_session, settings=settings, http_client=http)
            await sync.start()
            assert remote.fetches == 1

            await asyncio.sleep(0.4)
            assert remote.fetches >= 3

            await sync.stop()
            await asyncio.sleep(0.02)
            stopped_at = remote.fetches
            await asyncio.sleep(0.2)
            assert remote.fetches == stopped_at

    @pytest.mark.asyncio
    async def test_interval_poll_picks_up_remote_changes(self, test_settings, lead_session):
        settings = test_settings.model_copy(update={"poll_interval_seconds": 0.05})
        remote = FakeRemote()
        store = local_store(settings)
        async with httpx.AsyncClient(transport=httpx.MockTransport(remote)) as http:
            async with SyncClient(store, lead_session, settings=settings, http_client=http):
                assert store.team_members == ["Akhilesh", "Chandu"]
                remote.document = {**remote.document, "teamMembers": ["Akhilesh", "Chandu", "Ravi"]}
                await asyncio.sleep(0.3)
                assert store.team_members == ["Akhilesh", "Chandu", "Ravi"]
        assert remote.pushed == []


class TestAgainstServer:

    @pytest.mark.asyncio
    async def test_two_clients_converge(self, app, client, test_settings, feed):
        lead = ClientSession(test_settings, notifications=feed)
        await lead.login(LEAD)
        member = ClientSession(test_settings, notifications=feed)
        await member.login(MEMBER)

        lead_store = WorkspaceStore(settings=test_settings)
        member_store = WorkspaceStore(settings=test_settings)

        async with httpx.AsyncClient(transport=ASGITransport(app=app)) as http:
            lead_sync = SyncClient(lead_store, lead, settings=test_settings, http_client=http)
            member_sync = SyncClient(member_store, member, settings=test_settings, http_client=http)
            await lead_sync.poll_once()
            await member_sync.poll_once()
            assert lead_store.team_members == ["Akhilesh", "Pravallika", "Chandu", "Sharanya"]

            task = lead_store.add_task(
                {"title": "Demo prep", "assignee": "Chandu", "targetDate": "2030-01-01"},
                is_lead=lead.is_lead,
            )
            await lead_sync.wait_for_pushes()

            await member_sync.poll_once()
            assert [t.id for t in member_store.tasks] == [task.id]

            member_store.append_update(task.id, {"progress": 25, "workCompleted": "slides"})
            await member_sync.wait_for_pushes()

            await lead_sync.poll_once()
            assert lead_store.get_task(task.id).last_progress == 25

            await lead_sync.stop()
            await member_sync.stop()
