"""
Polling sync client.

Keeps a WorkspaceStore in step with the remote single-document store:

  Idle --(interval tick)--> Fetching --(ok: replace local state)--> Idle
                                     --(error: warn, keep local)--> Idle
  Idle --(local mutation)--> Pushing --(ok)--> Idle
                                     --(error: warn, keep optimistic local)--> Idle

Both directions move the whole document, so concurrent writers overwrite each
other (last full write wins, no merge, no conflict detection). Pushes go out
one at a time; mutations made while a push is in flight are sent together in
the next push, carrying the newest snapshot. A poll that lands between a local
mutation and its push can briefly bring back stale remote data; the next push
or poll settles it.

Uses APScheduler for the fixed-interval poll (max_instances=1: a hung fetch
delays the next tick instead of stacking requests).
"""

import asyncio
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Set

import httpx
import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from pydantic import ValidationError

from teamtrack.infrastructure.config import Settings, get_settings
from teamtrack.infrastructure.exceptions import SyncTransportError
from teamtrack.models.workspace import SyncAck, SyncRequest, WorkspaceDocument, WorkspaceSnapshot
from teamtrack.services.notification_service import NotificationFeed, NotificationLevel
from teamtrack.services.session_service import ClientSession
from teamtrack.services.workspace_store import WorkspaceStore

logger = structlog.get_logger(__name__)

POLL_JOB_ID = "workspace_poll"


class SyncState(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    PUSHING = "pushing"


class SyncClient:
    """
    Reconciles a local WorkspaceStore with the remote document.

    Usage:
        async with SyncClient(store, session) as sync:
            ...  # store mutations are pushed, remote state is polled
    """

    def __init__(
        self,
        store: WorkspaceStore,
        session: ClientSession,
        settings: Settings = None,
        notifications: Optional[NotificationFeed] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.settings = settings or get_settings()
        self.store = store
        self.session = session
        self.notifications = notifications or session.notifications
        self.base_url = self.settings.remote_url.rstrip("/")
        self.interval_seconds = max(0.01, float(self.settings.poll_interval_seconds))
        self.timeout = self.settings.request_timeout_seconds

        self._client = http_client
        self._owns_client = http_client is None
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._running = False
        self._accepting_pushes = True
        self._fetching = False
        self._pushes_in_flight = 0
        self._pending: Set[asyncio.Task] = set()
        self._pusher: Optional[asyncio.Task] = None
        self._queued: Optional[WorkspaceSnapshot] = None

        self.last_fetch_at: Optional[datetime] = None
        self.last_push_at: Optional[datetime] = None
        self.last_error: Optional[str] = None

        self.store.add_listener(self._on_local_change)

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create a persistent HTTP client for connection reuse."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout)
            self._owns_client = True
        return self._client

    @property
    def state(self) -> SyncState:
        if self._pushes_in_flight:
            return SyncState.PUSHING
        if self._fetching:
            return SyncState.FETCHING
        return SyncState.IDLE

    @property
    def running(self) -> bool:
        return self._running

    # ============================================
    # LIFECYCLE
    # ============================================

    async def start(self) -> None:
        """Fetch once immediately, then poll on a fixed interval."""
        if self._running:
            logger.warning("sync_client_already_running")
            return

        self._accepting_pushes = True
        await self.poll_once()

        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            self.poll_once,
            trigger=IntervalTrigger(seconds=self.interval_seconds),
            id=POLL_JOB_ID,
            name="Poll remote workspace document",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self._scheduler.start()
        self._running = True
        logger.info("sync_client_started", remote=self.base_url, interval=self.interval_seconds)

    async def stop(self) -> None:
        """Stop polling, cancel outstanding pushes and release the HTTP client."""
        self._accepting_pushes = False
        self._queued = None
        if self._scheduler is not None and self._running:
            self._scheduler.shutdown(wait=False)
        self._scheduler = None
        self._running = False

        pending = list(self._pending)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        self.store.remove_listener(self._on_local_change)
        if self._owns_client and self._client is not None:
            await self._client.aclose()
        logger.info("sync_client_stopped")

    async def __aenter__(self) -> "SyncClient":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()

    # ============================================
    # FETCH (remote is authoritative on read)
    # ============================================

    async def fetch_document(self) -> WorkspaceDocument:
        """GET the remote document. Raises SyncTransportError on any failure."""
        try:
            response = await self.client.get(f"{self.base_url}/api/data")
            response.raise_for_status()
            return WorkspaceDocument.model_validate(response.json())
        except httpx.HTTPError as e:
            raise SyncTransportError("fetch", f"Fetch failed: {e}") from e
        except (ValueError, ValidationError) as e:
            raise SyncTransportError("fetch", f"Malformed remote document: {e}") from e

    async def poll_once(self) -> bool:
        """One poll tick. Failures are reported and tolerated until the next tick."""
        self._fetching = True
        try:
            document = await self.fetch_document()
        except SyncTransportError as e:
            self.last_error = e.message
            logger.warning("sync_fetch_failed", error=e.message)
            self.notifications.push("Retrying sync...", NotificationLevel.WARNING, "sync")
            return False
        finally:
            self._fetching = False

        self.store.replace(document.tasks, document.team_members)
        self.last_fetch_at = datetime.now(timezone.utc)
        self.last_error = None
        logger.debug("sync_fetch_applied", tasks=len(document.tasks), members=len(document.team_members))
        return True

    # ============================================
    # PUSH (full snapshot, last write wins)
    # ============================================

    async def send_snapshot(self, snapshot: WorkspaceSnapshot) -> SyncAck:
        """POST a full snapshot. Raises SyncTransportError on any failure."""
        payload = SyncRequest(
            tasks=snapshot.tasks,
            team_members=snapshot.team_members,
            passcode=self.session.push_passcode,
        )
        try:
            response = await self.client.post(
                f"{self.base_url}/api/sync",
                json=payload.model_dump(mode="json", by_alias=True),
            )
            response.raise_for_status()
            return SyncAck.model_validate(response.json())
        except httpx.HTTPError as e:
            raise SyncTransportError("push", f"Push failed: {e}") from e
        except (ValueError, ValidationError) as e:
            raise SyncTransportError("push", f"Malformed sync acknowledgement: {e}") from e

    async def push(self, snapshot: Optional[WorkspaceSnapshot] = None) -> bool:
        """
        Push the given snapshot (default: the store's state right now).

        On failure the local optimistic state is kept and the user is warned
        that the remote may be stale.
        """
        snapshot = snapshot or self.store.snapshot()
        self._pushes_in_flight += 1
        try:
            ack = await self.send_snapshot(snapshot)
        except SyncTransportError as e:
            self.last_error = e.message
            logger.warning("sync_push_failed", error=e.message)
            self.notifications.push("Cloud sync failed", NotificationLevel.ERROR, "sync")
            return False
        finally:
            self._pushes_in_flight -= 1

        self.last_push_at = ack.last_updated
        logger.debug("sync_push_acknowledged", last_updated=ack.last_updated.isoformat())
        return True

    async def wait_for_pushes(self) -> None:
        """Wait until every scheduled push has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _drain_pushes(self) -> None:
        """Send queued snapshots one at a time, always the newest one."""
        while self._queued is not None:
            snapshot, self._queued = self._queued, None
            await self.push(snapshot)

    def _on_local_change(self, snapshot: WorkspaceSnapshot) -> None:
        if not self._accepting_pushes:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("sync_push_skipped_no_event_loop")
            return

        # A push already in flight picks this snapshot up when it finishes.
        self._queued = snapshot
        if self._pusher is not None and not self._pusher.done():
            return

        self._pusher = loop.create_task(self._drain_pushes())
        self._pending.add(self._pusher)
        self._pusher.add_done_callback(self._pending.discard)
