"""
Document service - owns the single persisted workspace document.

The remote store is one JSON document (id "main_storage") holding the whole
workspace. Fetch returns it, creating the default document on first access.
Overwrite replaces it wholesale after a passcode check; there is no merge,
version check or conflict detection, so the last write wins.
"""

import asyncio
from datetime import datetime, timezone
from typing import Optional

import structlog
from fastapi import Request
from pydantic import ValidationError

from teamtrack.infrastructure.auth import require_passcode
from teamtrack.infrastructure.config import Settings, get_settings, get_workspace_path
from teamtrack.infrastructure.exceptions import InvalidHistory, StorageError
from teamtrack.infrastructure.storage import JsonStorage
from teamtrack.models.workspace import DOCUMENT_ID, SyncAck, SyncRequest, WorkspaceDocument
from teamtrack.services.validation_service import validate_history

logger = structlog.get_logger()


class DocumentService:
    """Read and overwrite the persisted workspace document."""

    def __init__(self, settings: Settings = None, storage: Optional[JsonStorage] = None):
        self.settings = settings or get_settings()
        self.storage = storage or JsonStorage(get_workspace_path(settings=self.settings))
        self.filename = self.settings.document_file
        self._lock = asyncio.Lock()

    def default_document(self) -> WorkspaceDocument:
        return WorkspaceDocument(
            id=DOCUMENT_ID,
            tasks=[],
            team_members=list(self.settings.default_team_members),
            last_updated=datetime.now(timezone.utc),
        )

    async def fetch(self) -> WorkspaceDocument:
        """Return the document, persisting the default one if none exists yet."""
        async with self._lock:
            raw = await self.storage.read(self.filename)
            if raw is None:
                document = self.default_document()
                await self.storage.write(self.filename, document.to_wire())
                logger.info(
                    "workspace_document_created",
                    members=len(document.team_members),
                    path=str(self.storage.path_for(self.filename)),
                )
                return document

        try:
            return WorkspaceDocument.model_validate(raw)
        except ValidationError as e:
            logger.error("workspace_document_invalid", errors=len(e.errors()))
            raise StorageError(
                "Stored workspace document is malformed",
                str(self.storage.path_for(self.filename)),
            ) from e

    async def overwrite(self, request: SyncRequest) -> SyncAck:
        """
        Replace the stored document with the pushed snapshot.

        Any accepted passcode (lead or member) may write. The update rules are
        replayed over every task history so a snapshot containing an update
        the client validator would have refused is rejected as a whole.
        """
        role = require_passcode(request.passcode, self.settings)

        violations = {}
        for task in request.tasks:
            bad = validate_history(task)
            if bad:
                violations[task.id] = [
                    {"index": index, "reason": reason.value} for index, reason in bad
                ]
        if violations:
            logger.warning("sync_rejected_invalid_history", tasks=list(violations))
            raise InvalidHistory(violations)

        document = WorkspaceDocument(
            id=DOCUMENT_ID,
            tasks=request.tasks,
            team_members=request.team_members,
            last_updated=datetime.now(timezone.utc),
        )
        async with self._lock:
            await self.storage.write(self.filename, document.to_wire())

        logger.info(
            "workspace_document_overwritten",
            role=role.value,
            tasks=len(document.tasks),
            members=len(document.team_members),
        )
        return SyncAck(last_updated=document.last_updated)


def get_document_service(request: Request) -> DocumentService:
    """FastAPI dependency: the service created in the app lifespan."""
    return request.app.state.document_service
