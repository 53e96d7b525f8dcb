"""
Workspace document models: the single JSON document shared by all clients.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field

from teamtrack.models.task import Task

DOCUMENT_ID = "main_storage"


class Role(str, Enum):
    """Client role derived from the passcode used at login."""
    PRIVATE = "private"  # lead
    PUBLIC = "public"  # member


class WorkspaceSnapshot(BaseModel):
    """The tasks and roster a client holds and pushes."""
    model_config = ConfigDict(populate_by_name=True)

    tasks: List[Task] = Field(default_factory=list)
    team_members: List[str] = Field(default_factory=list, alias="teamMembers")

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class WorkspaceDocument(WorkspaceSnapshot):
    """The persisted document, as returned by the fetch endpoint."""

    id: str = DOCUMENT_ID
    last_updated: Optional[datetime] = Field(None, alias="lastUpdated")


class SyncRequest(WorkspaceSnapshot):
    """Body of the overwrite endpoint."""

    passcode: str = ""


class SyncAck(BaseModel):
    """Acknowledgement returned after an overwrite."""
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str = "State synchronized"
    last_updated: datetime = Field(..., alias="lastUpdated")
