# Services
from teamtrack.services.document_service import DocumentService, get_document_service
from teamtrack.services.notification_service import NotificationFeed, NotificationLevel
from teamtrack.services.session_service import ClientSession
from teamtrack.services.sync_client import SyncClient, SyncState
from teamtrack.services.workspace_store import WorkspaceStore

__all__ = [
    "DocumentService", "get_document_service",
    "NotificationFeed", "NotificationLevel",
    "ClientSession",
    "SyncClient", "SyncState",
    "WorkspaceStore",
]
