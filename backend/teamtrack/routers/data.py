"""
Remote document endpoints: the whole-workspace fetch and overwrite used by
the sync client.
"""

from fastapi import APIRouter, Depends
import structlog

from teamtrack.models.workspace import SyncAck, SyncRequest, WorkspaceDocument
from teamtrack.services.document_service import DocumentService, get_document_service

router = APIRouter()
logger = structlog.get_logger()


@router.get("/data", response_model=WorkspaceDocument)
async def get_data(service: DocumentService = Depends(get_document_service)):
    """Get the workspace document (created with defaults on first access)."""
    return await service.fetch()


@router.post("/sync", response_model=SyncAck)
async def sync(payload: SyncRequest, service: DocumentService = Depends(get_document_service)):
    """Overwrite the workspace document with a full client snapshot."""
    return await service.overwrite(payload)
