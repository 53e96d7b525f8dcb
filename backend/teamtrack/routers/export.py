"""
Workspace export downloads (JSON dump and flat CSV report).
"""

from fastapi import APIRouter, Depends
from fastapi.responses import Response
import structlog

from teamtrack.services.document_service import DocumentService, get_document_service
from teamtrack.services.export_service import export_csv, export_filename, export_json

router = APIRouter()
logger = structlog.get_logger()


def _attachment(filename: str) -> dict:
    return {"Content-Disposition": f'attachment; filename="{filename}"'}


@router.get("/json")
async def export_workspace_json(service: DocumentService = Depends(get_document_service)):
    """Download the full workspace as JSON."""
    document = await service.fetch()
    filename = export_filename("json")
    logger.info("workspace_exported", format="json", tasks=len(document.tasks))
    return Response(
        content=export_json(document),
        media_type="application/json",
        headers=_attachment(filename),
    )


@router.get("/csv")
async def export_workspace_csv(service: DocumentService = Depends(get_document_service)):
    """Download a one-row-per-task CSV report."""
    document = await service.fetch()
    filename = export_filename("csv")
    logger.info("workspace_exported", format="csv", tasks=len(document.tasks))
    return Response(
        content=export_csv(document.tasks),
        media_type="text/csv",
        headers=_attachment(filename),
    )
