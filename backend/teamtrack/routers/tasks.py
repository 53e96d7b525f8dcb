"""
Read-only task views with derived schedule status.

Flags and planned progress are computed per request from the stored
document; none of them is persisted.
"""

from fastapi import APIRouter, Depends, Query
from typing import List, Optional
import structlog

from teamtrack.infrastructure.exceptions import TaskNotFound
from teamtrack.models.status import Dashboard, TaskView
from teamtrack.services.document_service import DocumentService, get_document_service
from teamtrack.services.status_service import build_view, partition_tasks, summarize, utcnow

router = APIRouter()
logger = structlog.get_logger()


@router.get("", response_model=List[TaskView])
async def list_tasks(
    assignee: Optional[str] = Query(None, description="Filter by assignee"),
    service: DocumentService = Depends(get_document_service),
):
    """Get all tasks with derived status, optionally for one assignee."""
    document = await service.fetch()
    now = utcnow()
    tasks = document.tasks
    if assignee:
        tasks = [t for t in tasks if t.assignee == assignee]
    return [build_view(t, now) for t in tasks]


@router.get("/dashboard", response_model=Dashboard)
async def get_dashboard(service: DocumentService = Depends(get_document_service)):
    """Active tasks with schedule flags plus a flag summary."""
    document = await service.fetch()
    now = utcnow()
    active, _ = partition_tasks(document.tasks)
    return Dashboard(
        tasks=[build_view(t, now) for t in active],
        summary=summarize(document.tasks, now),
    )


@router.get("/archive", response_model=List[TaskView])
async def get_archive(service: DocumentService = Depends(get_document_service)):
    """Completed tasks with delivery timing."""
    document = await service.fetch()
    now = utcnow()
    _, completed = partition_tasks(document.tasks)
    return [build_view(t, now) for t in completed]


@router.get("/{task_id}", response_model=TaskView)
async def get_task(task_id: str, service: DocumentService = Depends(get_document_service)):
    """Get a single task by ID."""
    document = await service.fetch()
    task = next((t for t in document.tasks if t.id == task_id), None)
    if task is None:
        raise TaskNotFound(task_id)
    return build_view(task)
