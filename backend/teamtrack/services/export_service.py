"""
Workspace export and import.

JSON is a full dump of the snapshot and round-trips exactly. CSV is a flat
one-row-per-task report for spreadsheets and is export-only.
"""

import csv
import io
import json
from datetime import datetime
from typing import Iterable, List, Optional

import structlog
from pydantic import ValidationError

from teamtrack.infrastructure.exceptions import ImportRejected, jsonable_errors
from teamtrack.models.task import Task
from teamtrack.models.workspace import WorkspaceSnapshot
from teamtrack.services.status_service import compute_schedule_flag, utcnow
from teamtrack.services.validation_service import validate_history

logger = structlog.get_logger()

CSV_COLUMNS = [
    "id",
    "title",
    "project",
    "sprint",
    "category",
    "assignee",
    "startDate",
    "targetDate",
    "currentStatus",
    "scheduleFlag",
    "progress",
    "healthStatus",
    "lastUpdate",
    "blockers",
    "leadComments",
]


def export_json(snapshot: WorkspaceSnapshot) -> str:
    """Serialize a snapshot to the same camelCase JSON the sync endpoint uses."""
    return json.dumps(snapshot.to_wire(), indent=2, ensure_ascii=False)


def import_json(text: str) -> WorkspaceSnapshot:
    """
    Parse an exported workspace.

    All-or-nothing: any shape error raises ImportRejected and nothing is
    returned for partial application.
    """
    try:
        raw = json.loads(text)
    except (TypeError, json.JSONDecodeError) as e:
        raise ImportRejected(f"Import is not valid JSON: {e}")

    if not isinstance(raw, dict):
        raise ImportRejected("Import must be a JSON object")
    missing = [key for key in ("tasks", "teamMembers") if key not in raw]
    if missing:
        raise ImportRejected(
            f"Import is missing expected fields: {', '.join(missing)}",
            {"missing": missing},
        )

    try:
        snapshot = WorkspaceSnapshot.model_validate(raw)
    except ValidationError as e:
        raise ImportRejected("Import has malformed tasks or roster", {"errors": jsonable_errors(e.errors())})

    violations = {t.id: [r.value for _, r in validate_history(t)] for t in snapshot.tasks}
    violations = {task_id: reasons for task_id, reasons in violations.items() if reasons}
    if violations:
        raise ImportRejected("Import contains invalid update histories", {"violations": violations})

    if len(set(snapshot.team_members)) != len(snapshot.team_members):
        raise ImportRejected("Import roster contains duplicate members")

    logger.info("workspace_import_parsed", tasks=len(snapshot.tasks), members=len(snapshot.team_members))
    return snapshot


def export_csv(tasks: Iterable[Task], now: Optional[datetime] = None) -> str:
    """Flat tabular report, one row per task."""
    now = now or utcnow()
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=CSV_COLUMNS)
    writer.writeheader()
    for task in tasks:
        writer.writerow(_csv_row(task, now))
    return buffer.getvalue()


def _csv_row(task: Task, now: datetime) -> dict:
    latest = task.latest_update
    return {
        "id": task.id,
        "title": task.title,
        "project": task.project,
        "sprint": task.sprint or "",
        "category": task.category.value,
        "assignee": task.assignee,
        "startDate": task.start_date.isoformat(),
        "targetDate": task.target_date.isoformat(),
        "currentStatus": task.current_status.value,
        "scheduleFlag": compute_schedule_flag(task, now).value,
        "progress": task.last_progress,
        "healthStatus": task.health_status.value if task.health_status else "",
        "lastUpdate": latest.date.isoformat() if latest else "",
        "blockers": (latest.blockers or "") if latest else "",
        "leadComments": " | ".join(task.lead_comments),
    }


def export_filename(extension: str, today=None) -> str:
    today = today or utcnow().date()
    return f"workspace-export-{today.isoformat()}.{extension}"


def csv_rows(text: str) -> List[dict]:
    """Parse an exported CSV report back into dict rows (for reports and tests)."""
    return list(csv.DictReader(io.StringIO(text)))
