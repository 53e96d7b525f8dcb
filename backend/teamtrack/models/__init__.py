# Data models
from teamtrack.models.task import (
    Task, TaskDraft, TaskStatus, LifecycleStatus, TaskCategory, HealthStatus,
    EODSubmission, EODUpdate
)
from teamtrack.models.workspace import (
    DOCUMENT_ID, Role, WorkspaceSnapshot, WorkspaceDocument, SyncRequest, SyncAck
)
from teamtrack.models.status import (
    ScheduleFlag, TimeStatus, TimeStatusKind, TaskView, FlagSummary, Dashboard
)

__all__ = [
    "Task", "TaskDraft", "TaskStatus", "LifecycleStatus", "TaskCategory", "HealthStatus",
    "EODSubmission", "EODUpdate",
    "DOCUMENT_ID", "Role", "WorkspaceSnapshot", "WorkspaceDocument", "SyncRequest", "SyncAck",
    "ScheduleFlag", "TimeStatus", "TimeStatusKind", "TaskView", "FlagSummary", "Dashboard",
]
