"""
Derived status models. Nothing here is persisted; values are recomputed on read.
"""

from enum import Enum
from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field

from teamtrack.models.task import LifecycleStatus, Task


class ScheduleFlag(str, Enum):
    """Dashboard schedule flag, derived from dates and the latest update."""
    COMPLETED = "Completed"
    DELAYED_BLOCKED = "Delayed (Blocked)"
    DELAYED = "Delayed"
    AT_RISK = "At Risk"
    ON_TRACK = "On Track"


class TimeStatusKind(str, Enum):
    DELIVERED_ON_TIME = "delivered_on_time"
    DELIVERED_LATE = "delivered_late"
    ON_SCHEDULE = "on_schedule"
    DUE_TODAY = "due_today"
    OVERDUE = "overdue"


class TimeStatus(BaseModel):
    """Delivery timing relative to the target date, in whole days."""
    model_config = ConfigDict(populate_by_name=True)

    kind: TimeStatusKind
    days: int = 0

    @property
    def delivered(self) -> bool:
        return self.kind in (TimeStatusKind.DELIVERED_ON_TIME, TimeStatusKind.DELIVERED_LATE)

    @property
    def label(self) -> str:
        if self.kind == TimeStatusKind.DELIVERED_ON_TIME:
            return "Delivered on time"
        if self.kind == TimeStatusKind.DELIVERED_LATE:
            return f"Delivered {self.days}d late"
        if self.kind == TimeStatusKind.DUE_TODAY:
            return "Due today"
        if self.kind == TimeStatusKind.OVERDUE:
            return f"{self.days}d overdue"
        return f"{self.days}d remaining"


class TaskView(BaseModel):
    """A task plus its derived, read-time status fields."""
    model_config = ConfigDict(populate_by_name=True)

    task: Task
    current_status: LifecycleStatus = Field(..., alias="currentStatus")
    schedule_flag: ScheduleFlag = Field(..., alias="scheduleFlag")
    planned_progress: float = Field(..., alias="plannedProgress")
    time_status: Optional[TimeStatus] = Field(None, alias="timeStatus")


class FlagSummary(BaseModel):
    """Counts per schedule flag across a task list."""
    total: int = 0
    active: int = 0
    completed: int = 0
    by_flag: Dict[ScheduleFlag, int] = Field(default_factory=dict)


class Dashboard(BaseModel):
    """Active tasks with their flags, plus counts across the whole workspace."""
    tasks: List[TaskView] = Field(default_factory=list)
    summary: FlagSummary = Field(default_factory=FlagSummary)
