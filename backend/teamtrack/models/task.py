"""
Task data models.

Wire format is the camelCase JSON the web clients exchange; Python code uses
the snake_case attribute names (populate_by_name accepts both).
"""

from datetime import date, datetime, timezone
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class TaskStatus(str, Enum):
    """Status reported on an EOD update."""
    IN_PROGRESS = "In Progress"
    IN_REVIEW = "In Review"
    COMPLETED = "Completed"


class LifecycleStatus(str, Enum):
    """Current status of a task: the last update's status, or Assigned."""
    ASSIGNED = "Assigned"
    IN_PROGRESS = "In Progress"
    IN_REVIEW = "In Review"
    COMPLETED = "Completed"


class TaskCategory(str, Enum):
    """Task category/type."""
    GENERAL = "General"
    DEMO = "Demo"
    ELEMENT = "Element"
    MIGRATION = "Migration"


class HealthStatus(str, Enum):
    """Health explicitly set by a lead (independent of the schedule flag)."""
    ON_TRACK = "On Track"
    AT_RISK = "At Risk"
    DELAYED = "Delayed"
    REVIEW_REQUIRED = "Review Required"


def _calendar_date(value):
    """Accept 'YYYY-MM-DD' as well as full ISO timestamps for date fields."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
        if "T" in value:
            return value.split("T", 1)[0]
    return value


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class EODSubmission(BaseModel):
    """An end-of-day report as entered by the assignee, before it is stamped."""
    model_config = ConfigDict(populate_by_name=True)

    progress: int = Field(..., ge=0, le=100)
    status: TaskStatus = TaskStatus.IN_PROGRESS
    work_completed: str = Field("", alias="workCompleted")
    pending_items: str = Field("", alias="pendingItems")
    blockers: Optional[str] = None
    expected_completion_date: Optional[date] = Field(None, alias="expectedCompletionDate")

    @field_validator("expected_completion_date", mode="before")
    @classmethod
    def _normalize_expected(cls, v):
        return _calendar_date(v)

    @property
    def has_blockers(self) -> bool:
        return bool(self.blockers and self.blockers.strip())


class EODUpdate(EODSubmission):
    """An accepted EOD report. Immutable once appended to a task."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    date: datetime
    updated_at: Optional[int] = Field(None, alias="updatedAt")

    @field_validator("date")
    @classmethod
    def _utc_date(cls, v: datetime) -> datetime:
        return as_utc(v)


class TaskDraft(BaseModel):
    """Schema for assigning a new task. Required-field checks happen in the store."""
    model_config = ConfigDict(populate_by_name=True)

    title: str = ""
    project: str = ""
    sprint: Optional[str] = None
    category: TaskCategory = TaskCategory.GENERAL
    assignee: str = ""
    start_date: Optional[date] = Field(None, alias="startDate")
    target_date: Optional[date] = Field(None, alias="targetDate")

    @field_validator("start_date", "target_date", mode="before")
    @classmethod
    def _normalize_dates(cls, v):
        return _calendar_date(v)


class Task(BaseModel):
    """Full task model: the aggregate root of the workspace."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: str
    project: str = ""
    sprint: Optional[str] = None
    category: TaskCategory = TaskCategory.GENERAL
    assignee: str
    start_date: date = Field(..., alias="startDate")
    target_date: date = Field(..., alias="targetDate")
    updates: List[EODUpdate] = Field(default_factory=list)
    lead_comments: List[str] = Field(default_factory=list, alias="leadComments")
    health_status: Optional[HealthStatus] = Field(None, alias="healthStatus")
    updated_at: Optional[int] = Field(None, alias="updatedAt")

    @field_validator("start_date", "target_date", mode="before")
    @classmethod
    def _normalize_dates(cls, v):
        return _calendar_date(v)

    @field_validator("lead_comments", mode="before")
    @classmethod
    def _none_comments(cls, v):
        return [] if v is None else v

    @property
    def latest_update(self) -> Optional[EODUpdate]:
        return self.updates[-1] if self.updates else None

    @property
    def current_status(self) -> LifecycleStatus:
        latest = self.latest_update
        if latest is None:
            return LifecycleStatus.ASSIGNED
        return LifecycleStatus(latest.status.value)

    @property
    def last_progress(self) -> int:
        latest = self.latest_update
        return latest.progress if latest else 0

    @property
    def is_completed(self) -> bool:
        return self.current_status == LifecycleStatus.COMPLETED

    @property
    def first_completion(self) -> Optional[EODUpdate]:
        """The update that first set the status to Completed."""
        return next((u for u in self.updates if u.status == TaskStatus.COMPLETED), None)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
