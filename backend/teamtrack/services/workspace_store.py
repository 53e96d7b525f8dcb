"""
In-memory workspace store.

Holds one client's view of {tasks, teamMembers} and is the only component
allowed to mutate tasks. Every successful mutation notifies the registered
change listeners with a fresh snapshot (the sync client listens to push it).
A rejected mutation raises and leaves the store exactly as it was.
"""

import functools
import time
import uuid
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple, Union

import structlog

from teamtrack.infrastructure.config import Settings, get_settings
from teamtrack.infrastructure.exceptions import (
    DuplicateMember,
    EmptyComment,
    IncompleteTaskDefinition,
    InsufficientRole,
    MemberNotFound,
    ProtectedMember,
    TeamTrackException,
    TaskNotFound,
    ValidationRejected,
)
from teamtrack.models.task import EODSubmission, EODUpdate, HealthStatus, Task, TaskDraft
from teamtrack.models.workspace import WorkspaceSnapshot
from teamtrack.services.notification_service import NotificationFeed
from teamtrack.services.status_service import utcnow
from teamtrack.services.validation_service import UpdatePolicy, ensure_valid

logger = structlog.get_logger()

ChangeListener = Callable[[WorkspaceSnapshot], None]


def _now_ms() -> int:
    return int(time.time() * 1000)


def _reports_rejections(method):
    """Push a rejected mutation's message to the notification feed, then re-raise."""
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except TeamTrackException as e:
            if self.notifications is not None:
                self.notifications.notify_error(e, "store")
            raise
    return wrapper


class WorkspaceStore:
    """Authoritative in-memory tasks + roster for one session."""

    def __init__(
        self,
        tasks: Optional[List[Task]] = None,
        team_members: Optional[List[str]] = None,
        policy: Optional[UpdatePolicy] = None,
        settings: Settings = None,
        clock: Callable[[], datetime] = utcnow,
        notifications: Optional[NotificationFeed] = None,
    ):
        settings = settings or get_settings()
        self._tasks: List[Task] = list(tasks or [])
        self._members: List[str] = list(team_members or [])
        self.policy = policy or UpdatePolicy.from_settings(settings)
        self.primary_member: Optional[str] = (
            settings.primary_member if settings.protect_primary_member else None
        )
        self.roster_updated_at: Optional[int] = None
        self._clock = clock
        self._listeners: List[ChangeListener] = []
        self.notifications = notifications

    # ============================================
    # CHANGE NOTIFICATION
    # ============================================

    def add_listener(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: ChangeListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _changed(self, event: str, **fields) -> None:
        logger.info(event, **fields)
        if not self._listeners:
            return
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                # Mutation is already applied.
                logger.warning("store_listener_failed", mutation=event, error=str(e))

    # ============================================
    # QUERIES
    # ============================================

    @property
    def tasks(self) -> List[Task]:
        return list(self._tasks)

    @property
    def team_members(self) -> List[str]:
        return list(self._members)

    def get_task(self, task_id: str) -> Optional[Task]:
        return next((t for t in self._tasks if t.id == task_id), None)

    def tasks_for(self, assignee: str) -> List[Task]:
        return [t for t in self._tasks if t.assignee == assignee]

    def active_tasks(self) -> List[Task]:
        return [t for t in self._tasks if not t.is_completed]

    def completed_tasks(self) -> List[Task]:
        return [t for t in self._tasks if t.is_completed]

    def snapshot(self) -> WorkspaceSnapshot:
        """Deep copy of the current state, safe to serialize off-thread or later."""
        return WorkspaceSnapshot(
            tasks=[t.model_copy(deep=True) for t in self._tasks],
            team_members=list(self._members),
        )

    # ============================================
    # WHOLESALE REPLACE (remote is authoritative on read)
    # ============================================

    def replace(self, tasks: List[Task], team_members: List[str]) -> None:
        """Replace local state with fetched remote state. Does not notify listeners."""
        self._tasks = [t.model_copy(deep=True) for t in tasks]
        self._members = list(team_members)
        logger.debug("store_replaced", tasks=len(self._tasks), members=len(self._members))

    @_reports_rejections
    def import_snapshot(self, snapshot: WorkspaceSnapshot, *, is_lead: bool) -> None:
        """Load an imported workspace as a local mutation (it will be pushed)."""
        self._require_lead(is_lead, "import a workspace")
        self._tasks = [t.model_copy(deep=True) for t in snapshot.tasks]
        self._members = list(snapshot.team_members)
        self.roster_updated_at = _now_ms()
        self._changed("workspace_imported", tasks=len(self._tasks), members=len(self._members))

    # ============================================
    # TASK MUTATIONS
    # ============================================

    @_reports_rejections
    def add_task(self, draft: Union[TaskDraft, Dict], *, is_lead: bool) -> Task:
        """Assign a new task. Requires title, target date and assignee."""
        self._require_lead(is_lead, "assign tasks")
        if not isinstance(draft, TaskDraft):
            draft = TaskDraft.model_validate(draft)

        missing = [
            name for name, value in (
                ("title", draft.title.strip()),
                ("targetDate", draft.target_date),
                ("assignee", draft.assignee.strip()),
            )
            if not value
        ]
        if missing:
            raise IncompleteTaskDefinition(missing)

        task = Task(
            id=self._new_id(),
            title=draft.title.strip(),
            project=draft.project.strip(),
            sprint=(draft.sprint or "").strip() or None,
            category=draft.category,
            assignee=draft.assignee.strip(),
            start_date=draft.start_date or self._clock().date(),
            target_date=draft.target_date,
            updated_at=_now_ms(),
        )
        self._tasks.append(task)
        self._changed("task_added", task_id=task.id, assignee=task.assignee)
        return task

    @_reports_rejections
    def delete_task(self, task_id: str, *, is_lead: bool) -> Task:
        """Remove a task entirely. Irreversible; confirmation is the caller's job."""
        self._require_lead(is_lead, "delete tasks")
        index, task = self._find(task_id)
        del self._tasks[index]
        self._changed("task_deleted", task_id=task_id)
        return task

    @_reports_rejections
    def append_update(self, task_id: str, submission: Union[EODSubmission, Dict]) -> EODUpdate:
        """Validate and append an EOD update, stamped with the current time."""
        if not isinstance(submission, EODSubmission):
            submission = EODSubmission.model_validate(submission)

        index, task = self._find(task_id)
        ensure_valid(task, submission, self.policy)

        update = EODUpdate(**submission.model_dump(), date=self._clock(), updated_at=_now_ms())
        self._tasks[index] = task.model_copy(update={
            "updates": [*task.updates, update],
            "updated_at": _now_ms(),
        })
        self._changed(
            "update_appended",
            task_id=task_id,
            progress=update.progress,
            status=update.status.value,
        )
        return update

    @_reports_rejections
    def append_comment(self, task_id: str, text: str, *, is_lead: bool) -> Task:
        self._require_lead(is_lead, "post comments")
        text = (text or "").strip()
        if not text:
            raise EmptyComment()

        index, task = self._find(task_id)
        self._tasks[index] = task.model_copy(update={
            "lead_comments": [*task.lead_comments, text],
            "updated_at": _now_ms(),
        })
        self._changed("comment_appended", task_id=task_id)
        return self._tasks[index]

    @_reports_rejections
    def set_health(
        self,
        task_id: str,
        health: Union[HealthStatus, str, None],
        *,
        is_lead: bool,
    ) -> Task:
        self._require_lead(is_lead, "set task health")
        if health is not None and not isinstance(health, HealthStatus):
            try:
                health = HealthStatus(health)
            except ValueError:
                raise ValidationRejected(
                    f"Unknown health status '{health}'",
                    {"health": str(health)},
                )

        index, task = self._find(task_id)
        self._tasks[index] = task.model_copy(update={
            "health_status": health,
            "updated_at": _now_ms(),
        })
        self._changed("health_set", task_id=task_id, health=health.value if health else None)
        return self._tasks[index]

    # ============================================
    # ROSTER MUTATIONS
    # ============================================

    @_reports_rejections
    def add_member(self, name: str, *, is_lead: bool) -> str:
        self._require_lead(is_lead, "manage the roster")
        name = (name or "").strip()
        if not name:
            raise ValidationRejected("Member name is empty")
        if name in self._members:
            raise DuplicateMember(name)

        self._members.append(name)
        self.roster_updated_at = _now_ms()
        self._changed("member_added", member=name)
        return name

    @_reports_rejections
    def remove_member(self, name: str, *, is_lead: bool) -> List[Task]:
        """
        Remove a member from the roster.

        Returns the member's in-flight (not completed) tasks so the caller can
        warn about them; the tasks themselves are left untouched.
        """
        self._require_lead(is_lead, "manage the roster")
        if name not in self._members:
            raise MemberNotFound(name)
        if self.primary_member and name == self.primary_member:
            raise ProtectedMember(name)

        in_flight = [t for t in self._tasks if t.assignee == name and not t.is_completed]
        self._members.remove(name)
        self.roster_updated_at = _now_ms()
        self._changed("member_removed", member=name, in_flight_tasks=len(in_flight))
        return in_flight

    # ============================================
    # HELPERS
    # ============================================

    @staticmethod
    def _require_lead(is_lead: bool, action: str) -> None:
        if not is_lead:
            raise InsufficientRole(action)

    def _find(self, task_id: str) -> Tuple[int, Task]:
        for index, task in enumerate(self._tasks):
            if task.id == task_id:
                return index, task
        raise TaskNotFound(task_id)

    def _new_id(self) -> str:
        existing = {t.id for t in self._tasks}
        while True:
            candidate = uuid.uuid4().hex[:9]
            if candidate not in existing:
                return candidate
