"""
Task status derivation.

Computes the dashboard schedule flag and the archive time status from a task's
dates and update history. Both are pure functions of (task, now): they are
recomputed on every read and never stored, because `now` moves on without any
mutation happening.
"""

from datetime import date, datetime, timezone
from typing import Iterable, List, Optional, Tuple

from teamtrack.models.status import FlagSummary, ScheduleFlag, TaskView, TimeStatus, TimeStatusKind
from teamtrack.models.task import Task, as_utc

# Points behind plan (strict <) before a task is flagged.
DELAYED_THRESHOLD = 20
AT_RISK_THRESHOLD = 5


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _day_start(d: date) -> datetime:
    return datetime(d.year, d.month, d.day, tzinfo=timezone.utc)


def planned_progress(task: Task, now: Optional[datetime] = None) -> float:
    """Percentage of the start->target window elapsed at `now`, clamped to 0..100."""
    now = as_utc(now or utcnow())
    start = _day_start(task.start_date)
    target = _day_start(task.target_date)

    if target <= start:
        return 100.0 if now >= start else 0.0

    fraction = (now - start) / (target - start)
    return max(0.0, min(1.0, fraction)) * 100


def compute_schedule_flag(task: Task, now: Optional[datetime] = None) -> ScheduleFlag:
    """
    Derive the dashboard flag for a task.

    Order of precedence:
      1. Completed (latest update says so, regardless of dates)
      2. Delayed (Blocked) when the latest update reports blockers
      3. Delayed when more than 20 points behind plan
      4. At Risk when more than 5 points behind plan
      5. On Track
    """
    if task.is_completed:
        return ScheduleFlag.COMPLETED

    latest = task.latest_update
    if latest is not None and latest.has_blockers:
        return ScheduleFlag.DELAYED_BLOCKED

    planned = planned_progress(task, now)
    actual = task.last_progress

    if actual < planned - DELAYED_THRESHOLD:
        return ScheduleFlag.DELAYED
    if actual < planned - AT_RISK_THRESHOLD:
        return ScheduleFlag.AT_RISK
    return ScheduleFlag.ON_TRACK


def compute_time_status(task: Task, today: Optional[date] = None) -> TimeStatus:
    """
    Classify delivery timing in whole days.

    Delivered tasks compare the day of the first Completed update with the
    target date; undelivered tasks count days until (or past) the target.
    """
    if task.is_completed:
        delivered = task.first_completion or task.latest_update
        delivered_day = as_utc(delivered.date).date()
        days_late = (delivered_day - task.target_date).days
        if days_late <= 0:
            return TimeStatus(kind=TimeStatusKind.DELIVERED_ON_TIME)
        return TimeStatus(kind=TimeStatusKind.DELIVERED_LATE, days=days_late)

    today = today or utcnow().date()
    remaining = (task.target_date - today).days
    if remaining == 0:
        return TimeStatus(kind=TimeStatusKind.DUE_TODAY)
    if remaining < 0:
        return TimeStatus(kind=TimeStatusKind.OVERDUE, days=-remaining)
    return TimeStatus(kind=TimeStatusKind.ON_SCHEDULE, days=remaining)


def build_view(task: Task, now: Optional[datetime] = None) -> TaskView:
    now = as_utc(now or utcnow())
    return TaskView(
        task=task,
        current_status=task.current_status,
        schedule_flag=compute_schedule_flag(task, now),
        planned_progress=round(planned_progress(task, now), 1),
        time_status=compute_time_status(task, now.date()),
    )


def partition_tasks(tasks: Iterable[Task]) -> Tuple[List[Task], List[Task]]:
    """Split tasks into (active, completed), preserving order."""
    active: List[Task] = []
    completed: List[Task] = []
    for task in tasks:
        (completed if task.is_completed else active).append(task)
    return active, completed


def summarize(tasks: Iterable[Task], now: Optional[datetime] = None) -> FlagSummary:
    now = as_utc(now or utcnow())
    summary = FlagSummary(by_flag={flag: 0 for flag in ScheduleFlag})
    for task in tasks:
        flag = compute_schedule_flag(task, now)
        summary.by_flag[flag] += 1
        summary.total += 1
        if flag == ScheduleFlag.COMPLETED:
            summary.completed += 1
        else:
            summary.active += 1
    return summary
