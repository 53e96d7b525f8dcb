"""
EOD update validation.

Single source of truth for "is this update legal". The workspace store runs it
before appending a member's report, and the document service replays the hard
invariants over every pushed snapshot.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

from teamtrack.infrastructure.config import Settings, get_settings
from teamtrack.infrastructure.exceptions import UpdateRejected
from teamtrack.models.task import EODSubmission, Task, TaskStatus

BLOCKER_DISCLOSURE_PROGRESS = 50


class RejectionReason(str, Enum):
    PROGRESS_REGRESSION = "ProgressRegression"
    INCOMPLETE_COMPLETION = "IncompleteCompletion"
    MISSING_BLOCKER_DISCLOSURE = "MissingBlockerDisclosure"


REJECTION_MESSAGES = {
    RejectionReason.PROGRESS_REGRESSION: "Progress cannot decrease!",
    RejectionReason.INCOMPLETE_COMPLETION: "Status cannot be 'Completed' if progress is less than 100%",
    RejectionReason.MISSING_BLOCKER_DISCLOSURE: (
        "Please mention any blockers or dependencies for tasks under 50% progress."
    ),
}


@dataclass(frozen=True)
class UpdatePolicy:
    """Configurable business rules layered on top of the hard invariants."""
    require_blocker_disclosure: bool = False

    @classmethod
    def from_settings(cls, settings: Settings = None) -> "UpdatePolicy":
        settings = settings or get_settings()
        return cls(require_blocker_disclosure=settings.require_blocker_disclosure)


def validate(
    task: Task,
    candidate: EODSubmission,
    policy: Optional[UpdatePolicy] = None,
) -> Optional[RejectionReason]:
    """Return the reason the candidate must be rejected, or None to accept it."""
    policy = policy or UpdatePolicy()

    if candidate.progress < task.last_progress:
        return RejectionReason.PROGRESS_REGRESSION

    if candidate.status == TaskStatus.COMPLETED and candidate.progress != 100:
        return RejectionReason.INCOMPLETE_COMPLETION

    if (
        policy.require_blocker_disclosure
        and candidate.progress < BLOCKER_DISCLOSURE_PROGRESS
        and not candidate.has_blockers
    ):
        return RejectionReason.MISSING_BLOCKER_DISCLOSURE

    return None


def ensure_valid(
    task: Task,
    candidate: EODSubmission,
    policy: Optional[UpdatePolicy] = None,
) -> None:
    """Raise UpdateRejected if the candidate is not acceptable."""
    reason = validate(task, candidate, policy)
    if reason is not None:
        raise UpdateRejected(reason, REJECTION_MESSAGES[reason], task_id=task.id)


def validate_history(task: Task) -> List[Tuple[int, RejectionReason]]:
    """
    Replay the hard invariants over a task's existing update list.

    Returns (index, reason) for every offending update. The configurable
    blocker-disclosure policy is not replayed; it only governs
    new submissions.
    """
    problems: List[Tuple[int, RejectionReason]] = []
    previous = 0
    for index, update in enumerate(task.updates):
        if update.progress < previous:
            problems.append((index, RejectionReason.PROGRESS_REGRESSION))
        if update.status == TaskStatus.COMPLETED and update.progress != 100:
            problems.append((index, RejectionReason.INCOMPLETE_COMPLETION))
        previous = max(previous, update.progress)
    return problems
