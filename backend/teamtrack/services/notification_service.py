"""
Transient user-facing notifications (toasts).

Rejected store mutations, login failures and sync failures end up here so a
UI can show each one for a few seconds. Nothing is persisted.
"""

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

import structlog

logger = structlog.get_logger()

DEFAULT_TTL_SECONDS = 4.0
MAX_NOTIFICATIONS = 50


class NotificationLevel(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@dataclass
class Notification:
    message: str
    level: NotificationLevel = NotificationLevel.INFO
    source: Optional[str] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:9])
    created_at: float = field(default_factory=time.monotonic)


class NotificationFeed:
    """Bounded in-memory feed of transient notifications with expiry."""

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_items: int = MAX_NOTIFICATIONS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self.max_items = max_items
        self._clock = clock
        self._items: List[Notification] = []
        self._subscribers: List[Callable[[Notification], None]] = []

    def subscribe(self, callback: Callable[[Notification], None]) -> None:
        self._subscribers.append(callback)

    def push(
        self,
        message: str,
        level: NotificationLevel = NotificationLevel.INFO,
        source: Optional[str] = None,
    ) -> Notification:
        notification = Notification(
            message=message,
            level=level,
            source=source,
            created_at=self._clock(),
        )
        self._items.append(notification)
        if len(self._items) > self.max_items:
            self._items = self._items[-self.max_items:]

        logger.info("notification", level=level.value, message=message, source=source)
        for callback in list(self._subscribers):
            try:
                callback(notification)
            except Exception as e:
                logger.warning("notification_subscriber_failed", error=str(e))
        return notification

    def notify_error(self, exc: Exception, source: Optional[str] = None) -> Notification:
        message = getattr(exc, "message", None) or str(exc)
        return self.push(message, NotificationLevel.ERROR, source)

    def active(self) -> List[Notification]:
        """Notifications that have not expired yet, oldest first."""
        cutoff = self._clock() - self.ttl_seconds
        self._items = [n for n in self._items if n.created_at > cutoff]
        return list(self._items)

    def drain(self) -> List[Notification]:
        items, self._items = self._items, []
        return items
