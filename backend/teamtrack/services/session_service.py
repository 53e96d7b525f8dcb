"""
Client session: passcode login and cached role.

The role is decided once at login and cached on disk (the desktop stand-in for
browser local storage). Later actions trust the cached role without asking
the server again, so role enforcement is client-side only. The server can
only tell that a push carried one of the two accepted passcodes.
"""

from pathlib import Path
from typing import Optional

import structlog

from teamtrack.infrastructure.auth import passcode_for_role, resolve_role
from teamtrack.infrastructure.config import Settings, get_client_state_path, get_settings
from teamtrack.infrastructure.exceptions import InvalidPasscode, StorageError
from teamtrack.infrastructure.storage import JsonStorage
from teamtrack.models.workspace import Role
from teamtrack.services.notification_service import NotificationFeed, NotificationLevel

logger = structlog.get_logger()

SESSION_FILE = "session.json"


class ClientSession:
    """Login state for one client."""

    def __init__(
        self,
        settings: Settings = None,
        state_dir: Optional[Path] = None,
        notifications: Optional[NotificationFeed] = None,
    ):
        self.settings = settings or get_settings()
        self._storage = JsonStorage(state_dir or get_client_state_path(self.settings))
        self.notifications = notifications or NotificationFeed()
        self.role: Optional[Role] = None
        self._passcode: str = ""

    @property
    def is_authenticated(self) -> bool:
        return self.role is not None

    @property
    def is_lead(self) -> bool:
        return self.role == Role.PRIVATE

    @property
    def push_passcode(self) -> str:
        """Passcode sent with pushes: the one typed at login, else the role's secret."""
        if self._passcode:
            return self._passcode
        if self.role is None:
            return ""
        return passcode_for_role(self.role, self.settings)

    async def login(self, passcode: str) -> Role:
        role = resolve_role(passcode, self.settings)
        if role is None:
            self.notifications.push("Invalid Passcode", NotificationLevel.ERROR, "session")
            raise InvalidPasscode()

        self.role = role
        self._passcode = passcode
        await self._storage.write(SESSION_FILE, {"role": role.value})

        granted = "Admin Access Granted" if role == Role.PRIVATE else "Team Access Granted"
        self.notifications.push(granted, NotificationLevel.SUCCESS, "session")
        logger.info("session_login", role=role.value)
        return role

    async def restore(self) -> Optional[Role]:
        """Load the cached role, if any. The passcode itself is never cached."""
        try:
            data = await self._storage.read(SESSION_FILE)
        except StorageError as e:
            logger.warning("session_cache_unreadable", error=e.message)
            data = None
        raw = (data or {}).get("role")
        try:
            self.role = Role(raw) if raw else None
        except ValueError:
            logger.warning("session_cache_invalid_role", role=raw)
            self.role = None
        if self.role:
            logger.info("session_restored", role=self.role.value)
        return self.role

    async def logout(self) -> None:
        self.role = None
        self._passcode = ""
        await self._storage.delete(SESSION_FILE)
        logger.info("session_logout")
