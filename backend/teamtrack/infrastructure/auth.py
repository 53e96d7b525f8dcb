"""
Passcode authorization for the TeamTrack sync endpoint.

Two literal shared secrets are accepted: the lead passcode maps to the
`private` role and the member passcode to the `public` role. This is a
coarse admission check, NOT a security boundary:

- the secrets are static, shared by everybody holding a role, and
  trivially replayable;
- the server only checks that a passcode matches *some* accepted value.
  It does not check that a member passcode was used for member-only
  changes, so role enforcement is client-side trust.
"""

import secrets
from typing import Optional

import structlog

from teamtrack.infrastructure.config import Settings, get_settings
from teamtrack.infrastructure.exceptions import InvalidPasscode
from teamtrack.models.workspace import Role

logger = structlog.get_logger(__name__)


def resolve_role(passcode: Optional[str], settings: Settings = None) -> Optional[Role]:
    """Map a passcode to its role, or None when it matches neither secret."""
    if not passcode:
        return None
    settings = settings or get_settings()

    if settings.lead_passcode and secrets.compare_digest(passcode, settings.lead_passcode):
        return Role.PRIVATE
    if settings.member_passcode and secrets.compare_digest(passcode, settings.member_passcode):
        return Role.PUBLIC
    return None


def require_passcode(passcode: Optional[str], settings: Settings = None) -> Role:
    """Raise InvalidPasscode unless the passcode is one of the accepted secrets."""
    role = resolve_role(passcode, settings)
    if role is None:
        logger.warning("passcode_rejected")
        raise InvalidPasscode("Access Denied: Invalid Passcode")
    return role


def passcode_for_role(role: Role, settings: Settings = None) -> str:
    """The configured secret a client of the given role pushes with."""
    settings = settings or get_settings()
    return settings.lead_passcode if role == Role.PRIVATE else settings.member_passcode
