"""
Per-step account status derived from the authenticated user's connected apps.

The user profile lists connected apps as ``{"appName": ..., "expiresAt": ...}``.
A step whose app is not in that list has no account at all; a listed app is
connected and counts as expired unless it carries a future ``expiresAt``.
Slack bot tokens never expire and are stored with ``expiresAt = null``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Mapping, Optional

from shared.logger import get_logger
from workflow_builder.schema.models import StepKind, Workflow

logger = get_logger(__name__)

NON_EXPIRING_APPS = frozenset({"slack"})

# Epoch values above this are milliseconds rather than seconds.
_MILLISECOND_THRESHOLD = 10**11
_EPOCH_DIGITS = re.compile(r"[0-9]+")


@dataclass(frozen=True)
class ConnectionStatus:
    connected: bool
    expired: bool
    has_user: bool

    @property
    def usable(self) -> bool:
        return self.connected and self.has_user and not self.expired


DISCONNECTED = ConnectionStatus(connected=False, expired=False, has_user=False)


def parse_expiry(value: Any) -> Optional[datetime]:
    """
    Accept ISO-8601 strings or epoch seconds/milliseconds. Returns None for
    values that cannot be read.
    """

    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, str) and _EPOCH_DIGITS.fullmatch(value.strip()):
        value = int(value.strip())
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        seconds = value / 1000 if value > _MILLISECOND_THRESHOLD else value
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return None


def user_apps_from_profile(profile: Optional[Mapping[str, Any]]) -> list:
    if not profile:
        return []
    return list(profile.get("userApp") or [])


def resolve_connection(
    app_name: Optional[str],
    user_apps: Iterable[Mapping[str, Any]],
    *,
    now: Optional[datetime] = None,
) -> ConnectionStatus:
    if not app_name:
        return DISCONNECTED
    name = app_name.lower()
    record = next((app for app in user_apps if str(app.get("appName", "")).lower() == name), None)
    if record is None:
        return DISCONNECTED

    expires_at = record.get("expiresAt")
    if expires_at is None:
        expired = name not in NON_EXPIRING_APPS
    else:
        expiry = parse_expiry(expires_at)
        if expiry is None:
            logger.warning(f"Unreadable expiresAt {expires_at!r} for {name}; treating the token as expired")
            expired = True
        else:
            expired = expiry <= (now or datetime.now(timezone.utc))
    return ConnectionStatus(connected=True, expired=expired, has_user=True)


def step_connections(
    workflow: Workflow,
    user_apps: Iterable[Mapping[str, Any]],
    *,
    now: Optional[datetime] = None,
) -> Dict[int, ConnectionStatus]:
    apps = list(user_apps)
    return {
        step.id: resolve_connection(step.app_name, apps, now=now)
        for step in workflow.steps
        if step.type != StepKind.condition and step.app_name
    }
