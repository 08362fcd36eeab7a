"""Users repository - read-only notification profile lookup.

User identity is owned elsewhere; the engine only reads what it needs to
deliver notifications. The notification_preferences column has historically
held a JSON object, a JSON-encoded string, or NULL. It is parsed into
NotificationPreferences here and nowhere else.
"""

from __future__ import annotations

import json
from typing import Any

from psycopg2.extensions import cursor as PgCursor

from spacebook.domain.models import NotificationPreferences, NotificationProfile
from spacebook.observability.logging import get_logger

logger = get_logger(__name__)


def _flag(raw: dict[str, Any], key: str) -> bool:
    # Anything other than an explicit false keeps the channel on.
    return raw.get(key) is not False


def parse_notification_preferences(raw: Any) -> NotificationPreferences:
    """Parse the stored preferences value into NotificationPreferences.

    Accepts a dict, a JSON string encoding a dict, or None. Unknown keys are
    ignored; malformed strings fall back to defaults (all channels on).
    """
    if raw is None:
        return NotificationPreferences()

    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            logger.warning(
                "unparseable notification preferences, using defaults",
                extra={"extra_fields": {"raw_length": len(raw)}},
            )
            return NotificationPreferences()

    if not isinstance(raw, dict):
        return NotificationPreferences()

    return NotificationPreferences(
        email=_flag(raw, "emailNotifications"),
        in_app=_flag(raw, "webNotifications"),
    )


def get_notification_profile(cur: PgCursor, user_id: int) -> NotificationProfile | None:
    """Load a user's notification profile, or None if the user is unknown."""
    cur.execute(
        """
        SELECT id, email, email_verified, full_name, notification_preferences
        FROM users
        WHERE id = %s
        """,
        (user_id,),
    )
    row = cur.fetchone()
    if row is None:
        return None

    uid, email, email_verified, full_name, prefs = row
    return NotificationProfile(
        user_id=uid,
        email=email,
        email_verified=bool(email_verified),
        full_name=full_name,
        preferences=parse_notification_preferences(prefs),
    )
