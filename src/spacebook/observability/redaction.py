"""Redaction helpers for log context. User-supplied values go through here."""

import re
from typing import Any

_EMAIL = re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}")
_PHONE = re.compile(r"\+?\d[\d\s\-()]{8,}\d")

REDACTED = "[REDACTED]"


def redact_string(value: str) -> str:
    """Mask email addresses and phone numbers inside a string."""
    return _PHONE.sub(REDACTED, _EMAIL.sub(REDACTED, value))


def redact_value(value: Any) -> Any:
    """Return a log-safe rendering of value.

    Scalars pass through (strings are masked); containers are reduced to
    their shape so free-form payloads never reach the logs.
    """
    if value is None or isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, str):
        return redact_string(value)
    if isinstance(value, dict):
        return f"dict(keys={sorted(str(k) for k in value)})"
    if isinstance(value, (list, tuple, set)):
        return f"{type(value).__name__}(len={len(value)})"
    return f"<{type(value).__name__}>"


def safe_log_context(**kwargs: Any) -> dict[str, Any]:
    """Build an extra_fields dict with every value redacted."""
    return {key: redact_value(value) for key, value in kwargs.items()}
