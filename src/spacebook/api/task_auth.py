"""Shared authentication for worker task handlers.

Tasks carry the X-Internal-Task-Secret header set by the HTTP task backend.
"""

from __future__ import annotations

import hmac
import os

from fastapi import Request

from spacebook.observability.logging import get_logger
from spacebook.observability.redaction import safe_log_context

logger = get_logger(__name__)

TASK_SECRET_HEADER = "X-Internal-Task-Secret"


def verify_task_auth(request: Request) -> bool:
    """Verify the internal task secret.

    Fail-closed: returns False if INTERNAL_TASK_SECRET is not configured.

    Args:
        request: FastAPI request object.

    Returns:
        True if authenticated, False otherwise.
    """
    expected = os.environ.get("INTERNAL_TASK_SECRET", "")
    if not expected:
        logger.error(
            "INTERNAL_TASK_SECRET not configured - fail closed",
            extra={"extra_fields": safe_log_context(reason="missing_secret_env")},
        )
        return False

    provided = request.headers.get(TASK_SECRET_HEADER, "")
    if not provided:
        logger.warning(
            "task auth failed: missing secret header",
            extra={"extra_fields": safe_log_context(reason="missing_header")},
        )
        return False

    if not hmac.compare_digest(provided.encode(), expected.encode()):
        logger.warning(
            "task auth failed: secret mismatch",
            extra={"extra_fields": safe_log_context(reason="secret_mismatch")},
        )
        return False

    return True
