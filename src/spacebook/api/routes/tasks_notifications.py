"""Worker route for reservation notification delivery.

POST /tasks/notifications/deliver - delivers one outbox event.
"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from spacebook.api.task_auth import verify_task_auth
from spacebook.domain.notifications import (
    LoggingNotificationSink,
    NotificationDeliveryError,
    NotificationSink,
    deliver_notification,
)
from spacebook.observability.correlation import get_correlation_id
from spacebook.observability.logging import get_logger
from spacebook.observability.redaction import safe_log_context

router = APIRouter(prefix="/tasks/notifications", tags=["tasks"])

logger = get_logger(__name__)

_sink: NotificationSink = LoggingNotificationSink()


def _get_sink() -> NotificationSink:
    """Get notification sink (allows override in tests)."""
    return _sink


class DeliverRequest(BaseModel):
    """Request model for deliver task. PII-free."""

    task_id: str
    event_id: int


@router.post("/deliver")
async def deliver(request: Request, req: DeliverRequest) -> JSONResponse:
    """Deliver a reservation notification.

    - already delivered / nothing to send: 200 (idempotent)
    - sink failure: 500 so the queue retries; the event stays pending
    """
    correlation_id = get_correlation_id()

    if not verify_task_auth(request):
        logger.warning(
            "task auth failed",
            extra={"extra_fields": safe_log_context(correlationId=correlation_id)},
        )
        raise HTTPException(status_code=401, detail="Unauthorized")

    log_ctx = safe_log_context(
        correlationId=correlation_id,
        task_id=req.task_id,
        event_id=req.event_id,
    )
    logger.info("deliver-notification task received", extra={"extra_fields": log_ctx})

    try:
        result = deliver_notification(req.event_id, sink=_get_sink())
    except NotificationDeliveryError:
        return JSONResponse(
            status_code=500,
            content={"ok": False, "error": "delivery failed"},
        )
    except Exception:
        logger.exception(
            "deliver-notification task failed",
            extra={"extra_fields": log_ctx},
        )
        return JSONResponse(
            status_code=500,
            content={"ok": False, "error": "processing failed"},
        )

    logger.info(
        "deliver-notification task completed",
        extra={"extra_fields": {**log_ctx, "status": result.get("status")}},
    )
    return JSONResponse(status_code=200, content={"ok": True, **result})
