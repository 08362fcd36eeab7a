"""Worker route for the reminder sweep.

POST /tasks/reminders/send - typically triggered by a scheduler.
"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from spacebook.api.task_auth import verify_task_auth
from spacebook.domain.reminders import send_due_reminders
from spacebook.observability.correlation import get_correlation_id
from spacebook.observability.logging import get_logger
from spacebook.observability.redaction import safe_log_context

router = APIRouter(prefix="/tasks/reminders", tags=["tasks"])

logger = get_logger(__name__)


class SendRemindersRequest(BaseModel):
    task_id: str
    window_minutes: int | None = Field(default=None, ge=1)


@router.post("/send")
async def send_reminders(request: Request, req: SendRemindersRequest) -> JSONResponse:
    """Run one reminder sweep and report its counts."""
    correlation_id = get_correlation_id()

    if not verify_task_auth(request):
        logger.warning(
            "task auth failed",
            extra={"extra_fields": safe_log_context(correlationId=correlation_id)},
        )
        raise HTTPException(status_code=401, detail="Unauthorized")

    try:
        result = send_due_reminders(req.window_minutes, correlation_id=correlation_id or None)
    except Exception:
        logger.exception(
            "send-reminders task failed",
            extra={"extra_fields": safe_log_context(correlationId=correlation_id, task_id=req.task_id)},
        )
        return JSONResponse(
            status_code=500,
            content={"ok": False, "error": "processing failed"},
        )

    return JSONResponse(status_code=200, content={"ok": True, **result})
