"""Correlation ID carried through a request or task for log tracing."""

import uuid
from contextvars import ContextVar, Token

CORRELATION_ID_HEADER = "X-Correlation-ID"

_correlation_id: ContextVar[str] = ContextVar("spacebook_correlation_id", default="")


def new_correlation_id() -> str:
    return uuid.uuid4().hex


def get_correlation_id() -> str:
    """Current correlation ID, or an empty string outside a request/task."""
    return _correlation_id.get()


def set_correlation_id(cid: str) -> Token[str]:
    return _correlation_id.set(cid)


def reset_correlation_id(token: Token[str]) -> None:
    _correlation_id.reset(token)
