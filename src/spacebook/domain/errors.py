"""Typed errors returned by engine operations.

Every engine failure is a BookingError subclass whose `kind` tells the
transport layer how to render it. Storage failures are translated here so
callers never have to import psycopg2.
"""

from __future__ import annotations

from contextlib import contextmanager
from enum import Enum
from typing import Iterator

import psycopg2
from psycopg2 import errors as pg_errors


class ErrorKind(str, Enum):
    VALIDATION = "Validation"
    NOT_FOUND = "NotFound"
    CONFLICT = "Conflict"
    LIMIT_EXCEEDED = "LimitExceeded"
    UNAUTHORIZED = "Unauthorized"
    TRANSIENT = "Transient"


class BookingError(Exception):
    """Base class for all engine errors."""

    kind: ErrorKind

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ValidationError(BookingError):
    """Input is malformed or violates a business rule."""

    kind = ErrorKind.VALIDATION

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        self.errors = list(errors) if errors else [message]
        super().__init__(message)


class NotFoundError(BookingError):
    kind = ErrorKind.NOT_FOUND


class ConflictError(BookingError):
    """Overlap with an existing reservation, or a duplicate confirmation code."""

    kind = ErrorKind.CONFLICT

    def __init__(self, message: str, conflicting_reservation_id: int | None = None) -> None:
        self.conflicting_reservation_id = conflicting_reservation_id
        super().__init__(message)


class LimitExceededError(BookingError):
    kind = ErrorKind.LIMIT_EXCEEDED


class UnauthorizedError(BookingError):
    kind = ErrorKind.UNAUTHORIZED


class TransientError(BookingError):
    """Storage failed mid-transaction. Safe for the caller to retry."""

    kind = ErrorKind.TRANSIENT


SPACE_ALREADY_BOOKED = "Space is already booked at this time"
DUPLICATE_CONFIRMATION_CODE = "Confirmation code already in use"


@contextmanager
def storage_errors_translated() -> Iterator[None]:
    """Translate psycopg2 failures raised inside the block into BookingErrors.

    Must wrap the txn() block so rollback has already happened when the
    translated error propagates.
    """
    try:
        yield
    except pg_errors.ExclusionViolation as exc:
        raise ConflictError(SPACE_ALREADY_BOOKED) from exc
    except pg_errors.UniqueViolation as exc:
        # confirmation_code is the only unique column written by the engine
        raise ConflictError(DUPLICATE_CONFIRMATION_CODE) from exc
    except psycopg2.OperationalError as exc:
        raise TransientError(f"Storage failure: {exc.__class__.__name__}") from exc
