"""FastAPI application factory for the task worker."""

from fastapi import FastAPI, Request, Response

from spacebook.observability.correlation import (
    CORRELATION_ID_HEADER,
    new_correlation_id,
    reset_correlation_id,
    set_correlation_id,
)

from .routes import tasks_notifications, tasks_reminders


def create_app() -> FastAPI:
    """Create the worker app.

    Only internal task routes are mounted; there is no user-facing API.

    Returns:
        Configured FastAPI application.
    """
    app = FastAPI(
        title="Spacebook Worker",
        docs_url=None,
        redoc_url=None,
    )

    # Correlation ID middleware
    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next) -> Response:
        cid = request.headers.get(CORRELATION_ID_HEADER) or new_correlation_id()
        token = set_correlation_id(cid)
        try:
            response = await call_next(request)
            response.headers[CORRELATION_ID_HEADER] = cid
            return response
        finally:
            reset_correlation_id(token)

    @app.get("/health")
    def health() -> dict:
        """Health check endpoint."""
        return {"status": "ok"}

    app.include_router(tasks_notifications.router)
    app.include_router(tasks_reminders.router)

    return app
