"""HTTP backend for tasks - sends tasks to worker via HTTP POST.

The engine and the worker run as separate processes; the worker
authenticates calls with the shared X-Internal-Task-Secret header.
"""

import os

import requests

from spacebook.observability.logging import get_logger

logger = get_logger(__name__)

DEFAULT_WORKER_BASE_URL = "http://worker:8000"
DEFAULT_HTTP_TIMEOUT = 30


def _http_timeout() -> int:
    raw = os.environ.get("TASKS_HTTP_TIMEOUT", "")
    try:
        return int(raw) if raw else DEFAULT_HTTP_TIMEOUT
    except ValueError:
        return DEFAULT_HTTP_TIMEOUT


def enqueue_http(
    task_id: str,
    url_path: str,
    payload: dict,
    correlation_id: str | None = None,
) -> bool:
    """Enqueue task via HTTP POST to worker.

    Args:
        task_id: Unique task identifier (for logging/tracing).
        url_path: Worker endpoint path (e.g., "/tasks/notifications/deliver").
        payload: Task payload (must be PII-free).
        correlation_id: Optional correlation ID for tracing.

    Returns:
        True if request succeeded (2xx), False otherwise.
    """
    base_url = os.environ.get("WORKER_BASE_URL", DEFAULT_WORKER_BASE_URL).rstrip("/")
    url = f"{base_url}{url_path}"
    headers = {
        "Content-Type": "application/json",
        "X-Correlation-ID": correlation_id or "",
        "X-Task-Id": task_id,
    }

    secret = os.environ.get("INTERNAL_TASK_SECRET", "")
    if not secret:
        logger.error(
            "HTTP task enqueue aborted: INTERNAL_TASK_SECRET not configured",
            extra={"extra_fields": {"task_id": task_id, "url_path": url_path}},
        )
        return False
    headers["X-Internal-Task-Secret"] = secret

    try:
        response = requests.post(
            url,
            json=payload,
            headers=headers,
            timeout=_http_timeout(),
        )
        response.raise_for_status()
        logger.info(
            "HTTP task enqueued successfully",
            extra={"extra_fields": {"task_id": task_id, "url_path": url_path}},
        )
        return True
    except requests.RequestException as e:
        logger.error(
            "HTTP task enqueue failed",
            extra={"extra_fields": {"task_id": task_id, "url": url, "error": str(e)}},
        )
        return False
