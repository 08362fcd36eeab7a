"""Tasks client with idempotent enqueue.

Provides backends selectable via TASKS_BACKEND env var:
- inline (default): registers tasks without executing them (for dev/tests)
- http: sends tasks to worker via HTTP POST
"""

import os


TASKS_BACKEND = os.environ.get("TASKS_BACKEND", "inline")


class TasksClient:
    """Tasks client with idempotent enqueue by task_id.

    Backend selection via TASKS_BACKEND env var:
    - "inline" (default): records the task; the worker route is not called
    - "http": sends tasks to worker via HTTP POST

    Tracks task_ids to ensure idempotency (same task_id = no-op).
    """

    def __init__(self, backend: str | None = None) -> None:
        """Initialize client with empty executed set."""
        self._executed_ids: set[str] = set()
        self._scheduled_tasks: list[dict] = []
        self._backend = backend or TASKS_BACKEND

    def enqueue_http(
        self,
        task_id: str,
        url_path: str,
        payload: dict,
        correlation_id: str | None = None,
    ) -> bool:
        """Enqueue task for HTTP-based execution.

        Idempotent by task_id: if same task_id was already enqueued,
        returns False without re-enqueuing. A task_id whose HTTP send failed
        is forgotten so a later call may retry it.

        Args:
            task_id: Unique identifier for idempotency.
            url_path: Worker endpoint path (e.g., "/tasks/notifications/deliver").
            payload: Task data (must not contain PII).
            correlation_id: Optional correlation ID for tracing.

        Returns:
            True if task was enqueued (new task_id).
            False if no-op (task_id already seen) or the send failed.

        Raises:
            ValueError: If TASKS_BACKEND is unknown.
        """
        if task_id in self._executed_ids:
            return False

        if self._backend == "inline":
            self._executed_ids.add(task_id)
            self._scheduled_tasks.append({
                "task_id": task_id,
                "url_path": url_path,
                "payload": payload,
                "correlation_id": correlation_id,
            })
            return True

        elif self._backend == "http":
            from spacebook.tasks.http_backend import enqueue_http

            sent = enqueue_http(task_id, url_path, payload, correlation_id)
            if sent:
                self._executed_ids.add(task_id)
            return sent

        else:
            raise ValueError(f"Unknown TASKS_BACKEND: {self._backend}")

    def was_executed(self, task_id: str) -> bool:
        """Check if task_id was already enqueued."""
        return task_id in self._executed_ids

    def get_scheduled_tasks(self) -> list[dict]:
        """Get list of tasks recorded by the inline backend (useful for testing)."""
        return list(self._scheduled_tasks)

    def clear(self) -> None:
        """Clear executed task_ids and scheduled tasks (useful for testing)."""
        self._executed_ids.clear()
        self._scheduled_tasks.clear()
