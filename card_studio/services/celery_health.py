"""Celery worker health for the system status endpoint."""

from typing import Any, Optional

from celery.exceptions import TimeoutError as CeleryTimeoutError
from kombu.exceptions import OperationalError

from card_studio.tasks import celery_app

# Reserved-task count at which the worker is reported as degraded
DEGRADED_QUEUE_LENGTH = 50


def _down(error: Optional[str] = None) -> dict[str, Any]:
    result: dict[str, Any] = {
        "worker_alive": False,
        "active_tasks": None,
        "queue_length": None,
        "status": "down",
    }
    if error:
        result["error"] = error
    return result


def get_celery_health(timeout: float = 2) -> dict[str, Any]:
    """
    Check that a worker answers and how much work it holds.

    Returns:
        dict with:
        - worker_alive: bool (ping successful)
        - active_tasks: int (currently executing)
        - queue_length: int (reserved tasks count)
        - status: "healthy" | "degraded" | "down"
    """
    try:
        inspect = celery_app.control.inspect(timeout=timeout)
        if not inspect.ping():
            return _down()

        active = inspect.active() or {}
        reserved = inspect.reserved() or {}
    except (CeleryTimeoutError, TimeoutError):
        return _down("Worker did not respond")
    except OperationalError as e:
        # Broker unreachable
        return _down(str(e))

    active_tasks = sum(len(tasks) for tasks in active.values())
    queue_length = sum(len(tasks) for tasks in reserved.values())
    return {
        "worker_alive": True,
        "active_tasks": active_tasks,
        "queue_length": queue_length,
        "status": "degraded" if queue_length >= DEGRADED_QUEUE_LENGTH else "healthy",
    }
