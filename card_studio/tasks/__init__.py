"""Celery app configuration and task registry"""

from celery import Celery
from card_studio.config import get_settings

settings = get_settings()

_broker = settings.CELERY_BROKER_URL or settings.REDIS_URL or "redis://localhost:6379/0"

# Celery app
celery_app = Celery(
    "card_studio",
    broker=_broker,
    backend=settings.CELERY_RESULT_BACKEND or _broker,
    include=["card_studio.tasks.scheduler"]
)

# Celery configuration
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # Task settings
    task_soft_time_limit=240,  # Rendering several cards can take a while
    task_time_limit=300,       # Matches the scheduler lock TTL
    task_acks_late=True,
    worker_prefetch_multiplier=1,

    # Beat schedule (periodic tasks)
    beat_schedule={
        "run-due-schedules-every-60s": {
            "task": "card_studio.tasks.scheduler.run_due_schedules",
            "schedule": 60.0,
        },
        "cleanup-temp-videos-hourly": {
            "task": "card_studio.tasks.scheduler.cleanup_temp_videos",
            "schedule": 3600.0,
        },
    },
)
