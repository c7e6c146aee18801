"""
Periodic tasks for automated card generation.

Tasks:
- run_due_schedules: Execute due schedules under the scheduler lock
- cleanup_temp_videos: Remove stale temp media and expired video records
"""

import asyncio
import logging

from card_studio.tasks import celery_app
from card_studio.config import get_settings
from card_studio.services.cache_store import CacheStore
from card_studio.services.card_generator import CardGenerator
from card_studio.services.gemini_client import get_gemini_client
from card_studio.services.schedule_runner import run_due_schedules as _run_due_schedules
from card_studio.services.schedule_store import ScheduleStore
from card_studio.services.shopee_connector import get_shopee_connector
from card_studio.services.text_generation import TextGenerationService
from card_studio.services.video_manager import VideoManager

logger = logging.getLogger(__name__)

# Initialize Sentry for Celery if configured
_settings = get_settings()
if _settings.SENTRY_DSN:
    import sentry_sdk
    from sentry_sdk.integrations.celery import CeleryIntegration

    sentry_sdk.init(
        dsn=_settings.SENTRY_DSN,
        environment=_settings.SENTRY_ENVIRONMENT,
        traces_sample_rate=_settings.SENTRY_TRACES_SAMPLE_RATE,
        integrations=[
            CeleryIntegration(),
        ],
    )
    logger.info("Sentry initialized for Celery tasks (env: %s)", _settings.SENTRY_ENVIRONMENT)


def run_async(coro):
    """Run async coroutine in sync context (for Celery tasks)."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


async def _run_due_schedules_once():
    # Fresh clients per run: redis.asyncio pools are bound to the event loop
    cache = CacheStore.from_settings()
    schedules = ScheduleStore.from_settings()
    try:
        generator = CardGenerator(cache, TextGenerationService(get_gemini_client()))
        return await _run_due_schedules(cache, schedules, generator, connector=get_shopee_connector())
    finally:
        await cache.close()
        await schedules.close()


async def _cleanup_temp_videos_once(older_than_hours: float):
    cache = CacheStore.from_settings()
    try:
        return await VideoManager(cache).cleanup_temp_files(older_than_hours=older_than_hours)
    finally:
        await cache.close()


@celery_app.task(name="card_studio.tasks.scheduler.run_due_schedules")
def run_due_schedules():
    """Periodic task: run every schedule whose slot has passed."""
    result = run_async(_run_due_schedules_once())
    if result.get("processed"):
        logger.info("Scheduled generation finished: %s", result)
    return result


@celery_app.task(name="card_studio.tasks.scheduler.cleanup_temp_videos")
def cleanup_temp_videos(older_than_hours: float = 24):
    """Periodic task: drop temp media older than ``older_than_hours``."""
    return run_async(_cleanup_temp_videos_once(older_than_hours))
