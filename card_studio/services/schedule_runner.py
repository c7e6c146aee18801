"""
Schedule runner.

Executes every due schedule once, under the ``scheduler`` lock:
- pick up to ``SCHEDULE_BATCH_SIZE`` unprocessed products
- generate and persist cards for them (all templates for super-card
  schedules with ``includeAllStyles``)
- mark products processed, then advance the schedule

Triggered by ``GET /api/cron`` and by the Celery beat task.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from card_studio.config import get_settings
from card_studio.schemas.card import CardOptions
from card_studio.schemas.product import Product
from card_studio.schemas.schedule import Schedule
from card_studio.services.cache_store import CacheStore
from card_studio.services.card_generator import ArtifactGenerationError, CardGenerator
from card_studio.services.card_templates import TEMPLATE_NAMES
from card_studio.services.schedule_store import ScheduleStore
from card_studio.services.shopee_connector import ShopeeAffiliateConnector, ShopeeAPIError

logger = logging.getLogger(__name__)

LOCK_NAME = "scheduler"


def card_variants(schedule: Schedule) -> List[CardOptions]:
    """Card options generated for each product of a schedule."""
    if schedule.type != "super-card":
        return [CardOptions()]
    options = schedule.options
    scheme = "dark" if options is not None and options.dark_mode else "light"
    templates = TEMPLATE_NAMES if options is not None and options.include_all_styles else ("modern",)
    return [CardOptions(template=t, color_scheme=scheme) for t in templates]


async def _candidate_products(
    cache: CacheStore,
    connector: Optional[ShopeeAffiliateConnector],
) -> List[Product]:
    products = await cache.get_products(use_fallback=False)
    if products or connector is None:
        return products or await cache.get_products()
    try:
        products = await connector.get_best_sellers(limit=20)
    except ShopeeAPIError as exc:
        logger.error("Scheduler could not fetch best sellers: %s", exc)
        return await cache.get_products()
    await cache.save_products(products)
    return products


async def run_schedule(
    schedule: Schedule,
    cache: CacheStore,
    generator: CardGenerator,
    products: List[Product],
    batch_size: int,
) -> Schedule:
    """Generate cards for one schedule and record results on it (not yet advanced)."""
    pending = []
    for product in products:
        if len(pending) >= batch_size:
            break
        if not await cache.is_processed(product.item_id):
            pending.append(product)

    if not pending:
        schedule.errors.append("No unprocessed products available")
        return schedule

    variants = card_variants(schedule)
    for product in pending:
        try:
            for options in variants:
                artifact = await generator.generate_card(product, options)
                location = await generator.persist_artifact(artifact)
                schedule.generated_cards.append(
                    {
                        "productId": product.item_id,
                        "template": options.template,
                        "colorScheme": options.color_scheme,
                        "generatedAt": datetime.now(timezone.utc).isoformat(),
                        **location,
                    }
                )
        except ArtifactGenerationError as exc:
            logger.error("Schedule %s: product %s failed: %s", schedule.id, product.item_id, exc)
            schedule.errors.append(f"{product.item_id}: {exc}")
            continue
        await cache.mark_processed(product.item_id)

    return schedule


async def run_due_schedules(
    cache: CacheStore,
    schedules: ScheduleStore,
    generator: CardGenerator,
    connector: Optional[ShopeeAffiliateConnector] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Run all due schedules. Skips (without waiting) if another run holds the lock."""
    settings = get_settings()
    now = now or datetime.now()

    token = await cache.acquire_lock(LOCK_NAME, settings.SCHEDULER_LOCK_TTL_SECONDS)
    if token is None:
        logger.info("Scheduler run skipped: lock held by another run")
        return {"skipped": True, "reason": "Scheduler already running", "processed": 0, "results": []}

    try:
        due = await schedules.due(now)
        if not due:
            return {"skipped": False, "processed": 0, "results": []}

        products = await _candidate_products(cache, connector)
        results = []
        for schedule in due:
            cards_before, errors_before = len(schedule.generated_cards), len(schedule.errors)
            schedule = await run_schedule(schedule, cache, generator, products, settings.SCHEDULE_BATCH_SIZE)
            advanced = ScheduleStore.advance(schedule, now)
            await schedules.save(advanced)
            results.append(
                {
                    "id": advanced.id,
                    "status": advanced.status,
                    "nextDate": advanced.date,
                    "generated": len(schedule.generated_cards) - cards_before,
                    "errors": schedule.errors[errors_before:],
                }
            )
        logger.info("Scheduler processed %d due schedules", len(due))
        return {"skipped": False, "processed": len(due), "results": results}
    finally:
        await cache.release_lock(LOCK_NAME, token)
