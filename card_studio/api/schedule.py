"""Schedule endpoints and the cron trigger."""

from __future__ import annotations

import io
import json
import logging
import zipfile
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query

from card_studio.api.deps import file_response, get_card_generator, get_connector
from card_studio.schemas.schedule import ScheduleCreate, ScheduleDelete
from card_studio.services.cache_store import CacheStore, get_cache_store
from card_studio.services.card_generator import MEDIA_TYPES, CardGenerator
from card_studio.services.schedule_runner import run_due_schedules
from card_studio.services.schedule_store import ScheduleStore, ScheduleValidationError, get_schedule_store
from card_studio.services.shopee_connector import ShopeeAffiliateConnector

logger = logging.getLogger(__name__)
router = APIRouter(tags=["schedule"])


async def _create(store: ScheduleStore, payload: ScheduleCreate, schedule_type: str):
    try:
        schedule = await store.create(payload, schedule_type=schedule_type)
    except ScheduleValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return {"success": True, "schedule": schedule.to_dict()}


@router.get("/schedule")
async def list_schedules(store: ScheduleStore = Depends(get_schedule_store)):
    schedules = await store.list()
    return {"success": True, "schedules": [s.to_dict() for s in schedules]}


@router.post("/schedule")
async def create_schedule(
    payload: ScheduleCreate,
    store: ScheduleStore = Depends(get_schedule_store),
):
    return await _create(store, payload, "standard")


@router.post("/super-schedule")
async def create_super_schedule(
    payload: ScheduleCreate,
    store: ScheduleStore = Depends(get_schedule_store),
):
    """Schedule that renders every selected style per product."""
    return await _create(store, payload, "super-card")


@router.delete("/schedule")
async def delete_schedule(
    payload: Optional[ScheduleDelete] = Body(None),
    schedule_id: Optional[str] = Query(None, alias="id"),
    store: ScheduleStore = Depends(get_schedule_store),
):
    target = (payload.id if payload else None) or schedule_id
    if not target:
        raise HTTPException(status_code=400, detail="Schedule id is required")
    if not await store.delete(target):
        raise HTTPException(status_code=404, detail=f"Schedule {target} not found")
    return {"success": True, "id": target}


@router.get("/schedules/export")
async def export_schedules(store: ScheduleStore = Depends(get_schedule_store)):
    schedules = await store.list()
    info = {
        "exportedAt": datetime.now(timezone.utc).isoformat(),
        "count": len(schedules),
        "schedules": [s.to_dict() for s in schedules],
    }
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
        archive.writestr("schedules-info.json", json.dumps(info, ensure_ascii=False, indent=2))
    filename = f"schedules_{datetime.now(timezone.utc):%Y%m%d_%H%M%S}.zip"
    return file_response(buffer.getvalue(), MEDIA_TYPES["zip"], filename)


@router.get("/cron")
async def cron(
    cache: CacheStore = Depends(get_cache_store),
    schedules: ScheduleStore = Depends(get_schedule_store),
    generator: CardGenerator = Depends(get_card_generator),
    connector: Optional[ShopeeAffiliateConnector] = Depends(get_connector),
):
    """Run due schedules now (same path as the Celery beat task)."""
    result = await run_due_schedules(cache, schedules, generator, connector=connector)
    return {"success": True, **result}
