from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from fastapi.concurrency import run_in_threadpool
from loguru import logger
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cfsync.api.envelope import ok
from cfsync.config import get_settings
from cfsync.db.database import get_db
from cfsync.exceptions import ConfigValidationError
from cfsync.models import SyncConfig
from cfsync.scheduler.cron import describe, from_expression, validate_expression
from cfsync.scheduler.runner import get_sync_scheduler

router = APIRouter(prefix="/api", tags=["sync"])


class SyncConfigRequest(BaseModel):
    cronTime: str
    enabled: bool = True


async def _get_or_create_config(db: AsyncSession) -> SyncConfig:
    result = await db.execute(select(SyncConfig).order_by(SyncConfig.id).limit(1))
    config = result.scalar_one_or_none()
    if config is None:
        config = SyncConfig(cron_time=get_settings().default_sync_cron, enabled=True)
        db.add(config)
        await db.commit()
        await db.refresh(config)
    return config


def _config_payload(config: SyncConfig) -> dict:
    return {
        "cronTime": config.cron_time,
        "enabled": config.enabled,
        "schedule": describe(from_expression(config.cron_time)),
    }


@router.get("/sync-config")
async def get_sync_config(db: AsyncSession = Depends(get_db)):
    config = await _get_or_create_config(db)
    return ok(_config_payload(config))


@router.put("/sync-config")
async def update_sync_config(body: SyncConfigRequest, db: AsyncSession = Depends(get_db)):
    try:
        cron_time = validate_expression(body.cronTime)
    except ConfigValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    config = await _get_or_create_config(db)
    config.cron_time = cron_time
    config.enabled = body.enabled
    await db.commit()
    await db.refresh(config)
    logger.info(f"Sync config updated: '{cron_time}' enabled={body.enabled}")

    scheduler = get_sync_scheduler()
    if scheduler is not None:
        await run_in_threadpool(scheduler.reschedule)

    return ok(_config_payload(config))
