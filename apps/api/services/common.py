"""Shared helpers for resource services: existence probes and pipeline reads."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple, Type

from sqlalchemy import exists, select
from sqlalchemy.ext.asyncio import AsyncSession

from database import Base
from services.errors import bad_request
from services.query import Pipeline, PipelineConfigError, run_pipeline

logger = logging.getLogger(__name__)


def clean_text(value: Any) -> str:
    return str(value or "").strip()


async def record_exists(db: AsyncSession, model: Type[Base], record_id: Optional[str]) -> bool:
    """Lightweight probe: selects the id only."""
    if not record_id:
        return False
    result = await db.execute(select(model.id).where(model.id == record_id).limit(1))
    return result.scalar_one_or_none() is not None


async def records_exist(db: AsyncSession, *probes: Tuple[Type[Base], Optional[str]]) -> List[bool]:
    """Probe several (model, id) pairs in a single round trip."""
    checks = [exists().where(model.id == (record_id or "")) for model, record_id in probes]
    result = await db.execute(select(*checks))
    return [bool(flag) for flag in result.one()]


async def read_pipeline(db: AsyncSession, pipeline: Pipeline) -> Any:
    """Run a read pipeline, turning configuration errors into a 400."""
    try:
        return await run_pipeline(db, pipeline)
    except PipelineConfigError as exc:
        logger.info("pipeline_rejected collection=%s reason=%s", pipeline.collection, exc)
        raise bad_request(str(exc)) from exc


async def read_one(db: AsyncSession, pipeline: Pipeline) -> Optional[Dict[str, Any]]:
    docs = await read_pipeline(db, pipeline)
    return docs[0] if docs else None
