"""PLC alarms API — live/history views, acknowledgement, point value ingestion.

GET  /api/alarms/live                  — unacknowledged alarms, open first
GET  /api/alarms/history               — every alarm, most recently closed first
                                         (all rows unless limit/offset are given)
POST /api/alarms/{alarm_id}/acknowledge — operator acknowledgement
POST /api/point-values                 — store one sample and evaluate it
"""
from __future__ import annotations

import logging
from typing import Optional, Union

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import NotFoundError
from core.timefmt import MAX_TS_MS, now_ms
from models import get_session
from services.alarm_notifier import AlarmNotifier, PointValueEvent
from services.alarm_store import AlarmStore

router = APIRouter(tags=["alarms"])
logger = logging.getLogger("scada.alarms")

store = AlarmStore()
notifier = AlarmNotifier(store=store)


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------

class LiveAlarmOut(BaseModel):
    id: int
    activation_time: str
    inactivation_time: str
    level: Optional[int] = None
    name: Optional[str] = None

    model_config = {"from_attributes": True}


class HistoryAlarmOut(BaseModel):
    time: str
    level: Optional[int] = None
    name: Optional[str] = None

    model_config = {"from_attributes": True}


class AcknowledgeIn(BaseModel):
    ts: Optional[int] = None  # epoch millis, defaults to server time


class AcknowledgeOut(BaseModel):
    id: int
    acknowledged: bool
    acknowledge_time: int


class PointValueIn(BaseModel):
    point_id: int
    ts: int = Field(gt=0, le=MAX_TS_MS)
    value: Union[bool, float, str]


class PointValueResult(BaseModel):
    point_id: int
    ts: int
    action: str


# ---------------------------------------------------------------------------
# ENDPOINTS
# ---------------------------------------------------------------------------

@router.get("/api/alarms/live", response_model=list[LiveAlarmOut])
async def live_alarms(
    limit: Optional[int] = Query(None, ge=1, le=1000),
    session: AsyncSession = Depends(get_session),
) -> list[LiveAlarmOut]:
    rows = await store.live_alarms(session, now_ms(), limit=limit)
    return [LiveAlarmOut.model_validate(r) for r in rows]


@router.get("/api/alarms/history", response_model=list[HistoryAlarmOut])
async def history_alarms(
    limit: Optional[int] = Query(None, ge=1),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_session),
) -> list[HistoryAlarmOut]:
    rows = await store.history_alarms(session, limit=limit, offset=offset)
    return [HistoryAlarmOut.model_validate(r) for r in rows]


@router.post("/api/alarms/{alarm_id}/acknowledge", response_model=AcknowledgeOut)
async def acknowledge_alarm(
    alarm_id: int,
    body: Optional[AcknowledgeIn] = None,
    session: AsyncSession = Depends(get_session),
) -> AcknowledgeOut:
    """Acknowledge an alarm. Repeated calls keep the first acknowledgement time."""
    ts = body.ts if body and body.ts else now_ms()
    acknowledged = await store.acknowledge(session, alarm_id, ts)
    await session.commit()

    alarm = await store.get(session, alarm_id)
    if alarm is None:
        raise NotFoundError("Alarm not found", detail={"alarm_id": alarm_id})
    if acknowledged:
        logger.info("Alarm #%d acknowledged at %d", alarm_id, ts)
    return AcknowledgeOut(
        id=alarm.id,
        acknowledged=acknowledged,
        acknowledge_time=alarm.acknowledge_time,
    )


@router.post("/api/point-values", response_model=PointValueResult, status_code=201)
async def ingest_point_value(
    body: PointValueIn,
    session: AsyncSession = Depends(get_session),
) -> PointValueResult:
    event = PointValueEvent(point_id=body.point_id, ts=body.ts, value=body.value)
    action = await notifier.ingest(session, event)
    return PointValueResult(point_id=event.point_id, ts=event.ts, action=action.value)
