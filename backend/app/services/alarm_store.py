"""Alarm store — conditional writes and view queries over plc_alarms.

Opening and closing are single statements so concurrent evaluation of one
point's events can never open two alarms or close the wrong row:
- open:  INSERT ... ON CONFLICT (data_point_id) WHERE inactive_time = 0 DO NOTHING
- close: UPDATE ... WHERE id = :id AND inactive_time = 0
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import case, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import MultipleResultsFound, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from core.exceptions import AlarmInvariantError, AlarmStoreError
from core.timefmt import format_ts
from models.data_point import DataPoint
from models.plc_alarm import PlcAlarm

logger = logging.getLogger("scada.alarm_store")

HOUR_MS = 3600 * 1000

_DIALECT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


# ---------------------------------------------------------------------------
# View rows
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LiveAlarmRow:
    id: int
    activation_time: str
    inactivation_time: str
    level: int | None
    name: str | None


@dataclass(frozen=True)
class HistoryAlarmRow:
    time: str
    level: int | None
    name: str | None


class AlarmStore:

    def __init__(self, live_window_hours: int | None = None):
        self.live_window_hours = (
            settings.LIVE_WINDOW_HOURS if live_window_hours is None else live_window_hours
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    async def find_open(self, session: AsyncSession, point_id: int) -> PlcAlarm | None:
        stmt = select(PlcAlarm).where(
            PlcAlarm.data_point_id == point_id,
            PlcAlarm.inactive_time == 0,
        )
        try:
            result = await session.execute(stmt)
            return result.scalar_one_or_none()
        except MultipleResultsFound as exc:
            raise AlarmInvariantError(
                "More than one open alarm for point", detail={"point_id": point_id}
            ) from exc
        except SQLAlchemyError as exc:
            raise AlarmStoreError(
                "Open alarm lookup failed", detail={"point_id": point_id}
            ) from exc

    async def open_alarm(
        self, session: AsyncSession, point: DataPoint, ts: int
    ) -> int | None:
        """Insert the open alarm for a point. Returns its id, None on collision."""
        if ts <= 0:
            logger.warning("Point %d open rejected, invalid ts=%d", point.id, ts)
            return None
        dialect = session.get_bind().dialect.name
        insert = _DIALECT_INSERTS.get(dialect)
        if insert is None:
            raise AlarmStoreError(
                "Unsupported database dialect",
                detail={"dialect": dialect},
            )
        stmt = (
            insert(PlcAlarm)
            .values(
                data_point_id=point.id,
                data_point_xid=point.xid,
                data_point_name=point.point_name,
                data_point_level=point.plc_alarm_level,
                active_time=ts,
                inactive_time=0,
                acknowledge_time=0,
                level=point.plc_alarm_level,
            )
            .on_conflict_do_nothing(
                index_elements=[PlcAlarm.data_point_id],
                index_where=PlcAlarm.inactive_time == 0,
            )
            .returning(PlcAlarm.id)
        )
        try:
            result = await session.execute(stmt)
            alarm_id = result.scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise AlarmStoreError(
                "Failed to open alarm", detail={"point_id": point.id, "ts": ts}
            ) from exc
        if alarm_id is None:
            logger.debug("Open alarm already present for point=%d, skipped", point.id)
        return alarm_id

    async def close_alarm(self, session: AsyncSession, alarm_id: int, ts: int) -> bool:
        """Set inactive_time on a still-open alarm. Returns False if nothing changed."""
        if ts <= 0:
            # 0 is the open sentinel, never a close time
            logger.warning("Alarm #%d close rejected, invalid ts=%d", alarm_id, ts)
            return False
        stmt = (
            update(PlcAlarm)
            .where(
                PlcAlarm.id == alarm_id,
                PlcAlarm.inactive_time == 0,
                PlcAlarm.active_time <= ts,
            )
            .values(inactive_time=ts)
        )
        try:
            result = await session.execute(stmt)
        except SQLAlchemyError as exc:
            raise AlarmStoreError(
                "Failed to close alarm", detail={"alarm_id": alarm_id, "ts": ts}
            ) from exc
        if result.rowcount != 1:
            logger.warning(
                "Alarm #%d not closed at ts=%d (already closed or older than activation)",
                alarm_id, ts,
            )
            return False
        return True

    async def acknowledge(self, session: AsyncSession, alarm_id: int, ts: int) -> bool:
        """Record an operator acknowledgement. The first acknowledgement wins."""
        stmt = (
            update(PlcAlarm)
            .where(PlcAlarm.id == alarm_id, PlcAlarm.acknowledge_time == 0)
            .values(acknowledge_time=ts)
        )
        try:
            result = await session.execute(stmt)
        except SQLAlchemyError as exc:
            raise AlarmStoreError(
                "Failed to acknowledge alarm", detail={"alarm_id": alarm_id}
            ) from exc
        return result.rowcount == 1

    async def get(self, session: AsyncSession, alarm_id: int) -> PlcAlarm | None:
        try:
            return await session.get(PlcAlarm, alarm_id)
        except SQLAlchemyError as exc:
            raise AlarmStoreError(
                "Alarm lookup failed", detail={"alarm_id": alarm_id}
            ) from exc

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------
    async def live_alarms(
        self, session: AsyncSession, now_ms: int, *, limit: int | None = None
    ) -> list[LiveAlarmRow]:
        """Unacknowledged alarms that are open or closed inside the live window."""
        cutoff = now_ms - self.live_window_hours * HOUR_MS
        stmt = (
            select(PlcAlarm)
            .where(
                PlcAlarm.acknowledge_time == 0,
                (PlcAlarm.inactive_time == 0) | (PlcAlarm.inactive_time > cutoff),
            )
            .order_by(
                case((PlcAlarm.inactive_time == 0, 0), else_=1),
                PlcAlarm.active_time.desc(),
                PlcAlarm.inactive_time.desc(),
                PlcAlarm.id.desc(),
            )
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        alarms = await self._scalars(session, stmt)
        return [
            LiveAlarmRow(
                id=a.id,
                activation_time=format_ts(a.active_time),
                inactivation_time=format_ts(a.inactive_time),
                level=a.data_point_level,
                name=a.data_point_name,
            )
            for a in alarms
        ]

    async def history_alarms(
        self,
        session: AsyncSession,
        *,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[HistoryAlarmRow]:
        """Full audit trail, most recently closed first (open rows sort last)."""
        stmt = select(PlcAlarm).order_by(
            PlcAlarm.inactive_time.desc(),
            PlcAlarm.id.desc(),
        )
        if offset:
            stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        alarms = await self._scalars(session, stmt)
        return [
            HistoryAlarmRow(
                time=format_ts(a.inactive_time),
                level=a.level,
                name=a.data_point_name,
            )
            for a in alarms
        ]

    @staticmethod
    async def _scalars(session: AsyncSession, stmt) -> list[PlcAlarm]:
        try:
            result = await session.execute(stmt)
            return list(result.scalars().all())
        except SQLAlchemyError as exc:
            raise AlarmStoreError("Alarm view query failed") from exc
