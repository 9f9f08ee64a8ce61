"""AlarmNotifier: turns point value events into PLC alarm open/close writes.

Per event:
1. look up the data point (missing or unsupervised -> skip)
2. look up its open alarm
3. decide the edge (services.edge_detector)
4. apply OPEN / CLOSE against the alarm store

There is no per-point state in memory; the open alarm row is the state.
Store errors propagate so the caller can leave the event unprocessed.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import AlarmStoreError, NotFoundError, PointValueError
from core.timefmt import is_valid_ts
from models.point_value import PointValue
from services.alarm_levels import ALARM_LEVELS
from services.alarm_store import AlarmStore
from services.edge_detector import AlarmAction, as_active, decide
from services.point_registry import PointRegistry

logger = logging.getLogger("scada.alarm_notifier")


@dataclass(frozen=True)
class PointValueEvent:
    point_id: int
    ts: int          # epoch millis, event time
    value: Any

    def __post_init__(self):
        if not is_valid_ts(self.ts):
            raise PointValueError(
                "Point value timestamp out of range",
                detail={"point_id": self.point_id, "ts": self.ts},
            )

    @classmethod
    def from_fields(cls, fields: dict) -> PointValueEvent:
        """Build an event from a flat mapping (stream entry, JSON payload)."""
        try:
            return cls(
                point_id=int(fields["point_id"]),
                ts=int(fields["ts"]),
                value=fields["value"],
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise PointValueError(
                "Malformed point value event", detail={"fields": repr(fields)}
            ) from exc


class AlarmNotifier:

    def __init__(
        self,
        registry: PointRegistry | None = None,
        store: AlarmStore | None = None,
    ):
        self.registry = registry or PointRegistry()
        self.store = store or AlarmStore()

    async def notify(self, session: AsyncSession, event: PointValueEvent) -> AlarmAction:
        """Evaluate one event inside the caller's transaction (no commit)."""
        point = await self.registry.lookup(session, event.point_id)
        if point is None:
            logger.debug("Point %d not registered, event skipped", event.point_id)
            return AlarmAction.NONE

        level = point.plc_alarm_level
        if level not in ALARM_LEVELS:
            logger.warning(
                "Point %d has malformed alarm level %r, event skipped",
                point.id, level,
            )
            return AlarmAction.NONE
        if not level:
            return AlarmAction.NONE

        try:
            active = as_active(event.value)
        except PointValueError:
            logger.warning(
                "Point %d value %r is not boolean-coercible, event skipped",
                point.id, event.value,
            )
            return AlarmAction.NONE

        open_alarm = await self.store.find_open(session, point.id)
        action = decide(level, open_alarm, active)

        if action is AlarmAction.OPEN:
            alarm_id = await self.store.open_alarm(session, point, event.ts)
            if alarm_id is None:
                return AlarmAction.NONE
            logger.info(
                "PLC ALARM ON: point=%d xid=%s level=%d ts=%d id=%d",
                point.id, point.xid, level, event.ts, alarm_id,
            )
        elif action is AlarmAction.CLOSE:
            if not await self.store.close_alarm(session, open_alarm.id, event.ts):
                return AlarmAction.NONE
            logger.info(
                "PLC ALARM OFF: point=%d xid=%s ts=%d id=%d",
                point.id, point.xid, event.ts, open_alarm.id,
            )
        return action

    async def ingest(self, session: AsyncSession, event: PointValueEvent) -> AlarmAction:
        """Store the sample and evaluate it; both are committed together."""
        try:
            value = float(event.value)
        except (TypeError, ValueError) as exc:
            raise PointValueError(detail={"value": repr(event.value)}) from exc

        if await self.registry.lookup(session, event.point_id) is None:
            raise NotFoundError(
                "Data point not found", detail={"point_id": event.point_id}
            )

        try:
            session.add(PointValue(data_point_id=event.point_id, ts=event.ts, point_value=value))
            await session.flush()
            action = await self.notify(session, event)
            await session.commit()
        except SQLAlchemyError as exc:
            await session.rollback()
            raise AlarmStoreError(
                "Failed to store point value", detail={"point_id": event.point_id}
            ) from exc
        except AlarmStoreError:
            await session.rollback()
            raise
        return action
