"""Provisioning-time classification of PLC alarm levels by point name.

Names carrying " AL " are alarm points (level 2), names carrying " ST " are
state points (level 1). " ST " is checked last and wins when both appear.
Runs once when points are provisioned; the alarm notifier only reads the
stored plc_alarm_level.
"""
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models.data_point import DataPoint

logger = logging.getLogger("scada.alarm_levels")

LEVEL_NONE = 0
LEVEL_STATE = 1
LEVEL_ALARM = 2

ALARM_LEVELS = (LEVEL_NONE, LEVEL_STATE, LEVEL_ALARM)

# marker → level, applied in order (later markers override earlier ones)
NAME_MARKERS = (
    (" AL ", LEVEL_ALARM),
    (" ST ", LEVEL_STATE),
)


def classify_alarm_level(name: str | None) -> int:
    level = LEVEL_NONE
    if not name:
        return level
    for marker, marker_level in NAME_MARKERS:
        if marker in name:
            level = marker_level
    return level


async def sync_alarm_levels(session: AsyncSession) -> int:
    """Recompute plc_alarm_level and point_name for every data point.

    Returns the number of points whose level or name changed. Does not commit.
    """
    result = await session.execute(select(DataPoint))
    changed = 0
    for point in result.scalars().all():
        level = classify_alarm_level(point.name)
        if point.plc_alarm_level != level or point.point_name != point.name:
            point.plc_alarm_level = level
            point.point_name = point.name
            changed += 1
    await session.flush()
    logger.info("Alarm levels synced (%d points changed)", changed)
    return changed
