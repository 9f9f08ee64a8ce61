"""Edge detection for PLC alarms.

The open alarm row of a point is the memory of its last known state:
no open alarm + active value  -> OPEN  (rising edge)
open alarm + inactive value   -> CLOSE (falling edge)
anything else                 -> NONE
Points with a level outside {1, 2} never fire.
"""
from __future__ import annotations

import enum
from typing import TYPE_CHECKING

from core.exceptions import PointValueError
from services.alarm_levels import LEVEL_ALARM, LEVEL_STATE

if TYPE_CHECKING:
    from models.plc_alarm import PlcAlarm

SUPERVISED_LEVELS = (LEVEL_STATE, LEVEL_ALARM)


class AlarmAction(str, enum.Enum):
    NONE = "none"
    OPEN = "open"
    CLOSE = "close"


def as_active(value) -> bool:
    """Read a raw point value as a two-state signal (nonzero = active)."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        try:
            return float(value.strip()) != 0
        except ValueError:
            pass
    raise PointValueError(detail={"value": repr(value)})


def decide(level: int | None, open_alarm: PlcAlarm | None, value: bool) -> AlarmAction:
    if level not in SUPERVISED_LEVELS:
        return AlarmAction.NONE
    if value and open_alarm is None:
        return AlarmAction.OPEN
    if not value and open_alarm is not None:
        return AlarmAction.CLOSE
    return AlarmAction.NONE
