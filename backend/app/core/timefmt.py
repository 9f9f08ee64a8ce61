"""Rendering and bounds of epoch-millisecond alarm timestamps."""
import logging
import time
from datetime import datetime
from functools import lru_cache
from zoneinfo import ZoneInfo

from config import settings

logger = logging.getLogger("scada.timefmt")

BLANK_TS = " "
INVALID_TS = "????-??-?? ??:??:??"
TS_FORMAT = "%Y-%m-%d %H:%M:%S"

# 9999-12-31 23:59:59.999 UTC, the last instant datetime can render
MAX_TS_MS = 253402300799999


@lru_cache(maxsize=8)
def _zone(name: str) -> ZoneInfo:
    return ZoneInfo(name)


def is_valid_ts(ts: int) -> bool:
    """Event timestamps are strictly positive; 0 is the open/unacked sentinel."""
    return 0 < ts <= MAX_TS_MS


def format_ts(ts: int | None, tz: str | None = None) -> str:
    """0 (or None) renders as a single space, anything else as YYYY-MM-DD HH:MM:SS.

    Values datetime cannot represent render as INVALID_TS instead of failing
    the whole view.
    """
    if not ts:
        return BLANK_TS
    zone = _zone(tz or settings.ALARM_TIMEZONE)
    try:
        return datetime.fromtimestamp(ts / 1000, tz=zone).strftime(TS_FORMAT)[:19]
    except (ValueError, OverflowError, OSError):
        logger.warning("Timestamp %r out of renderable range", ts)
        return INVALID_TS


def now_ms() -> int:
    return int(time.time() * 1000)
