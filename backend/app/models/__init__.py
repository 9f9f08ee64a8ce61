from models.base import Base, async_session, engine, get_session
from models.data_point import DataPoint
from models.point_value import PointValue
from models.plc_alarm import PlcAlarm

__all__ = [
    "Base",
    "async_session",
    "engine",
    "get_session",
    "DataPoint",
    "PointValue",
    "PlcAlarm",
]
