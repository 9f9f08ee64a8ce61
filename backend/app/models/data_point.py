"""Point registry — static configuration of monitored data points.

plc_alarm_level is assigned at provisioning time (see services.alarm_levels)
and only read by the alarm notifier.
"""
from __future__ import annotations

from sqlalchemy import SmallInteger, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base


class DataPoint(Base):
    __tablename__ = "data_points"

    id: Mapped[int] = mapped_column(primary_key=True)
    xid: Mapped[str] = mapped_column(String(50), unique=True)
    name: Mapped[str] = mapped_column(String(250))
    data_type: Mapped[str | None] = mapped_column(String(45), default=None)  # binary, multistate, numeric...

    # Provisioned copy of the name used in alarm records
    point_name: Mapped[str | None] = mapped_column(String(250), default=None)
    # 0 = not supervised, 1 = state, 2 = alarm
    plc_alarm_level: Mapped[int] = mapped_column(SmallInteger, default=0)

    alarms = relationship(
        "PlcAlarm",
        back_populates="data_point",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    values = relationship(
        "PointValue",
        back_populates="data_point",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<DataPoint {self.xid} level={self.plc_alarm_level}>"
