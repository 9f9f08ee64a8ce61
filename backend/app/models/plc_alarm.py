"""PLC alarm records.

One row per alarm occurrence. inactive_time = 0 marks the open alarm of a
point, acknowledge_time = 0 marks an unacknowledged one. Point xid, name and
level are snapshots taken when the alarm opened.
"""
from __future__ import annotations

from sqlalchemy import BigInteger, ForeignKey, Index, SmallInteger, String, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base


class PlcAlarm(Base):
    __tablename__ = "plc_alarms"

    __table_args__ = (
        # At most one open alarm per point
        Index(
            "uq_plc_alarms_open_point",
            "data_point_id",
            unique=True,
            postgresql_where=text("inactive_time = 0"),
            sqlite_where=text("inactive_time = 0"),
        ),
        Index("ix_plc_alarms_point_inactive", "data_point_id", "inactive_time"),
        Index("ix_plc_alarms_inactive", "inactive_time"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    data_point_id: Mapped[int] = mapped_column(
        ForeignKey("data_points.id", ondelete="CASCADE")
    )
    data_point_xid: Mapped[str | None] = mapped_column(String(50), default=None)
    data_point_name: Mapped[str | None] = mapped_column(String(250), default=None)
    data_point_level: Mapped[int | None] = mapped_column(SmallInteger, default=None)

    active_time: Mapped[int] = mapped_column(BigInteger, default=0)
    inactive_time: Mapped[int] = mapped_column(BigInteger, default=0)
    acknowledge_time: Mapped[int] = mapped_column(BigInteger, default=0)
    level: Mapped[int | None] = mapped_column(SmallInteger, default=None)

    data_point = relationship("DataPoint", back_populates="alarms")

    @property
    def is_open(self) -> bool:
        return self.inactive_time == 0

    def __repr__(self) -> str:
        return (
            f"<PlcAlarm #{self.id} point={self.data_point_id} "
            f"active={self.active_time} inactive={self.inactive_time}>"
        )
