"""Append-only point value samples (the feed the alarm notifier reacts to)."""
from __future__ import annotations

from sqlalchemy import BigInteger, Float, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base


class PointValue(Base):
    __tablename__ = "point_values"

    __table_args__ = (
        Index("ix_point_values_point_ts", "data_point_id", "ts"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    data_point_id: Mapped[int] = mapped_column(
        ForeignKey("data_points.id", ondelete="CASCADE")
    )
    ts: Mapped[int] = mapped_column(BigInteger)          # epoch millis, event time
    point_value: Mapped[float] = mapped_column(Float)

    data_point = relationship("DataPoint", back_populates="values")
