"""Weight and sleep goal ORM models."""
from __future__ import annotations

from sqlalchemy import Column, Date, Float, Integer, Time, func

from healthtrack.db.base import Base
from healthtrack.db.types import UTCDateTime


class WeightGoal(Base):
    __tablename__ = "goals"

    id = Column(Integer, primary_key=True, autoincrement=True)
    target_weight = Column(Float, nullable=False)
    start_weight = Column(Float, nullable=True)
    target_date = Column(Date, nullable=True)
    created_at = Column(UTCDateTime, nullable=False, server_default=func.now())
    updated_at = Column(
        UTCDateTime,
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )


class SleepGoal(Base):
    __tablename__ = "sleep_goals"

    id = Column(Integer, primary_key=True, autoincrement=True)
    target_hours = Column(Float, nullable=False)
    target_bedtime = Column(Time, nullable=True)
    target_wake_time = Column(Time, nullable=True)
    created_at = Column(UTCDateTime, nullable=False, server_default=func.now())
    updated_at = Column(
        UTCDateTime,
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
