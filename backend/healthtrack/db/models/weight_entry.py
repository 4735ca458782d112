"""WeightEntry ORM model."""
from __future__ import annotations

from sqlalchemy import Column, Date, Float, Index, Integer, Text, func

from healthtrack.db.base import Base
from healthtrack.db.types import UTCDateTime


class WeightEntry(Base):
    __tablename__ = "weight_entries"
    __table_args__ = (Index("ix_weight_entries_date", "date"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    weight = Column(Float, nullable=False)
    date = Column(Date, nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(UTCDateTime, nullable=False, server_default=func.now())
