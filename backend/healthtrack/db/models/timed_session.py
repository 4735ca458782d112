"""TimedSession ORM model (fasting and sleep sessions)."""
from __future__ import annotations

import enum

from sqlalchemy import Boolean, Column, Float, Index, Integer, String, Text, func, text as sa_text

from healthtrack.db.base import Base
from healthtrack.db.types import UTCDateTime


class SessionKind(str, enum.Enum):
    FASTING = "fasting"
    SLEEP = "sleep"


class TimedSession(Base):
    __tablename__ = "timed_sessions"
    __table_args__ = (
        Index("ix_timed_sessions_kind_start_time", "kind", "start_time"),
        Index("ix_timed_sessions_kind_end_time", "kind", "end_time"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    kind = Column(String(length=20), nullable=False)
    start_time = Column(UTCDateTime, nullable=False)
    # NULL end_time means the session is still open.
    end_time = Column(UTCDateTime, nullable=True)
    target_hours = Column(Float, nullable=True)
    actual_hours = Column(Float, nullable=True)
    completed = Column(Boolean, nullable=False, server_default=sa_text("false"), default=False)
    notes = Column(Text, nullable=True)
    created_at = Column(UTCDateTime, nullable=False, server_default=func.now())

    @property
    def is_open(self) -> bool:
        return self.end_time is None
