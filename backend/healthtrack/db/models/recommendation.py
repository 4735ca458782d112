"""RecommendationJob ORM model."""
from __future__ import annotations

import enum

from sqlalchemy import Column, Index, Integer, String, Text, func, text as sa_text

from healthtrack.db.base import Base
from healthtrack.db.types import JSONBCompat, UTCDateTime


class RecommendationStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({RecommendationStatus.COMPLETED.value, RecommendationStatus.FAILED.value})


class RecommendationJob(Base):
    __tablename__ = "recommendations"
    __table_args__ = (
        Index("ix_recommendations_status", "status"),
        Index("ix_recommendations_session", "session_kind", "session_id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    # Weak reference: deleting the session leaves its recommendations in place.
    session_kind = Column(String(length=20), nullable=False)
    session_id = Column(Integer, nullable=False)
    status = Column(String(length=20), nullable=False, server_default=sa_text("'pending'"), default="pending")
    session_data = Column(JSONBCompat, nullable=False, default=dict)
    result = Column(Text, nullable=True)
    error = Column(Text, nullable=True)
    created_at = Column(UTCDateTime, nullable=False, server_default=func.now())
    started_at = Column(UTCDateTime, nullable=True)
    completed_at = Column(UTCDateTime, nullable=True)
