"""Singleton user settings ORM model."""
from __future__ import annotations

from sqlalchemy import CheckConstraint, Column, Float, Integer, String, func, text as sa_text

from healthtrack.db.base import Base
from healthtrack.db.types import UTCDateTime

SETTINGS_ROW_ID = 1
DEFAULT_WEIGHT_UNIT = "lbs"
DEFAULT_HEIGHT_UNIT = "inches"


class UserSettings(Base):
    __tablename__ = "user_settings"
    __table_args__ = (
        CheckConstraint("weight_unit IN ('lbs', 'kg')", name="ck_user_settings_weight_unit"),
        CheckConstraint("height_unit IN ('inches', 'cm')", name="ck_user_settings_height_unit"),
    )

    id = Column(Integer, primary_key=True, default=SETTINGS_ROW_ID)
    weight_unit = Column(String(length=10), nullable=False, server_default=sa_text("'lbs'"), default=DEFAULT_WEIGHT_UNIT)
    height_unit = Column(String(length=10), nullable=False, server_default=sa_text("'inches'"), default=DEFAULT_HEIGHT_UNIT)
    user_height = Column(Float, nullable=True)
    updated_at = Column(
        UTCDateTime,
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
