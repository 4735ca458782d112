"""Schemas for fasting and sleep session endpoints."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class SessionStartRequest(BaseModel):
    start_time: Optional[datetime] = None
    target_hours: Optional[float] = Field(default=None, gt=0, allow_inf_nan=False, strict=True)


class SessionEndRequest(BaseModel):
    end_time: Optional[datetime] = None
    notes: Optional[str] = Field(default=None, max_length=2000)


class SessionUpdateRequest(BaseModel):
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    target_hours: Optional[float] = Field(default=None, gt=0, allow_inf_nan=False, strict=True)
    notes: Optional[str] = Field(default=None, max_length=2000)


class SessionView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    kind: str
    start_time: datetime
    end_time: Optional[datetime]
    target_hours: Optional[float]
    actual_hours: Optional[float]
    completed: bool
    notes: Optional[str]
    created_at: Optional[datetime]


class SessionEndResponse(BaseModel):
    id: int
    end_time: datetime
    actual_hours: float
    recommendation_id: Optional[int]
    message: str
    request_id: str
