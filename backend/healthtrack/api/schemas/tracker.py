"""Schemas for weight, goal, settings and stats endpoints."""
from __future__ import annotations

from datetime import date, datetime, time
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class WeightEntryRequest(BaseModel):
    weight: float = Field(..., gt=0)
    date: date
    notes: Optional[str] = Field(default=None, max_length=1000)


class WeightEntryView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    weight: float
    date: date
    notes: Optional[str]
    created_at: Optional[datetime]


class WeightGoalRequest(BaseModel):
    target_weight: float = Field(..., gt=0)
    start_weight: Optional[float] = Field(default=None, gt=0)
    target_date: Optional[date] = None


class WeightGoalView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    target_weight: float
    start_weight: Optional[float]
    target_date: Optional[date]
    created_at: Optional[datetime]


class SleepGoalRequest(BaseModel):
    target_hours: float = Field(..., gt=0, le=24)
    target_bedtime: Optional[time] = None
    target_wake_time: Optional[time] = None


class SleepGoalView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    target_hours: float
    target_bedtime: Optional[time]
    target_wake_time: Optional[time]
    created_at: Optional[datetime]


class UserSettingsRequest(BaseModel):
    weight_unit: Literal["lbs", "kg"] = "lbs"
    height_unit: Literal["inches", "cm"] = "inches"
    user_height: Optional[float] = Field(default=None, gt=0)


class UserSettingsView(BaseModel):
    weight_unit: str
    height_unit: str
    user_height: Optional[float]


class StatsResponse(BaseModel):
    settings: UserSettingsView
    current_weight: Optional[float]
    bmi: Optional[float]
    goal: Optional[WeightGoalView]
    progress: Optional[float]
