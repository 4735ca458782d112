"""Schemas for recommendation endpoints."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict


class RecommendationView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    session_kind: str
    session_id: int
    status: str
    session_data: Dict[str, Any]
    result: Optional[str]
    error: Optional[str]
    created_at: Optional[datetime]
    started_at: Optional[datetime]
    completed_at: Optional[datetime]
