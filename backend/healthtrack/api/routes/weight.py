"""Weight entry API routes."""
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy import desc
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from healthtrack.api.schemas.tracker import WeightEntryRequest, WeightEntryView
from healthtrack.core.errors import NotFoundError, StorageError
from healthtrack.db.deps import get_db
from healthtrack.db.models.weight_entry import WeightEntry
from healthtrack.observability.metrics import log_metric
from healthtrack.observability.tracing import trace

router = APIRouter(prefix="/weight", tags=["weight"])


@router.get("", response_model=List[WeightEntryView])
def list_weight_entries(db: Session = Depends(get_db)) -> List[WeightEntryView]:
    entries = db.query(WeightEntry).order_by(desc(WeightEntry.date), desc(WeightEntry.id)).all()
    return [WeightEntryView.model_validate(entry) for entry in entries]


@router.post("", response_model=WeightEntryView, status_code=status.HTTP_201_CREATED)
def create_weight_entry(
    payload: WeightEntryRequest,
    http_request: Request,
    db: Session = Depends(get_db),
) -> WeightEntryView:
    request_id = getattr(http_request.state, "request_id", None)
    with trace("weight.create", metadata={"date": payload.date.isoformat()}, request_id=request_id):
        entry = WeightEntry(weight=payload.weight, date=payload.date, notes=_clean(payload.notes))
        db.add(entry)
        _commit(db, "Failed to save weight entry")
        db.refresh(entry)

    log_metric("weight.create.success", 1)
    return WeightEntryView.model_validate(entry)


@router.put("/{entry_id}", response_model=WeightEntryView)
def update_weight_entry(
    entry_id: int,
    payload: WeightEntryRequest,
    http_request: Request,
    db: Session = Depends(get_db),
) -> WeightEntryView:
    entry = _get_or_404(db, entry_id)
    request_id = getattr(http_request.state, "request_id", None)
    with trace("weight.update", metadata={"entry_id": entry_id}, request_id=request_id):
        entry.weight = payload.weight
        entry.date = payload.date
        entry.notes = _clean(payload.notes)
        db.add(entry)
        _commit(db, "Failed to update weight entry")
        db.refresh(entry)
    return WeightEntryView.model_validate(entry)


@router.delete("/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_weight_entry(entry_id: int, db: Session = Depends(get_db)) -> Response:
    entry = _get_or_404(db, entry_id)
    db.delete(entry)
    _commit(db, "Failed to delete weight entry")
    log_metric("weight.delete.success", 1)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


def _get_or_404(db: Session, entry_id: int) -> WeightEntry:
    entry = db.get(WeightEntry, entry_id)
    if entry is None:
        raise NotFoundError(f"Weight entry {entry_id} not found")
    return entry


def _clean(notes: str | None) -> str | None:
    if notes is None:
        return None
    return notes.strip() or None


def _commit(db: Session, message: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise StorageError(message) from exc
