# app/routers/events.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .. import crud, models, schemas, security
from ..database import get_db

router = APIRouter(
    tags=["Events"],
    dependencies=[Depends(security.get_current_user)],
    responses={404: {"description": "Not found"}},
)


@router.get("/events", response_model=List[schemas.EventResponse])
def read_events(
    patient_id: Optional[str] = Query(None, alias="patientId"),
    user_id: Optional[str] = Query(None, alias="userId"),
    entity_type: Optional[str] = Query(None, alias="entityType"),
    skip: int = Query(0, ge=0),
    limit: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
):
    """
    Audit trail, newest first.
    """
    return crud.get_events(db, patient_id=patient_id, user_id=user_id, entity_type=entity_type, skip=skip, limit=limit)


@router.get("/events/{id}", response_model=schemas.EventResponse)
def read_event(id: str, db: Session = Depends(get_db)):
    return crud.get_event(db, id)


@router.post("/events", response_model=schemas.EventResponse)
def create_event(
    event: schemas.EventCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.get_current_user),
):
    """
    Add a manual entry (a note by default) to the audit trail.
    """
    return crud.create_event(db, event, actor=current_user)


@router.put("/events/{id}", response_model=schemas.EventResponse, dependencies=[Depends(security.require_admin)])
@router.put("/events", response_model=schemas.EventResponse, include_in_schema=False, dependencies=[Depends(security.require_admin)])
def update_event(id: str, event_update: schemas.EventUpdate, db: Session = Depends(get_db)):
    return crud.update_event(db, id, event_update)


@router.delete("/events/{id}", response_model=schemas.MessageResponse, dependencies=[Depends(security.require_admin)])
@router.delete("/events", response_model=schemas.MessageResponse, include_in_schema=False, dependencies=[Depends(security.require_admin)])
def delete_event(id: str, db: Session = Depends(get_db)):
    crud.delete_event(db, id)
    return {"message": "Event deleted successfully"}
