# app/routers/attorneys.py
from typing import List, Optional, Union

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .. import crud, models, schemas, security
from ..database import get_db

router = APIRouter(
    tags=["Attorneys"],
    dependencies=[Depends(security.get_current_user)],
    responses={404: {"description": "Not found"}},
)


@router.get("/attorneys", response_model=Union[schemas.AttorneyResponse, List[schemas.AttorneyResponse]])
def read_attorneys(
    id: Optional[str] = None,
    skip: int = Query(0, ge=0),
    limit: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
):
    """
    List attorneys with their user and case managers; ``?id=`` returns one attorney.
    """
    if id:
        return crud.get_attorney(db, id)
    return crud.get_attorneys(db, skip=skip, limit=limit)


@router.get("/attorneys/{id}", response_model=schemas.AttorneyResponse)
def read_attorney(id: str, db: Session = Depends(get_db)):
    return crud.get_attorney(db, id)


@router.post("/attorneys", response_model=schemas.AttorneyResponse)
def create_attorney(
    attorney: schemas.AttorneyCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.require_staff),
):
    """
    Create the attorney's user, profile and case managers in one transaction.
    """
    return crud.create_attorney(db, attorney, actor=current_user)


@router.put("/attorneys/{id}", response_model=schemas.AttorneyResponse)
@router.put("/attorneys", response_model=schemas.AttorneyResponse, include_in_schema=False)
def update_attorney(
    id: str,
    attorney_update: schemas.AttorneyUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.get_current_user),
):
    owner_id = crud.get_attorney_owner_id(db, id)
    security.ensure_owner_or_admin(current_user, owner_id)
    return crud.update_attorney(db, id, attorney_update, actor=current_user)


@router.delete("/attorneys/{id}", response_model=schemas.MessageResponse)
@router.delete("/attorneys", response_model=schemas.MessageResponse, include_in_schema=False)
def delete_attorney(
    id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.get_current_user),
):
    owner_id = crud.get_attorney_owner_id(db, id)
    security.ensure_owner_or_admin(current_user, owner_id)
    crud.delete_attorney(db, id, actor=current_user)
    return {"message": "Attorney deleted successfully"}
