# app/routers/physicians.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .. import crud, models, schemas, security
from ..database import get_db

router = APIRouter(
    tags=["Physicians"],
    dependencies=[Depends(security.get_current_user)],
    responses={404: {"description": "Not found"}},
)


@router.get("/physicians", response_model=List[schemas.PhysicianResponse])
def read_physicians(
    is_active: Optional[bool] = Query(None, alias="isActive"),
    skip: int = Query(0, ge=0),
    limit: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
):
    return crud.get_physicians(db, is_active=is_active, skip=skip, limit=limit)


@router.get("/physicians/{id}", response_model=schemas.PhysicianResponse)
def read_physician(id: str, db: Session = Depends(get_db)):
    return crud.get_physician(db, id)


@router.post("/physicians", response_model=schemas.PhysicianResponse)
def create_physician(
    physician: schemas.PhysicianCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.require_staff),
):
    return crud.create_physician(db, physician, actor=current_user)


@router.put("/physicians/{id}", response_model=schemas.PhysicianResponse)
@router.put("/physicians", response_model=schemas.PhysicianResponse, include_in_schema=False)
def update_physician(
    id: str,
    physician_update: schemas.PhysicianUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.require_staff),
):
    return crud.update_physician(db, id, physician_update, actor=current_user)


@router.delete("/physicians/{id}", response_model=schemas.MessageResponse)
@router.delete("/physicians", response_model=schemas.MessageResponse, include_in_schema=False)
def delete_physician(
    id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.require_admin),
):
    crud.delete_physician(db, id, actor=current_user)
    return {"message": "Physician deleted successfully"}
