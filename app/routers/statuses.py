# app/routers/statuses.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .. import crud, models, schemas, security
from ..database import get_db

router = APIRouter(
    tags=["Statuses"],
    dependencies=[Depends(security.get_current_user)],
    responses={404: {"description": "Not found"}},
)


@router.get("/statuses", response_model=List[schemas.StatusResponse])
def read_statuses(
    skip: int = Query(0, ge=0),
    limit: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
):
    return crud.get_statuses(db, skip=skip, limit=limit)


@router.get("/statuses/{id}", response_model=schemas.StatusResponse)
def read_status(id: str, db: Session = Depends(get_db)):
    return crud.get_status(db, id)


@router.post("/statuses", response_model=schemas.StatusResponse)
def create_status(
    status: schemas.StatusCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.require_staff),
):
    return crud.create_status(db, status, actor=current_user)


@router.put("/statuses/{id}", response_model=schemas.StatusResponse)
@router.put("/statuses", response_model=schemas.StatusResponse, include_in_schema=False)
def update_status(
    id: str,
    status_update: schemas.StatusUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.require_staff),
):
    return crud.update_status(db, id, status_update, actor=current_user)


@router.delete("/statuses/{id}", response_model=schemas.MessageResponse)
@router.delete("/statuses", response_model=schemas.MessageResponse, include_in_schema=False)
def delete_status(
    id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.require_admin),
):
    crud.delete_status(db, id, actor=current_user)
    return {"message": "Status deleted successfully"}
