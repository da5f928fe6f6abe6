# app/routers/payers.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .. import crud, models, schemas, security
from ..database import get_db

router = APIRouter(
    tags=["Payers"],
    dependencies=[Depends(security.get_current_user)],
    responses={404: {"description": "Not found"}},
)


@router.get("/payers", response_model=List[schemas.PayerResponse])
def read_payers(
    is_active: Optional[bool] = Query(None, alias="isActive"),
    skip: int = Query(0, ge=0),
    limit: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
):
    return crud.get_payers(db, is_active=is_active, skip=skip, limit=limit)


@router.get("/payers/{id}", response_model=schemas.PayerResponse)
def read_payer(id: str, db: Session = Depends(get_db)):
    return crud.get_payer(db, id)


@router.post("/payers", response_model=schemas.PayerResponse)
def create_payer(
    payer: schemas.PayerCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.require_staff),
):
    return crud.create_payer(db, payer, actor=current_user)


@router.put("/payers/{id}", response_model=schemas.PayerResponse)
@router.put("/payers", response_model=schemas.PayerResponse, include_in_schema=False)
def update_payer(
    id: str,
    payer_update: schemas.PayerUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.require_staff),
):
    return crud.update_payer(db, id, payer_update, actor=current_user)


@router.delete("/payers/{id}", response_model=schemas.MessageResponse)
@router.delete("/payers", response_model=schemas.MessageResponse, include_in_schema=False)
def delete_payer(
    id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.require_admin),
):
    """
    Payers still assigned to patients cannot be deleted.
    """
    crud.delete_payer(db, id, actor=current_user)
    return {"message": "Payer deleted successfully"}
