# app/routers/procedures.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .. import crud, models, schemas, security
from ..database import get_db

router = APIRouter(
    tags=["Procedures"],
    dependencies=[Depends(security.get_current_user)],
    responses={404: {"description": "Not found"}},
)


@router.get("/procedures", response_model=List[schemas.ProcedureResponse])
def read_procedures(
    patient_id: Optional[str] = Query(None, alias="patientId"),
    is_completed: Optional[bool] = Query(None, alias="isCompleted"),
    skip: int = Query(0, ge=0),
    limit: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
):
    return crud.get_procedures(db, patient_id=patient_id, is_completed=is_completed, skip=skip, limit=limit)


@router.get("/procedures/{id}", response_model=schemas.ProcedureResponse)
def read_procedure(id: str, db: Session = Depends(get_db)):
    return crud.get_procedure(db, id)


@router.post("/procedures", response_model=schemas.ProcedureResponse)
def create_procedure(
    procedure: schemas.ProcedureCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.require_staff),
):
    return crud.create_procedure(db, procedure, actor=current_user)


@router.put("/procedures/{id}", response_model=schemas.ProcedureResponse)
@router.put("/procedures", response_model=schemas.ProcedureResponse, include_in_schema=False)
def update_procedure(
    id: str,
    procedure_update: schemas.ProcedureUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.require_staff),
):
    return crud.update_procedure(db, id, procedure_update, actor=current_user)


@router.delete("/procedures/{id}", response_model=schemas.MessageResponse)
@router.delete("/procedures", response_model=schemas.MessageResponse, include_in_schema=False)
def delete_procedure(
    id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.require_admin),
):
    crud.delete_procedure(db, id, actor=current_user)
    return {"message": "Procedure deleted successfully"}
