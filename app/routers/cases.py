# app/routers/cases.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .. import crud, models, schemas, security
from ..database import get_db

router = APIRouter(
    tags=["Cases"],
    dependencies=[Depends(security.get_current_user)],
    responses={404: {"description": "Not found"}},
)


@router.get("/cases", response_model=List[schemas.CaseResponse])
def read_cases(
    patient_id: Optional[str] = Query(None, alias="patientId"),
    skip: int = Query(0, ge=0),
    limit: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
):
    return crud.get_cases(db, patient_id=patient_id, skip=skip, limit=limit)


@router.get("/cases/{id}", response_model=schemas.CaseResponse)
def read_case(id: str, db: Session = Depends(get_db)):
    return crud.get_case(db, id)


@router.post("/cases", response_model=schemas.CaseResponse)
def create_case(
    case: schemas.CaseCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.require_staff),
):
    return crud.create_case(db, case, actor=current_user)


@router.put("/cases/{id}", response_model=schemas.CaseResponse)
@router.put("/cases", response_model=schemas.CaseResponse, include_in_schema=False)
def update_case(
    id: str,
    case_update: schemas.CaseUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.require_staff),
):
    return crud.update_case(db, id, case_update, actor=current_user)


@router.delete("/cases/{id}", response_model=schemas.MessageResponse)
@router.delete("/cases", response_model=schemas.MessageResponse, include_in_schema=False)
def delete_case(
    id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.require_admin),
):
    crud.delete_case(db, id, actor=current_user)
    return {"message": "Case deleted successfully"}
