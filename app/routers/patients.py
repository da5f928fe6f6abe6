# app/routers/patients.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .. import crud, models, schemas, security
from ..database import get_db

router = APIRouter(
    tags=["Patients"],
    dependencies=[Depends(security.get_current_user)],
    responses={404: {"description": "Not found"}},
)


@router.get("/patients", response_model=List[schemas.PatientResponse])
def read_all_patients(
    search: Optional[str] = None,
    status_id: Optional[str] = Query(None, alias="statusId"),
    payer_id: Optional[str] = Query(None, alias="payerId"),
    skip: int = Query(0, ge=0),
    limit: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
):
    """
    Retrieve patients, newest first. ``search`` matches first or last name.
    """
    return crud.get_patients(db, search=search, status_id=status_id, payer_id=payer_id, skip=skip, limit=limit)


@router.get("/patients/{id}", response_model=schemas.PatientResponse)
def read_patient(id: str, db: Session = Depends(get_db)):
    return crud.get_patient(db, id)


@router.post("/patients", response_model=schemas.PatientResponse)
def create_new_patient(
    patient: schemas.PatientCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.require_staff),
):
    """
    Create a new patient record together with its scheduled procedures.
    """
    return crud.create_patient(db, patient, actor=current_user)


@router.put("/patients/{id}", response_model=schemas.PatientResponse)
@router.put("/patients", response_model=schemas.PatientResponse, include_in_schema=False)
def update_existing_patient(
    id: str,
    patient_update: schemas.PatientUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.require_staff),
):
    """
    Update a patient. When ``procedures`` is sent it replaces the patient's procedure list.
    """
    return crud.update_patient(db, id, patient_update, actor=current_user)


@router.delete("/patients/{id}", response_model=schemas.MessageResponse)
@router.delete("/patients", response_model=schemas.MessageResponse, include_in_schema=False)
def delete_existing_patient(
    id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.require_admin),
):
    crud.delete_patient(db, id, actor=current_user)
    return {"message": "Patient deleted successfully"}
