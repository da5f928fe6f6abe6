# app/routers/doctors.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .. import crud, models, schemas, security
from ..database import get_db

router = APIRouter(
    tags=["Doctors"],
    dependencies=[Depends(security.get_current_user)],
    responses={404: {"description": "Not found"}},
)


@router.get("/doctors", response_model=List[schemas.DoctorResponse])
def read_doctors(
    skip: int = Query(0, ge=0),
    limit: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
):
    return crud.get_doctors(db, skip=skip, limit=limit)


@router.get("/doctors/{id}", response_model=schemas.DoctorResponse)
def read_doctor(id: str, db: Session = Depends(get_db)):
    return crud.get_doctor(db, id)


@router.post("/doctors", response_model=schemas.DoctorResponse)
def create_doctor(
    doctor: schemas.DoctorCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.require_staff),
):
    return crud.create_doctor(db, doctor, actor=current_user)


@router.put("/doctors/{id}", response_model=schemas.DoctorResponse)
@router.put("/doctors", response_model=schemas.DoctorResponse, include_in_schema=False)
def update_doctor(
    id: str,
    doctor_update: schemas.DoctorUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.require_staff),
):
    return crud.update_doctor(db, id, doctor_update, actor=current_user)


@router.delete("/doctors/{id}", response_model=schemas.MessageResponse)
@router.delete("/doctors", response_model=schemas.MessageResponse, include_in_schema=False)
def delete_doctor(
    id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.require_admin),
):
    crud.delete_doctor(db, id, actor=current_user)
    return {"message": "Doctor deleted successfully"}
