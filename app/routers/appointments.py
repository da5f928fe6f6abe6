# app/routers/appointments.py
import datetime as dt
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .. import crud, models, schemas, security
from ..database import get_db

router = APIRouter(
    tags=["Appointments"],
    dependencies=[Depends(security.get_current_user)],
    responses={404: {"description": "Not found"}},
)


@router.get("/appointments", response_model=List[schemas.AppointmentResponse])
def read_appointments(
    patient_id: Optional[str] = Query(None, alias="patientId"),
    doctor_id: Optional[str] = Query(None, alias="doctorId"),
    date: Optional[dt.date] = None,
    skip: int = Query(0, ge=0),
    limit: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
):
    """
    Retrieve appointments, optionally for one patient, doctor or day.
    """
    return crud.get_appointments(db, patient_id=patient_id, doctor_id=doctor_id, on_date=date, skip=skip, limit=limit)


@router.get("/appointments/{id}", response_model=schemas.AppointmentResponse)
def read_appointment(id: str, db: Session = Depends(get_db)):
    return crud.get_appointment(db, id)


@router.post("/appointments", response_model=schemas.AppointmentResponse)
def create_appointment(
    appointment: schemas.AppointmentCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.require_staff),
):
    return crud.create_appointment(db, appointment, actor=current_user)


@router.put("/appointments/{id}", response_model=schemas.AppointmentResponse)
@router.put("/appointments", response_model=schemas.AppointmentResponse, include_in_schema=False)
def update_appointment(
    id: str,
    appointment_update: schemas.AppointmentUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.require_staff),
):
    return crud.update_appointment(db, id, appointment_update, actor=current_user)


@router.delete("/appointments/{id}", response_model=schemas.MessageResponse)
@router.delete("/appointments", response_model=schemas.MessageResponse, include_in_schema=False)
def delete_appointment(
    id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.require_admin),
):
    crud.delete_appointment(db, id, actor=current_user)
    return {"message": "Appointment deleted successfully"}
