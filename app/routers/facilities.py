# app/routers/facilities.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .. import crud, models, schemas, security
from ..database import get_db

router = APIRouter(
    tags=["Facilities"],
    dependencies=[Depends(security.get_current_user)],
    responses={404: {"description": "Not found"}},
)


@router.get("/facilities", response_model=List[schemas.FacilityResponse])
def read_facilities(
    skip: int = Query(0, ge=0),
    limit: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
):
    return crud.get_facilities(db, skip=skip, limit=limit)


@router.get("/facilities/{id}", response_model=schemas.FacilityResponse)
def read_facility(id: str, db: Session = Depends(get_db)):
    return crud.get_facility(db, id)


@router.post("/facilities", response_model=schemas.FacilityResponse)
def create_facility(
    facility: schemas.FacilityCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.require_staff),
):
    return crud.create_facility(db, facility, actor=current_user)


@router.put("/facilities/{id}", response_model=schemas.FacilityResponse)
@router.put("/facilities", response_model=schemas.FacilityResponse, include_in_schema=False)
def update_facility(
    id: str,
    facility_update: schemas.FacilityUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.require_staff),
):
    return crud.update_facility(db, id, facility_update, actor=current_user)


@router.delete("/facilities/{id}", response_model=schemas.MessageResponse)
@router.delete("/facilities", response_model=schemas.MessageResponse, include_in_schema=False)
def delete_facility(
    id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.require_admin),
):
    crud.delete_facility(db, id, actor=current_user)
    return {"message": "Facility deleted successfully"}
