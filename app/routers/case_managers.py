# app/routers/case_managers.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .. import crud, models, schemas, security
from ..database import get_db

router = APIRouter(
    tags=["Case Managers"],
    dependencies=[Depends(security.get_current_user)],
    responses={404: {"description": "Not found"}},
)


@router.get("/case-managers", response_model=List[schemas.CaseManagerResponse])
def read_case_managers(
    attorney_id: Optional[str] = Query(None, alias="attorneyId"),
    skip: int = Query(0, ge=0),
    limit: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
):
    return crud.get_case_managers(db, attorney_id=attorney_id, skip=skip, limit=limit)


@router.get("/case-managers/{id}", response_model=schemas.CaseManagerResponse)
def read_case_manager(id: str, db: Session = Depends(get_db)):
    return crud.get_case_manager(db, id)


@router.post("/case-managers", response_model=schemas.CaseManagerResponse)
def create_case_manager(
    case_manager: schemas.CaseManagerCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.get_current_user),
):
    owner_id = crud.get_attorney_owner_id(db, case_manager.attorney_id, field_name="attorneyId")
    security.ensure_owner_or_admin(current_user, owner_id)
    return crud.create_case_manager(db, case_manager, actor=current_user)


@router.put("/case-managers/{id}", response_model=schemas.CaseManagerResponse)
@router.put("/case-managers", response_model=schemas.CaseManagerResponse, include_in_schema=False)
def update_case_manager(
    id: str,
    case_manager_update: schemas.CaseManagerUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.get_current_user),
):
    db_manager = crud.get_case_manager(db, id)
    security.ensure_owner_or_admin(current_user, crud.get_attorney_owner_id(db, db_manager.attorney_id))
    return crud.update_case_manager(db, id, case_manager_update, actor=current_user)


@router.delete("/case-managers/{id}", response_model=schemas.MessageResponse)
@router.delete("/case-managers", response_model=schemas.MessageResponse, include_in_schema=False)
def delete_case_manager(
    id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.get_current_user),
):
    db_manager = crud.get_case_manager(db, id)
    security.ensure_owner_or_admin(current_user, crud.get_attorney_owner_id(db, db_manager.attorney_id))
    crud.delete_case_manager(db, id, actor=current_user)
    return {"message": "Case manager deleted successfully"}
