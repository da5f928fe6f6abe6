# app/routers/users.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .. import crud, models, schemas, security
from ..database import get_db

router = APIRouter(
    tags=["Users"],
    dependencies=[Depends(security.require_admin)],
    responses={404: {"description": "Not found"}},
)


@router.get("/users", response_model=List[schemas.UserResponse])
def read_users(
    role: Optional[models.UserRole] = None,
    skip: int = Query(0, ge=0),
    limit: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
):
    return crud.get_users(db, skip=skip, limit=limit, role=role)


@router.get("/users/{id}", response_model=schemas.UserResponse)
def read_user(id: str, db: Session = Depends(get_db)):
    return crud.get_user(db, id)


@router.post("/users", response_model=schemas.UserResponse)
def create_user(
    user: schemas.UserCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.get_current_user),
):
    """
    Create a new user (ADMIN only). Users without a password cannot log in.
    """
    return crud.create_user(db, user, actor=current_user)


@router.put("/users/{id}", response_model=schemas.UserResponse)
@router.put("/users", response_model=schemas.UserResponse, include_in_schema=False)
def update_user(
    id: str,
    user_update: schemas.UserUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.get_current_user),
):
    return crud.update_user(db, id, user_update, actor=current_user)


@router.delete("/users/{id}", response_model=schemas.MessageResponse)
@router.delete("/users", response_model=schemas.MessageResponse, include_in_schema=False)
def delete_user(
    id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.get_current_user),
):
    crud.delete_user(db, id, actor=current_user)
    return {"message": "User deleted successfully"}
