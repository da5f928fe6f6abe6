# app/routers/tasks.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .. import crud, models, schemas, security
from ..database import get_db

router = APIRouter(
    tags=["Tasks"],
    dependencies=[Depends(security.get_current_user)],
    responses={404: {"description": "Not found"}},
)


@router.get("/tasks", response_model=List[schemas.TaskResponse])
def read_tasks(
    assigned_to_id: Optional[str] = Query(None, alias="assignedToId"),
    status: Optional[models.TaskStatus] = None,
    skip: int = Query(0, ge=0),
    limit: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
):
    return crud.get_tasks(db, assigned_to_id=assigned_to_id, status=status, skip=skip, limit=limit)


@router.get("/tasks/{id}", response_model=schemas.TaskResponse)
def read_task(id: str, db: Session = Depends(get_db)):
    return crud.get_task(db, id)


@router.post("/tasks", response_model=schemas.TaskResponse)
def create_task(
    task: schemas.TaskCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.get_current_user),
):
    return crud.create_task(db, task, actor=current_user)


@router.put("/tasks/{id}", response_model=schemas.TaskResponse)
@router.put("/tasks", response_model=schemas.TaskResponse, include_in_schema=False)
def update_task(
    id: str,
    task_update: schemas.TaskUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.get_current_user),
):
    """
    Admins may edit any task; other users only the tasks assigned to them.
    """
    db_task = crud.get_task(db, id)
    security.ensure_owner_or_admin(current_user, db_task.assigned_to_id)
    return crud.update_task(db, id, task_update, actor=current_user)


@router.delete("/tasks/{id}", response_model=schemas.MessageResponse)
@router.delete("/tasks", response_model=schemas.MessageResponse, include_in_schema=False)
def delete_task(
    id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.require_admin),
):
    crud.delete_task(db, id, actor=current_user)
    return {"message": "Task deleted successfully"}
