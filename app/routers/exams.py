# app/routers/exams.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .. import crud, models, schemas, security
from ..database import get_db

router = APIRouter(
    tags=["Exams"],
    dependencies=[Depends(security.get_current_user)],
    responses={404: {"description": "Not found"}},
)


@router.get("/exams", response_model=List[schemas.ExamResponse])
def read_exams(
    skip: int = Query(0, ge=0),
    limit: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
):
    return crud.get_exams(db, skip=skip, limit=limit)


@router.get("/exams/{id}", response_model=schemas.ExamResponse)
def read_exam(id: str, db: Session = Depends(get_db)):
    return crud.get_exam(db, id)


@router.post("/exams", response_model=schemas.ExamResponse)
def create_exam(
    exam: schemas.ExamCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.require_staff),
):
    return crud.create_exam(db, exam, actor=current_user)


@router.put("/exams/{id}", response_model=schemas.ExamResponse)
@router.put("/exams", response_model=schemas.ExamResponse, include_in_schema=False)
def update_exam(
    id: str,
    exam_update: schemas.ExamUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.require_staff),
):
    """
    Update an exam. A ``subExams`` list replaces the exam's sub-exams.
    """
    return crud.update_exam(db, id, exam_update, actor=current_user)


@router.delete("/exams/{id}", response_model=schemas.MessageResponse)
@router.delete("/exams", response_model=schemas.MessageResponse, include_in_schema=False)
def delete_exam(
    id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.require_admin),
):
    crud.delete_exam(db, id, actor=current_user)
    return {"message": "Exam deleted successfully"}
