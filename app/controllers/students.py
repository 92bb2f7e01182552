import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.connection import get_db
from app.database.models import BookIssue, Student
from app.models.user import Session, StudentCreate, StudentResponse, StudentUpdate
from app.services.auth import LIBRARY_STAFF, close_account_sessions, require_roles
from app.utils.security import hash_password

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/", response_model=List[StudentResponse])
async def list_students(
        q: Optional[str] = None,
        session: Session = Depends(require_roles(*LIBRARY_STAFF)),
        db: AsyncSession = Depends(get_db),
):
    stmt = select(Student).where(Student.institution_id == session.institution_id)
    if q and q.strip():
        term = f"%{q.strip()}%"
        stmt = stmt.where(or_(
            Student.name.ilike(term),
            Student.student_id.ilike(term),
            Student.course.ilike(term),
            Student.branch.ilike(term),
        ))
    result = await db.execute(stmt.order_by(Student.name))
    return result.scalars().all()


@router.post("/", response_model=StudentResponse, status_code=status.HTTP_201_CREATED)
async def create_student(
        payload: StudentCreate,
        session: Session = Depends(require_roles(*LIBRARY_STAFF)),
        db: AsyncSession = Depends(get_db),
):
    email = payload.email.lower()
    duplicate = await db.execute(
        select(Student.id).where(or_(
            Student.email == email,
            (Student.institution_id == session.institution_id) & (Student.student_id == payload.student_id),
        ))
    )
    if duplicate.first():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Student already registered")

    student = Student(
        **payload.model_dump(exclude={"email", "password"}),
        email=email,
        password=hash_password(payload.password),
        institution_id=session.institution_id,
    )
    db.add(student)
    await db.commit()
    await db.refresh(student)
    return student


async def _get_owned_student(db: AsyncSession, student_id: int, institution_id: int) -> Student:
    student = await db.get(Student, student_id)
    if student is None or student.institution_id != institution_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Student not found")
    return student


async def _holds_books(db: AsyncSession, student_id: int) -> bool:
    result = await db.execute(
        select(BookIssue.id).where(BookIssue.student_id == student_id, BookIssue.status != "returned")
    )
    return result.first() is not None


@router.put("/{student_id}", response_model=StudentResponse)
async def update_student(
        student_id: int,
        payload: StudentUpdate,
        session: Session = Depends(require_roles(*LIBRARY_STAFF)),
        db: AsyncSession = Depends(get_db),
):
    student = await _get_owned_student(db, student_id, session.institution_id)
    updates = {
        key: value for key, value in payload.model_dump(exclude_unset=True).items()
        if value is not None or key not in ("name", "is_active")
    }
    for key, value in updates.items():
        setattr(student, key, value)
    if updates.get("is_active") is False:
        await close_account_sessions(db, "student", student.id)
    await db.commit()
    await db.refresh(student)
    return student


@router.delete("/{student_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_student(
        student_id: int,
        session: Session = Depends(require_roles(*LIBRARY_STAFF)),
        db: AsyncSession = Depends(get_db),
):
    """
    Deactivates a student. The row and its issue history stay; the student can
    no longer log in or borrow, and open sessions are closed.
    """
    student = await _get_owned_student(db, student_id, session.institution_id)
    if await _holds_books(db, student.id):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Student still holds borrowed books")
    student.is_active = False
    await close_account_sessions(db, "student", student.id)
    await db.commit()
    logger.info("Deactivated student %s", student.id)
    return
