import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.controllers.issues import to_response
from app.database.connection import get_db
from app.database.models import Book, BookIssue, Institution, Student
from app.models.book import BookResponse
from app.models.issue import IssueResponse
from app.models.user import InstitutionResponse, InstitutionUpdate, Session, StudentResponse
from app.services.auth import require_roles
from app.services.due_state import overdue_issues
from app.services.stores import Clock, get_clock

logger = logging.getLogger(__name__)

router = APIRouter()


class AdminStatistics(BaseModel):
    total_institutions: int
    total_private_libraries: int
    total_students: int
    total_books: int
    total_issued_books: int
    total_returned_books: int
    total_overdue_books: int
    institutions: List[InstitutionResponse]
    private_libraries: List[InstitutionResponse]


class AdminBook(BookResponse):
    institution_name: str


class AdminIssue(IssueResponse):
    institution_name: str
    student_code: str


@router.get("/statistics", response_model=AdminStatistics)
async def get_admin_statistics(
        session: Session = Depends(require_roles("admin")),
        db: AsyncSession = Depends(get_db),
        clock: Clock = Depends(get_clock),
):
    libraries = (await db.execute(select(Institution).order_by(Institution.name))).scalars().all()
    institutions = [i for i in libraries if i.kind == "institution"]
    private_libraries = [i for i in libraries if i.kind == "private_library"]

    total_students = (await db.execute(select(func.count(Student.id)))).scalar_one()
    total_books = (await db.execute(select(func.coalesce(func.sum(Book.total_copies), 0)))).scalar_one()

    issues = (await db.execute(select(BookIssue))).scalars().all()
    returned = [i for i in issues if i.status == "returned"]

    return AdminStatistics(
        total_institutions=len(institutions),
        total_private_libraries=len(private_libraries),
        total_students=total_students,
        total_books=total_books,
        total_issued_books=len(issues) - len(returned),
        total_returned_books=len(returned),
        total_overdue_books=len(overdue_issues(issues, clock())),
        institutions=institutions,
        private_libraries=private_libraries,
    )


async def _library_names(db: AsyncSession) -> dict:
    result = await db.execute(select(Institution.id, Institution.name))
    return dict(result.all())


@router.get("/students", response_model=List[StudentResponse])
async def list_all_students(
        session: Session = Depends(require_roles("admin")),
        db: AsyncSession = Depends(get_db),
):
    names = await _library_names(db)
    students = (await db.execute(select(Student).order_by(Student.name))).scalars().all()
    return [
        StudentResponse.model_validate(s).model_copy(update={"institution_name": names.get(s.institution_id)})
        for s in students
    ]


@router.get("/books", response_model=List[AdminBook])
async def list_all_books(
        session: Session = Depends(require_roles("admin")),
        db: AsyncSession = Depends(get_db),
):
    names = await _library_names(db)
    books = (await db.execute(select(Book).order_by(Book.title))).scalars().all()
    return [
        AdminBook(**BookResponse.model_validate(b).model_dump(), institution_name=names.get(b.institution_id, ""))
        for b in books
    ]


@router.get("/issues", response_model=List[AdminIssue])
async def list_all_issues(
        session: Session = Depends(require_roles("admin")),
        db: AsyncSession = Depends(get_db),
):
    names = await _library_names(db)
    stmt = (
        select(BookIssue)
        .options(selectinload(BookIssue.book), selectinload(BookIssue.student))
        .order_by(BookIssue.issue_date.desc(), BookIssue.id.desc())
    )
    issues = (await db.execute(stmt)).scalars().all()
    return [
        AdminIssue(
            **to_response(i).model_dump(),
            institution_name=names.get(i.institution_id, ""),
            student_code=i.student.student_id,
        )
        for i in issues
    ]


@router.put("/institutions/{institution_id}", response_model=InstitutionResponse)
async def update_institution(
        institution_id: int,
        payload: InstitutionUpdate,
        session: Session = Depends(require_roles("admin")),
        db: AsyncSession = Depends(get_db),
):
    """
    Edits an institution or private library. Setting is_active to false blocks
    the library's own login.
    """
    institution = await db.get(Institution, institution_id)
    if institution is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Institution not found")
    updates = {
        key: value for key, value in payload.model_dump(exclude_unset=True).items()
        if value is not None or key not in ("name", "is_active")
    }
    for key, value in updates.items():
        setattr(institution, key, value)
    await db.commit()
    await db.refresh(institution)
    logger.info("Admin updated %s %s", institution.kind, institution.id)
    return institution
