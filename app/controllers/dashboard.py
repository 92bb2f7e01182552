from collections import Counter
from typing import List

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.controllers.notification import generate_for_student, to_generation_response
from app.config import OVERDUE_FINE
from app.database.connection import get_db
from app.database.models import BookIssue, Student
from app.models.issue import IssueResponse
from app.models.notification import GenerationResponse
from app.models.user import Session
from app.services.auth import LIBRARY_STAFF, require_roles
from app.services.due_state import due_soon_issues, is_active, overdue_issues
from app.services.stores import Clock, SqlBookStore, SqlIssueStore, get_clock

router = APIRouter()


class StudentDashboard(BaseModel):
    issued_count: int
    overdue_count: int
    due_soon_count: int
    unread_notifications: int
    overdue: List[IssueResponse]
    due_soon: List[IssueResponse]
    generation: GenerationResponse


def _issue_view(issue, titles) -> IssueResponse:
    return IssueResponse.model_validate(issue).model_copy(update={"book_title": titles.get(issue.book_id)})


@router.get("/student", response_model=StudentDashboard)
async def student_dashboard(
        session: Session = Depends(require_roles("student")),
        db: AsyncSession = Depends(get_db),
        clock: Clock = Depends(get_clock),
):
    """
    One dashboard load: fetch issues and books, run notification generation once,
    and return the counts and lists derived from them.
    """
    _, _, result = await generate_for_student(db, clock, session.user_id, session.institution_id)
    generation = to_generation_response(result)

    # Re-read rather than reuse: a failed write during generation expires loaded rows.
    issues = await SqlIssueStore(db).get_student_issues(session.user_id)
    titles = {b.id: b.title for b in await SqlBookStore(db).get_all_books(session.institution_id)}

    today = clock()
    return StudentDashboard(
        issued_count=sum(1 for i in issues if is_active(i)),
        overdue_count=len(overdue_issues(issues, today)),
        due_soon_count=len(due_soon_issues(issues, today)),
        unread_notifications=sum(1 for n in generation.notifications if not n.is_read),
        overdue=[_issue_view(i, titles) for i in overdue_issues(issues, today)],
        due_soon=[_issue_view(i, titles) for i in due_soon_issues(issues, today)],
        generation=generation,
    )


class TopBook(BaseModel):
    book_id: int
    title: str
    author: str
    times_issued: int


class TopStudent(BaseModel):
    student_id: int
    name: str
    student_code: str
    issue_count: int


class LibraryDashboard(BaseModel):
    total_books: int
    available_books: int
    registered_students: int
    active_students: int
    issued_books: int
    returned_books: int
    overdue_books: int
    total_issues: int
    total_fines: float
    top_books: List[TopBook]
    top_students: List[TopStudent]


@router.get("/library", response_model=LibraryDashboard)
async def library_dashboard(
        top: int = 5,
        session: Session = Depends(require_roles(*LIBRARY_STAFF)),
        db: AsyncSession = Depends(get_db),
        clock: Clock = Depends(get_clock),
):
    """
    Catalogue, circulation and fine totals for the caller's library, plus the
    most issued books and the most active students.

    Fines count what returned issues were charged and what open overdue issues
    would be charged if returned today.
    """
    institution_id = session.institution_id
    books = await SqlBookStore(db).get_all_books(institution_id)
    students = (await db.execute(
        select(Student).where(Student.institution_id == institution_id)
    )).scalars().all()
    issues = (await db.execute(
        select(BookIssue).where(BookIssue.institution_id == institution_id)
    )).scalars().all()

    today = clock()
    overdue = overdue_issues(issues, today)
    returned = [i for i in issues if not is_active(i)]

    by_book = Counter(i.book_id for i in issues)
    by_student = Counter(i.student_id for i in issues)
    top_books = sorted(books, key=lambda b: (-by_book[b.id], b.title))[:top]
    top_students = sorted(students, key=lambda s: (-by_student[s.id], s.name))[:top]

    return LibraryDashboard(
        total_books=sum(b.total_copies for b in books),
        available_books=sum(b.available_copies for b in books),
        registered_students=len(students),
        active_students=sum(1 for s in students if s.is_active),
        issued_books=len(issues) - len(returned),
        returned_books=len(returned),
        overdue_books=len(overdue),
        total_issues=len(issues),
        total_fines=sum(i.fine or 0 for i in returned) + OVERDUE_FINE * len(overdue),
        top_books=[
            TopBook(book_id=b.id, title=b.title, author=b.author, times_issued=by_book[b.id]) for b in top_books
        ],
        top_students=[
            TopStudent(student_id=s.id, name=s.name, student_code=s.student_id, issue_count=by_student[s.id])
            for s in top_students
        ],
    )
