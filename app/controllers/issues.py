import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.config import DEFAULT_LOAN_DAYS, OVERDUE_FINE
from app.database.connection import get_db
from app.database.models import Book, BookIssue, Institution, Student
from app.models.issue import IssueCreate, IssueResponse, Invoice, ReturnResponse
from app.models.user import Session
from app.services.auth import LIBRARY_STAFF, get_current_session, require_roles
from app.services.due_state import (
    DueState,
    classify_due_state,
    days_overdue,
    default_due_date,
    is_active,
    overdue_issues,
)
from app.services.stores import Clock, SqlNotificationStore, get_clock

logger = logging.getLogger(__name__)

router = APIRouter()


def to_response(issue: BookIssue) -> IssueResponse:
    return IssueResponse.model_validate(issue).model_copy(update={
        "book_title": issue.book.title if issue.book else None,
        "student_name": issue.student.name if issue.student else None,
    })


def _with_parties():
    return select(BookIssue).options(selectinload(BookIssue.book), selectinload(BookIssue.student))


async def _load_issue(db: AsyncSession, issue_id: int) -> BookIssue:
    result = await db.execute(_with_parties().where(BookIssue.id == issue_id))
    issue = result.scalars().first()
    if issue is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Issue not found")
    return issue


def _assert_can_view(issue: BookIssue, session: Session) -> None:
    if session.role == "admin":
        return
    if session.role == "student":
        if issue.student_id != session.user_id:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Issue not found")
        return
    if issue.institution_id != session.institution_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Issue not found")


@router.post("/", response_model=IssueResponse, status_code=status.HTTP_201_CREATED)
async def issue_book(
        payload: IssueCreate,
        session: Session = Depends(require_roles(*LIBRARY_STAFF)),
        db: AsyncSession = Depends(get_db),
        clock: Clock = Depends(get_clock),
):
    institution_id = session.institution_id
    book = await db.get(Book, payload.book_id)
    if book is None or book.institution_id != institution_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Book not found")
    student = await db.get(Student, payload.student_id)
    if student is None or student.institution_id != institution_id or not student.is_active:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Student not found")
    if book.available_copies < 1:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="No copies available")

    today = clock().date()
    due_date = payload.due_date or default_due_date(today, DEFAULT_LOAN_DAYS)
    if due_date < today:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Due date cannot be in the past")

    issue = BookIssue(
        book_id=book.id,
        student_id=student.id,
        institution_id=institution_id,
        issue_date=today,
        due_date=due_date,
        status="issued",
        fine=0,
        issued_by=session.principal.name,
    )
    book.available_copies -= 1
    db.add(issue)
    try:
        await db.commit()
    except Exception:
        await db.rollback()
        logger.exception("Issuing book %s to student %s failed", book.id, student.id)
        raise HTTPException(status_code=500, detail="Could not issue book")

    store = SqlNotificationStore(db, clock)
    try:
        await store.create_notification(
            user_id=student.id,
            role="student",
            institution_id=institution_id,
            type="issued",
            title="Book Issued",
            message=f'"{book.title}" has been issued to you. Please return it by {due_date.isoformat()}.',
        )
    except Exception:
        logger.exception("Could not notify student %s about issue %s", student.id, issue.id)

    logger.info("Issued %r to student %s until %s", book.title, student.id, due_date)
    return to_response(await _load_issue(db, issue.id))


@router.post("/{issue_id}/return", response_model=ReturnResponse)
async def return_book(
        issue_id: int,
        session: Session = Depends(require_roles(*LIBRARY_STAFF)),
        db: AsyncSession = Depends(get_db),
        clock: Clock = Depends(get_clock),
):
    issue = await _load_issue(db, issue_id)
    _assert_can_view(issue, session)
    if not is_active(issue):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Book already returned")

    today = clock().date()
    overdue_days = days_overdue(issue.due_date, today)
    fine = OVERDUE_FINE if classify_due_state(issue.due_date, today) is DueState.OVERDUE else 0.0

    issue.status = "returned"
    issue.return_date = today
    issue.fine = fine
    if issue.book is not None:
        issue.book.available_copies = min(issue.book.total_copies, issue.book.available_copies + 1)
    book_title = issue.book.title if issue.book else "your book"
    student_id, institution_id = issue.student_id, issue.institution_id
    try:
        await db.commit()
    except Exception:
        await db.rollback()
        logger.exception("Returning issue %s failed", issue_id)
        raise HTTPException(status_code=500, detail="Could not return book")

    store = SqlNotificationStore(db, clock)
    try:
        await store.create_returned_notification(student_id, book_title, fine, institution_id)
    except Exception:
        logger.exception("Could not notify student %s about return of issue %s", student_id, issue_id)

    logger.info("Issue %s returned (%s days overdue, fine %.2f)", issue_id, overdue_days, fine)
    issue = await _load_issue(db, issue_id)
    return ReturnResponse(issue=to_response(issue), days_overdue=overdue_days, fine=fine)


@router.get("/", response_model=List[IssueResponse])
async def list_issues(
        status_filter: Optional[str] = None,
        session: Session = Depends(require_roles(*LIBRARY_STAFF)),
        db: AsyncSession = Depends(get_db),
):
    stmt = _with_parties().where(BookIssue.institution_id == session.institution_id)
    if status_filter == "returned":
        stmt = stmt.where(BookIssue.status == "returned")
    elif status_filter == "issued":
        stmt = stmt.where(BookIssue.status != "returned")
    result = await db.execute(stmt.order_by(BookIssue.issue_date.desc(), BookIssue.id.desc()))
    return [to_response(i) for i in result.scalars().all()]


@router.get("/overdue", response_model=List[IssueResponse])
async def list_overdue_issues(
        session: Session = Depends(require_roles(*LIBRARY_STAFF)),
        db: AsyncSession = Depends(get_db),
        clock: Clock = Depends(get_clock),
):
    stmt = _with_parties().where(BookIssue.institution_id == session.institution_id, BookIssue.status != "returned")
    result = await db.execute(stmt.order_by(BookIssue.due_date))
    return [to_response(i) for i in overdue_issues(result.scalars().all(), clock())]


@router.get("/me", response_model=List[IssueResponse])
async def list_my_issues(
        session: Session = Depends(require_roles("student")),
        db: AsyncSession = Depends(get_db),
):
    stmt = _with_parties().where(BookIssue.student_id == session.user_id)
    result = await db.execute(stmt.order_by(BookIssue.issue_date.desc(), BookIssue.id.desc()))
    return [to_response(i) for i in result.scalars().all()]


@router.get("/{issue_id}/invoice", response_model=Invoice)
async def get_invoice(
        issue_id: int,
        session: Session = Depends(get_current_session),
        db: AsyncSession = Depends(get_db),
        clock: Clock = Depends(get_clock),
):
    """
    Invoice data for an issue. Open issues report the fine they would incur if
    returned today.
    """
    issue = await _load_issue(db, issue_id)
    _assert_can_view(issue, session)
    institution = await db.get(Institution, issue.institution_id)

    if is_active(issue):
        on = clock().date()
        fine = OVERDUE_FINE if classify_due_state(issue.due_date, on) is DueState.OVERDUE else 0.0
    else:
        on = issue.return_date or clock().date()
        fine = issue.fine

    return Invoice(
        invoice_number=f"INV-{issue.institution_id:04d}-{issue.id:06d}",
        issue_id=issue.id,
        institution_name=institution.name if institution else "",
        student_name=issue.student.name,
        student_code=issue.student.student_id,
        book_title=issue.book.title,
        book_author=issue.book.author,
        isbn=issue.book.isbn,
        issue_date=issue.issue_date,
        due_date=issue.due_date,
        return_date=issue.return_date,
        status="returned" if not is_active(issue) else "issued",
        days_overdue=days_overdue(issue.due_date, on),
        fine=fine,
    )
