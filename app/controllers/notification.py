# file: app/controllers/notification.py

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from app.database.connection import get_db
from app.models.notification import GenerationResponse, NotificationResponse
from app.models.user import Session
from app.services.auth import get_current_session, require_roles
from app.services.notification_generator import NotificationGenerator, GenerationResult
from app.services.stores import Clock, SqlBookStore, SqlIssueStore, SqlNotificationStore, get_clock

router = APIRouter()


def _recipient(session: Session):
    if session.user_id is None or session.institution_id is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="This account has no notifications")
    return session.user_id, session.role, session.institution_id


def to_generation_response(result: GenerationResult) -> GenerationResponse:
    return GenerationResponse(
        status=result.status,
        created=len(result.created),
        skipped=result.skipped,
        failed=result.failed,
        notifications=[NotificationResponse.model_validate(n) for n in result.notifications],
    )


async def generate_for_student(db: AsyncSession, clock: Clock, student_id: int, institution_id: int):
    """Loads a student's issues and the library's books, then runs the generator once."""
    issues = await SqlIssueStore(db).get_student_issues(student_id)
    books = await SqlBookStore(db).get_all_books(institution_id)
    generator = NotificationGenerator(SqlNotificationStore(db, clock), clock)
    result = await generator.generate(issues, books, student_id, institution_id)
    return issues, books, result


@router.get("/", response_model=List[NotificationResponse])
async def get_user_notifications(
        session: Session = Depends(get_current_session),
        db: AsyncSession = Depends(get_db),
):
    """
    Retrieves all notifications for the current user, most recent first.
    """
    user_id, role, institution_id = _recipient(session)
    return await SqlNotificationStore(db).get_user_notifications(user_id, role, institution_id)


@router.put("/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_as_read(
        notification_id: int,
        session: Session = Depends(get_current_session),
        db: AsyncSession = Depends(get_db),
):
    """
    Marks a specific notification as read.
    """
    user_id, role, institution_id = _recipient(session)
    store = SqlNotificationStore(db)
    notification = await store.get_notification(notification_id)
    if notification is None or notification.user_id != user_id or notification.role != role \
            or notification.institution_id != institution_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")

    await store.mark_as_read(notification_id)
    await db.refresh(notification)
    return notification


@router.post("/generate", response_model=GenerationResponse)
async def generate_notifications(
        session: Session = Depends(require_roles("student")),
        db: AsyncSession = Depends(get_db),
        clock: Clock = Depends(get_clock),
):
    _, _, result = await generate_for_student(db, clock, session.user_id, session.institution_id)
    return to_generation_response(result)
