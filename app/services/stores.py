"""
Store interfaces consumed by the notification generator, with SQLAlchemy-backed
implementations. Each store is bound to one AsyncSession; writes are committed
immediately so a failed insert never leaks into the next one.
"""
from datetime import datetime
from typing import Callable, List, Optional, Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.models import Book, BookIssue, Notification

Clock = Callable[[], datetime]


class IssueStore(Protocol):
    async def get_student_issues(self, student_id: int) -> List[BookIssue]: ...


class BookStore(Protocol):
    async def get_all_books(self, institution_id: int) -> List[Book]: ...


class NotificationStore(Protocol):
    async def get_user_notifications(self, user_id: int, role: str, institution_id: int) -> List[Notification]: ...

    async def create_overdue_notification(self, user_id: int, book_title: str, institution_id: int) -> Notification: ...

    async def create_due_soon_notification(
            self, user_id: int, book_title: str, days_until_due: int, institution_id: int
    ) -> Notification: ...

    async def mark_as_read(self, notification_id: int) -> None: ...


class SqlIssueStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_student_issues(self, student_id: int) -> List[BookIssue]:
        stmt = (
            select(BookIssue)
            .where(BookIssue.student_id == student_id)
            .order_by(BookIssue.issue_date.desc(), BookIssue.id.desc())
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())


class SqlBookStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_all_books(self, institution_id: int) -> List[Book]:
        stmt = select(Book).where(Book.institution_id == institution_id).order_by(Book.title)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())


class SqlNotificationStore:
    def __init__(self, db: AsyncSession, clock: Clock = datetime.now):
        self.db = db
        self.clock = clock

    async def get_user_notifications(self, user_id: int, role: str, institution_id: int) -> List[Notification]:
        stmt = (
            select(Notification)
            .where(
                Notification.user_id == user_id,
                Notification.role == role,
                Notification.institution_id == institution_id,
            )
            .order_by(Notification.created_at.desc(), Notification.id.desc())
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def create_notification(
            self,
            user_id: int,
            role: str,
            institution_id: int,
            type: str,
            title: str,
            message: str,
    ) -> Notification:
        notification = Notification(
            user_id=user_id,
            role=role,
            institution_id=institution_id,
            type=type,
            title=title,
            message=message,
            is_read=False,
            created_at=self.clock(),
        )
        self.db.add(notification)
        try:
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        await self.db.refresh(notification)
        return notification

    async def create_overdue_notification(self, user_id: int, book_title: str, institution_id: int) -> Notification:
        return await self.create_notification(
            user_id=user_id,
            role="student",
            institution_id=institution_id,
            type="overdue",
            title="Book Overdue",
            message=f'Your book "{book_title}" is overdue. Please return it immediately to avoid fines.',
        )

    async def create_due_soon_notification(
            self, user_id: int, book_title: str, days_until_due: int, institution_id: int
    ) -> Notification:
        return await self.create_notification(
            user_id=user_id,
            role="student",
            institution_id=institution_id,
            type="due_soon",
            title="Book Due Soon",
            message=f'Your book "{book_title}" is due in {days_until_due} days. Please return it on time.',
        )

    async def create_returned_notification(
            self, user_id: int, book_title: str, fine: float, institution_id: int
    ) -> Notification:
        message = f'Your book "{book_title}" has been returned.'
        if fine > 0:
            message += f" A fine of {fine:.2f} was applied."
        return await self.create_notification(
            user_id=user_id,
            role="student",
            institution_id=institution_id,
            type="returned",
            title="Book Returned",
            message=message,
        )

    async def get_notification(self, notification_id: int) -> Optional[Notification]:
        return await self.db.get(Notification, notification_id)

    async def mark_as_read(self, notification_id: int) -> None:
        notification = await self.db.get(Notification, notification_id)
        if notification is None:
            return
        notification.is_read = True
        await self.db.commit()


def get_clock() -> Clock:
    """FastAPI dependency; overridden in tests to simulate other days."""
    return datetime.now
