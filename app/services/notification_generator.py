"""
Overdue / due-soon notification generation for a single student.

The generator is idempotent within a calendar day: before creating a
notification it looks for one of the same type, created today, whose message
quotes the same book title. A book that stays overdue is re-alerted on each
new day.
"""
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Iterable, List, Mapping, Set, Tuple, Union

from app.services.due_state import (
    DueState,
    as_date,
    classify_due_state,
    days_until_due,
    is_active,
    start_of_day,
)
from app.services.stores import Clock, NotificationStore

logger = logging.getLogger(__name__)

STUDENT_ROLE = "student"


@dataclass
class GenerationResult:
    status: str = "ok"  # ok | partial | aborted
    created: List = field(default_factory=list)
    skipped: int = 0
    failed: int = 0
    notifications: List = field(default_factory=list)


@dataclass(frozen=True)
class _ActiveIssue:
    issue_id: int
    book_id: int
    due_date: date


def _index_books(all_books: Union[Mapping, Iterable]) -> Mapping:
    if isinstance(all_books, Mapping):
        return all_books
    return {book.id: book for book in all_books}


class NotificationGenerator:
    def __init__(self, notifications: NotificationStore, clock: Clock = datetime.now):
        self.notifications = notifications
        self.clock = clock

    async def generate(
            self,
            issues: Iterable,
            all_books: Union[Mapping, Iterable],
            student_id: int,
            institution_id: int,
    ) -> GenerationResult:
        result = GenerationResult()
        now = self.clock()
        today = now.date()
        midnight = start_of_day(now)

        # Snapshot plain values up front: a failed write rolls the session back
        # and expires any ORM rows handed in.
        books = {book_id: book.title for book_id, book in _index_books(all_books).items()}
        active = [
            _ActiveIssue(issue.id, issue.book_id, as_date(issue.due_date))
            for issue in issues
            if is_active(issue)
        ]

        try:
            existing = await self.notifications.get_user_notifications(student_id, STUDENT_ROLE, institution_id)
        except Exception:
            logger.exception(
                "Could not load notifications for student %s; skipping generation to avoid duplicates", student_id
            )
            result.status = "aborted"
            return result

        sent_today: Set[Tuple[str, str]] = {
            (n.type, n.message) for n in existing if n.created_at >= midnight
        }
        result.notifications = list(existing)

        for issue in active:
            title = books.get(issue.book_id)
            if title is None:
                logger.warning("Book %s not found for issue %s; skipping", issue.book_id, issue.issue_id)
                result.skipped += 1
                continue

            state = classify_due_state(issue.due_date, today)
            if state is DueState.NORMAL:
                continue

            # Stored messages quote the title, so "It" does not match "It Ends".
            quoted = f'"{title}"'
            if any(kind == state.value and quoted in message for kind, message in sent_today):
                logger.debug("%s notification for %r already sent today", state.value, title)
                continue

            try:
                if state is DueState.OVERDUE:
                    created = await self.notifications.create_overdue_notification(
                        student_id, title, institution_id
                    )
                else:
                    created = await self.notifications.create_due_soon_notification(
                        student_id, title, days_until_due(issue.due_date, today), institution_id
                    )
            except Exception:
                logger.exception("Failed to create %s notification for %r (issue %s)", state.value, title,
                                 issue.issue_id)
                result.failed += 1
                continue

            logger.info("Created %s notification for student %s: %r", state.value, student_id, title)
            result.created.append(created)
            sent_today.add((state.value, quoted))

        if result.failed:
            result.status = "partial"

        try:
            result.notifications = await self.notifications.get_user_notifications(
                student_id, STUDENT_ROLE, institution_id
            )
        except Exception:
            logger.exception("Could not reload notifications for student %s", student_id)
            result.status = "partial"

        return result
