from datetime import date, datetime, timedelta
from enum import Enum
from typing import Iterable, List, Union

from app.config import DUE_SOON_DAYS

DateLike = Union[date, datetime, str]


class DueState(str, Enum):
    OVERDUE = "overdue"
    DUE_SOON = "due_soon"
    NORMAL = "normal"


def as_date(value: DateLike) -> date:
    """Truncate a datetime (or ISO string) to its calendar date."""
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if isinstance(value, datetime):
        return value.date()
    return value


def days_until_due(due_date: DateLike, today: DateLike) -> int:
    return (as_date(due_date) - as_date(today)).days


def classify_due_state(due_date: DateLike, today: DateLike, due_soon_days: int = DUE_SOON_DAYS) -> DueState:
    """
    Overdue includes the due day itself; due-soon covers the next `due_soon_days`
    calendar days; everything later is normal.
    """
    days = days_until_due(due_date, today)
    if days <= 0:
        return DueState.OVERDUE
    if days <= due_soon_days:
        return DueState.DUE_SOON
    return DueState.NORMAL


# Legacy rows may still carry a stored "overdue"; it means the same as "issued".
ACTIVE_STATUSES = ("issued", "overdue")


def is_active(issue) -> bool:
    return issue.status in ACTIVE_STATUSES


def overdue_issues(issues: Iterable, today: DateLike) -> List:
    return [i for i in issues if is_active(i) and classify_due_state(i.due_date, today) is DueState.OVERDUE]


def due_soon_issues(issues: Iterable, today: DateLike) -> List:
    return [i for i in issues if is_active(i) and classify_due_state(i.due_date, today) is DueState.DUE_SOON]


def days_overdue(due_date: DateLike, on: DateLike) -> int:
    return max(0, -days_until_due(due_date, on))


def start_of_day(moment: datetime) -> datetime:
    return datetime.combine(moment.date(), datetime.min.time())


def default_due_date(issue_date: date, loan_days: int) -> date:
    return issue_date + timedelta(days=loan_days)
