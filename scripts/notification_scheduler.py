# file: scripts/notification_scheduler.py

import asyncio
import logging
import os
import sys
from datetime import datetime

from sqlalchemy import select

# Add the project root to the Python path to allow absolute imports from the 'app' package
# when this file is run as a standalone script.
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
from app.config import LOG_LEVEL, SCHEDULER_INTERVAL_SECONDS
from app.database.connection import get_db_session
from app.database.models import BookIssue, Student
from app.services.notification_generator import NotificationGenerator
from app.services.stores import SqlBookStore, SqlIssueStore, SqlNotificationStore

logger = logging.getLogger("notification_scheduler")


async def students_with_open_issues(session_factory=get_db_session):
    """(student_id, institution_id) pairs for active students who still hold a book."""
    async with session_factory() as db:
        stmt = (
            select(Student.id, Student.institution_id)
            .join(BookIssue, BookIssue.student_id == Student.id)
            .where(Student.is_active == True, BookIssue.status != "returned")
            .distinct()
        )
        result = await db.execute(stmt)
        return [tuple(row) for row in result.all()]


async def run_notification_cycle(session_factory=get_db_session, clock=datetime.now):
    """Runs the overdue / due-soon generator once for every student with an open issue."""
    students = await students_with_open_issues(session_factory)
    if not students:
        logger.info("No open issues; nothing to notify.")
        return {}

    logger.info("Checking %d students for overdue and due-soon books", len(students))
    summary = {}
    for student_id, institution_id in students:
        async with session_factory() as db:
            issues = await SqlIssueStore(db).get_student_issues(student_id)
            books = await SqlBookStore(db).get_all_books(institution_id)
            generator = NotificationGenerator(SqlNotificationStore(db, clock), clock)
            result = await generator.generate(issues, books, student_id, institution_id)
        summary[student_id] = result
        if result.status != "ok":
            logger.warning("Generation for student %s finished with status %s", student_id, result.status)
    return summary


async def main_scheduler_loop():
    """The main event loop for the scheduler daemon."""
    while True:
        try:
            await run_notification_cycle()
        except Exception:
            logger.exception("An error occurred in the scheduler loop")
        logger.info("Cycle finished. Waiting %s seconds.", SCHEDULER_INTERVAL_SECONDS)
        await asyncio.sleep(SCHEDULER_INTERVAL_SECONDS)


if __name__ == "__main__":
    logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    logger.info("Starting notification scheduler...")
    asyncio.run(main_scheduler_loop())
