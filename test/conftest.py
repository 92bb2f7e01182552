import os
from datetime import date, datetime, timedelta
from types import SimpleNamespace
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

# --- SETUP: keep the app away from any real database ---
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from main import app
from app.database.connection import get_db
from app.database.models import Base, Book, BookIssue, Institution, Librarian, Student
from app.services.stores import get_clock
from app.utils.security import hash_password

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
PASSWORD = "secret123"
PASSWORD_HASH = hash_password(PASSWORD)


class FakeClock:
    """A settable stand-in for datetime.now."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, days: int = 0, hours: int = 0) -> None:
        self.now += timedelta(days=days, hours=hours)

    @property
    def today(self) -> date:
        return self.now.date()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2025, 3, 10, 9, 30))


@pytest_asyncio.fixture(scope="function")
async def engine():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def library(db_session: AsyncSession, clock: FakeClock) -> SimpleNamespace:
    """One institution with a librarian, two students and three books."""
    institution = Institution(
        kind="institution", name="Riverside College", email="library@riverside.com",
        password=PASSWORD_HASH, phone="555-0100", college_code="RC01",
    )
    db_session.add(institution)
    await db_session.flush()

    librarian = Librarian(institution_id=institution.id, name="Lena Librarian",
                          email="lena@riverside.com", password=PASSWORD_HASH)
    alice = Student(institution_id=institution.id, name="Alice Reader", student_id="S-001",
                    email="alice@riverside.com", password=PASSWORD_HASH, class_name="BSc", section="A")
    bob = Student(institution_id=institution.id, name="Bob Borrower", student_id="S-002",
                  email="bob@riverside.com", password=PASSWORD_HASH)
    dune = Book(institution_id=institution.id, title="Dune", author="Frank Herbert",
                isbn="9780441172719", total_copies=2, available_copies=2)
    clean_code = Book(institution_id=institution.id, title="Clean Code", author="Robert C. Martin",
                      isbn="9780132350884", total_copies=1, available_copies=1)
    sicp = Book(institution_id=institution.id, title="Structure and Interpretation of Computer Programs",
                author="Harold Abelson", isbn="9780262510871", total_copies=1, available_copies=1)
    db_session.add_all([librarian, alice, bob, dune, clean_code, sicp])
    await db_session.commit()

    return SimpleNamespace(
        institution=institution, librarian=librarian, alice=alice, bob=bob,
        dune=dune, clean_code=clean_code, sicp=sicp,
    )


async def add_issue(db: AsyncSession, book: Book, student: Student, due_date: date,
                    status: str = "issued", issue_date: date = None) -> BookIssue:
    issue = BookIssue(
        book_id=book.id, student_id=student.id, institution_id=student.institution_id,
        issue_date=issue_date or due_date - timedelta(days=14), due_date=due_date, status=status,
    )
    db.add(issue)
    await db.commit()
    await db.refresh(issue)
    return issue


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession, clock: FakeClock) -> AsyncGenerator[AsyncClient, None]:
    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


async def login_as(client: AsyncClient, email: str, password: str = PASSWORD) -> str:
    response = await client.post("/auth/login", data={"username": email, "password": password})
    assert response.status_code == 200, response.text
    return response.json()["access_token"]


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}
