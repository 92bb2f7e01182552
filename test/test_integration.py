import pytest
from datetime import timedelta

from httpx import AsyncClient
from sqlalchemy import select

from app.database.models import Book, Category, Institution, Notification, Student
from conftest import add_issue, bearer, login_as, PASSWORD, PASSWORD_HASH


###############################################################
# Auth & sessions
###############################################################

@pytest.mark.asyncio
async def test_login_resolves_each_role(client: AsyncClient, library):
    for email, role in [
        ("library@riverside.com", "institution"),
        ("alice@riverside.com", "student"),
        ("lena@riverside.com", "librarian"),
    ]:
        response = await client.post("/auth/login", data={"username": email, "password": PASSWORD})
        assert response.status_code == 200, response.text
        session = response.json()["session"]
        assert session["principal"]["role"] == role
        assert session["institution_id"] == library.institution.id


@pytest.mark.asyncio
async def test_student_session_carries_student_fields(client: AsyncClient, library):
    response = await client.post("/auth/login", data={"username": "Alice@Riverside.com", "password": PASSWORD})
    principal = response.json()["session"]["principal"]
    assert principal["student_id"] == "S-001"
    assert principal["class_name"] == "BSc"


@pytest.mark.asyncio
async def test_login_rejects_bad_password(client: AsyncClient, library):
    response = await client.post("/auth/login", data={"username": "alice@riverside.com", "password": "nope"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_admin_login_uses_configured_credentials(client: AsyncClient, mocker):
    mocker.patch("app.services.auth.ADMIN_PASSWORD", "super-secret")
    response = await client.post("/auth/login", data={"username": "admin@example.com", "password": "super-secret"})
    assert response.status_code == 200
    assert response.json()["session"]["principal"]["role"] == "admin"
    assert response.json()["session"]["institution_id"] is None


@pytest.mark.asyncio
async def test_session_restore_and_logout(client: AsyncClient, library):
    token = await login_as(client, "alice@riverside.com")

    me = await client.get("/auth/me", headers=bearer(token))
    assert me.status_code == 200
    assert me.json()["principal"]["email"] == "alice@riverside.com"

    logout = await client.post("/auth/logout", headers=bearer(token))
    assert logout.status_code == 204

    after = await client.get("/auth/me", headers=bearer(token))
    assert after.status_code == 401


@pytest.mark.asyncio
async def test_me_requires_token(client: AsyncClient):
    response = await client.get("/auth/me")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_register_private_library_generates_code(client: AsyncClient):
    payload = {"name": "Corner Books", "email": "corner@books.com", "password": "secret123", "phone": "555-0199"}
    response = await client.post("/auth/register/private-library", json=payload)
    assert response.status_code == 201, response.text
    body = response.json()
    assert body["kind"] == "private_library"
    assert body["library_code"].startswith("LIB")

    duplicate = await client.post("/auth/register/private-library", json=payload)
    assert duplicate.status_code == 400

    token = await login_as(client, "corner@books.com")
    me = await client.get("/auth/me", headers=bearer(token))
    assert me.json()["principal"]["role"] == "private_library"
    assert me.json()["principal"]["library_code"] == body["library_code"]


###############################################################
# Catalogue
###############################################################

@pytest.mark.asyncio
async def test_books_search_and_create(client: AsyncClient, library):
    token = await login_as(client, "lena@riverside.com")

    category = await client.post("/api/books/categories", json={"name": "Sci-Fi"}, headers=bearer(token))
    assert category.status_code == 201

    created = await client.post("/api/books/", headers=bearer(token), json={
        "title": "Neuromancer", "author": "William Gibson", "isbn": "9780441569595",
        "category_id": category.json()["id"], "total_copies": 3,
    })
    assert created.status_code == 201, created.text
    assert created.json()["available_copies"] == 3
    assert created.json()["category"] == "Sci-Fi"

    found = await client.get("/api/books/", params={"q": "herbert"}, headers=bearer(token))
    assert [b["title"] for b in found.json()] == ["Dune"]

    by_category = await client.get("/api/books/", params={"category": "Sci-Fi"}, headers=bearer(token))
    assert [b["title"] for b in by_category.json()] == ["Neuromancer"]

    categories = await client.get("/api/books/categories", headers=bearer(token))
    assert categories.json()[0]["book_count"] == 1


@pytest.mark.asyncio
async def test_student_cannot_add_books(client: AsyncClient, library):
    token = await login_as(client, "alice@riverside.com")
    response = await client.post("/api/books/", headers=bearer(token), json={
        "title": "X", "author": "Y", "isbn": "1",
    })
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_add_student(client: AsyncClient, library):
    token = await login_as(client, "library@riverside.com")
    response = await client.post("/api/students/", headers=bearer(token), json={
        "name": "Carol", "student_id": "S-003", "email": "carol@riverside.com", "password": "secret123",
    })
    assert response.status_code == 201, response.text

    search = await client.get("/api/students/", params={"q": "S-003"}, headers=bearer(token))
    assert [s["name"] for s in search.json()] == ["Carol"]

    await login_as(client, "carol@riverside.com")


###############################################################
# Circulation
###############################################################

@pytest.mark.asyncio
async def test_issue_and_return_on_time(client: AsyncClient, library, db_session, clock):
    token = await login_as(client, "lena@riverside.com")

    issued = await client.post("/api/issues/", headers=bearer(token), json={
        "book_id": library.clean_code.id, "student_id": library.alice.id,
    })
    assert issued.status_code == 201, issued.text
    body = issued.json()
    assert body["status"] == "issued"
    assert body["due_date"] == (clock.today + timedelta(days=14)).isoformat()
    assert body["issued_by"] == "Lena Librarian"
    assert body["book_title"] == "Clean Code"

    no_copies = await client.post("/api/issues/", headers=bearer(token), json={
        "book_id": library.clean_code.id, "student_id": library.bob.id,
    })
    assert no_copies.status_code == 409

    clock.advance(days=5)
    returned = await client.post(f"/api/issues/{body['id']}/return", headers=bearer(token))
    assert returned.status_code == 200, returned.text
    assert returned.json()["fine"] == 0
    assert returned.json()["issue"]["return_date"] == clock.today.isoformat()

    again = await client.post(f"/api/issues/{body['id']}/return", headers=bearer(token))
    assert again.status_code == 409

    book = await db_session.get(Book, library.clean_code.id)
    await db_session.refresh(book)
    assert book.available_copies == 1

    types = (await db_session.execute(select(Notification.type).order_by(Notification.id))).scalars().all()
    assert types == ["issued", "returned"]


@pytest.mark.asyncio
async def test_return_on_due_date_is_fined(client: AsyncClient, library, db_session, clock):
    issue = await add_issue(db_session, library.dune, library.alice, clock.today)
    token = await login_as(client, "library@riverside.com")

    response = await client.post(f"/api/issues/{issue.id}/return", headers=bearer(token))

    assert response.status_code == 200
    assert response.json()["fine"] == 1000
    assert response.json()["days_overdue"] == 0


@pytest.mark.asyncio
async def test_overdue_list_includes_due_today(client: AsyncClient, library, db_session, clock):
    await add_issue(db_session, library.dune, library.alice, clock.today)
    await add_issue(db_session, library.clean_code, library.bob, clock.today - timedelta(days=4))
    await add_issue(db_session, library.sicp, library.bob, clock.today + timedelta(days=1))
    token = await login_as(client, "lena@riverside.com")

    response = await client.get("/api/issues/overdue", headers=bearer(token))

    assert response.status_code == 200
    assert [i["book_title"] for i in response.json()] == ["Clean Code", "Dune"]


@pytest.mark.asyncio
async def test_invoice_for_open_overdue_issue(client: AsyncClient, library, db_session, clock):
    issue = await add_issue(db_session, library.dune, library.alice, clock.today - timedelta(days=3))
    token = await login_as(client, "alice@riverside.com")

    response = await client.get(f"/api/issues/{issue.id}/invoice", headers=bearer(token))

    assert response.status_code == 200, response.text
    invoice = response.json()
    assert invoice["student_code"] == "S-001"
    assert invoice["institution_name"] == "Riverside College"
    assert invoice["days_overdue"] == 3
    assert invoice["fine"] == 1000

    bob_token = await login_as(client, "bob@riverside.com")
    hidden = await client.get(f"/api/issues/{issue.id}/invoice", headers=bearer(bob_token))
    assert hidden.status_code == 404


###############################################################
# Student dashboard & notifications
###############################################################

@pytest.mark.asyncio
async def test_dashboard_generates_notifications_once_per_day(client: AsyncClient, library, db_session, clock):
    await add_issue(db_session, library.dune, library.alice, clock.today - timedelta(days=2))
    await add_issue(db_session, library.clean_code, library.alice, clock.today + timedelta(days=3))
    await add_issue(db_session, library.sicp, library.alice, clock.today + timedelta(days=4))
    token = await login_as(client, "alice@riverside.com")

    first = await client.get("/api/dashboard/student", headers=bearer(token))
    assert first.status_code == 200, first.text
    body = first.json()
    assert body["issued_count"] == 3
    assert body["overdue_count"] == 1
    assert body["due_soon_count"] == 1
    assert [i["book_title"] for i in body["overdue"]] == ["Dune"]
    assert body["generation"]["created"] == 2
    assert body["unread_notifications"] == 2

    second = await client.get("/api/dashboard/student", headers=bearer(token))
    assert second.json()["generation"]["created"] == 0
    assert len(second.json()["generation"]["notifications"]) == 2

    clock.advance(days=1)
    third = await client.get("/api/dashboard/student", headers=bearer(token))
    assert third.json()["generation"]["created"] == 3
    assert len(third.json()["generation"]["notifications"]) == 5


@pytest.mark.asyncio
async def test_dashboard_is_student_only(client: AsyncClient, library):
    token = await login_as(client, "lena@riverside.com")
    response = await client.get("/api/dashboard/student", headers=bearer(token))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_mark_notification_as_read(client: AsyncClient, library, db_session, clock):
    await add_issue(db_session, library.dune, library.alice, clock.today)
    token = await login_as(client, "alice@riverside.com")
    generated = await client.post("/api/notifications/generate", headers=bearer(token))
    assert generated.json()["status"] == "ok"
    notification_id = generated.json()["notifications"][0]["id"]

    bob_token = await login_as(client, "bob@riverside.com")
    forbidden = await client.put(f"/api/notifications/{notification_id}/read", headers=bearer(bob_token))
    assert forbidden.status_code == 404

    response = await client.put(f"/api/notifications/{notification_id}/read", headers=bearer(token))
    assert response.status_code == 200
    assert response.json()["is_read"] is True

    listing = await client.get("/api/notifications/", headers=bearer(token))
    assert [n["is_read"] for n in listing.json()] == [True]


###############################################################
# Admin
###############################################################

@pytest.mark.asyncio
async def test_admin_statistics(client: AsyncClient, library, db_session, clock, mocker):
    await add_issue(db_session, library.dune, library.alice, clock.today - timedelta(days=1))
    await add_issue(db_session, library.clean_code, library.bob, clock.today + timedelta(days=7))
    await add_issue(db_session, library.sicp, library.bob, clock.today - timedelta(days=9), status="returned")
    mocker.patch("app.services.auth.ADMIN_PASSWORD", "super-secret")
    token = await login_as(client, "admin@example.com", "super-secret")

    response = await client.get("/api/admin/statistics", headers=bearer(token))

    assert response.status_code == 200, response.text
    stats = response.json()
    assert stats["total_institutions"] == 1
    assert stats["total_private_libraries"] == 0
    assert stats["total_students"] == 2
    assert stats["total_books"] == 4
    assert stats["total_issued_books"] == 2
    assert stats["total_returned_books"] == 1
    assert stats["total_overdue_books"] == 1

    student_token = await login_as(client, "alice@riverside.com")
    denied = await client.get("/api/admin/statistics", headers=bearer(student_token))
    assert denied.status_code == 403


async def add_other_library(db):
    """A second institution with its own category, book and student."""
    other = Institution(kind="institution", name="Hilltop Academy", email="desk@hilltop.edu",
                        password=PASSWORD_HASH, phone="555-0200")
    db.add(other)
    await db.flush()
    category = Category(institution_id=other.id, name="Secret Other Category")
    book = Book(institution_id=other.id, title="Hilltop Yearbook", author="Staff", isbn="000",
                total_copies=1, available_copies=1)
    student = Student(institution_id=other.id, name="Hana Hill", student_id="H-001",
                      email="hana@hilltop.edu", password=PASSWORD_HASH)
    db.add_all([category, book, student])
    await db.commit()
    return other, category, book, student


###############################################################
# Catalogue maintenance
###############################################################

@pytest.mark.asyncio
async def test_update_book_keeps_copies_on_loan(client: AsyncClient, library):
    token = await login_as(client, "lena@riverside.com")
    for student in (library.alice, library.bob):
        issued = await client.post("/api/issues/", headers=bearer(token), json={
            "book_id": library.dune.id, "student_id": student.id,
        })
        assert issued.status_code == 201, issued.text

    too_few = await client.put(f"/api/books/{library.dune.id}", headers=bearer(token), json={"total_copies": 1})
    assert too_few.status_code == 409

    grown = await client.put(f"/api/books/{library.dune.id}", headers=bearer(token),
                             json={"total_copies": 3, "title": "Dune (Deluxe)"})
    assert grown.status_code == 200, grown.text
    assert grown.json()["total_copies"] == 3
    assert grown.json()["available_copies"] == 1
    assert grown.json()["title"] == "Dune (Deluxe)"


@pytest.mark.asyncio
async def test_update_book_rejects_blank_title_and_zero_copies(client: AsyncClient, library):
    token = await login_as(client, "lena@riverside.com")
    blank = await client.put(f"/api/books/{library.sicp.id}", headers=bearer(token), json={"title": "   "})
    zero = await client.put(f"/api/books/{library.sicp.id}", headers=bearer(token), json={"total_copies": 0})
    assert blank.status_code == 422
    assert zero.status_code == 422


@pytest.mark.asyncio
async def test_delete_book_never_issued(client: AsyncClient, library):
    token = await login_as(client, "lena@riverside.com")
    response = await client.delete(f"/api/books/{library.sicp.id}", headers=bearer(token))
    assert response.status_code == 204

    listing = await client.get("/api/books/", headers=bearer(token))
    assert [b["title"] for b in listing.json()] == ["Clean Code", "Dune"]


@pytest.mark.asyncio
async def test_delete_book_with_history_is_refused_and_invoice_survives(client: AsyncClient, library, clock):
    token = await login_as(client, "lena@riverside.com")
    issued = await client.post("/api/issues/", headers=bearer(token), json={
        "book_id": library.clean_code.id, "student_id": library.alice.id,
    })
    issue_id = issued.json()["id"]

    on_loan = await client.delete(f"/api/books/{library.clean_code.id}", headers=bearer(token))
    assert on_loan.status_code == 409

    await client.post(f"/api/issues/{issue_id}/return", headers=bearer(token))
    with_history = await client.delete(f"/api/books/{library.clean_code.id}", headers=bearer(token))
    assert with_history.status_code == 409

    invoice = await client.get(f"/api/issues/{issue_id}/invoice", headers=bearer(token))
    assert invoice.status_code == 200, invoice.text
    assert invoice.json()["book_title"] == "Clean Code"
    assert invoice.json()["status"] == "returned"


@pytest.mark.asyncio
async def test_books_cannot_use_another_librarys_category(client: AsyncClient, library, db_session):
    _, foreign_category, _, _ = await add_other_library(db_session)
    token = await login_as(client, "lena@riverside.com")

    created = await client.post("/api/books/", headers=bearer(token), json={
        "title": "Borrowed Label", "author": "Nobody", "isbn": "1", "category_id": foreign_category.id,
    })
    assert created.status_code == 404

    updated = await client.put(f"/api/books/{library.dune.id}", headers=bearer(token),
                               json={"category_id": foreign_category.id})
    assert updated.status_code == 404

    categories = await client.get("/api/books/categories", headers=bearer(token))
    assert categories.json() == []


@pytest.mark.asyncio
async def test_category_counts_filter_rename_and_delete(client: AsyncClient, library):
    token = await login_as(client, "library@riverside.com")
    classics = (await client.post("/api/books/categories", headers=bearer(token), json={"name": "Classics"})).json()
    await client.post("/api/books/categories", headers=bearer(token), json={"name": "Textbooks"})

    filed = await client.put(f"/api/books/{library.dune.id}", headers=bearer(token),
                             json={"category_id": classics["id"]})
    assert filed.json()["category"] == "Classics"

    counts = await client.get("/api/books/categories", headers=bearer(token))
    assert [(c["name"], c["book_count"]) for c in counts.json()] == [("Classics", 1), ("Textbooks", 0)]

    filtered = await client.get("/api/books/", params={"category": "Classics"}, headers=bearer(token))
    assert [b["title"] for b in filtered.json()] == ["Dune"]

    clash = await client.put(f"/api/books/categories/{classics['id']}", headers=bearer(token),
                             json={"name": "Textbooks"})
    assert clash.status_code == 409

    renamed = await client.put(f"/api/books/categories/{classics['id']}", headers=bearer(token),
                               json={"name": "Golden Age"})
    assert renamed.status_code == 200
    assert renamed.json()["book_count"] == 1

    deleted = await client.delete(f"/api/books/categories/{classics['id']}", headers=bearer(token))
    assert deleted.status_code == 204

    books = await client.get("/api/books/", headers=bearer(token))
    dune = next(b for b in books.json() if b["id"] == library.dune.id)
    assert dune["category"] is None
    assert dune["category_id"] is None


###############################################################
# Student management
###############################################################

@pytest.mark.asyncio
async def test_update_student(client: AsyncClient, library):
    token = await login_as(client, "lena@riverside.com")
    response = await client.put(f"/api/students/{library.alice.id}", headers=bearer(token),
                                json={"course": "Physics", "section": "B"})
    assert response.status_code == 200, response.text
    assert response.json()["course"] == "Physics"
    assert response.json()["name"] == "Alice Reader"


@pytest.mark.asyncio
async def test_deactivated_student_loses_access(client: AsyncClient, library, db_session, clock):
    await add_issue(db_session, library.dune, library.alice, clock.today + timedelta(days=5))
    staff = await login_as(client, "lena@riverside.com")
    bob_token = await login_as(client, "bob@riverside.com")

    holding = await client.delete(f"/api/students/{library.alice.id}", headers=bearer(staff))
    assert holding.status_code == 409

    removed = await client.delete(f"/api/students/{library.bob.id}", headers=bearer(staff))
    assert removed.status_code == 204

    assert (await client.get("/auth/me", headers=bearer(bob_token))).status_code == 401
    relogin = await client.post("/auth/login", data={"username": "bob@riverside.com", "password": PASSWORD})
    assert relogin.status_code == 401
    issue = await client.post("/api/issues/", headers=bearer(staff), json={
        "book_id": library.sicp.id, "student_id": library.bob.id,
    })
    assert issue.status_code == 404

    restored = await client.put(f"/api/students/{library.bob.id}", headers=bearer(staff), json={"is_active": True})
    assert restored.json()["is_active"] is True
    await login_as(client, "bob@riverside.com")


@pytest.mark.asyncio
async def test_students_of_another_library_are_out_of_reach(client: AsyncClient, library, db_session):
    _, _, _, hana = await add_other_library(db_session)
    token = await login_as(client, "lena@riverside.com")
    assert (await client.put(f"/api/students/{hana.id}", headers=bearer(token), json={"name": "X"})).status_code == 404
    assert (await client.delete(f"/api/students/{hana.id}", headers=bearer(token))).status_code == 404


###############################################################
# Library dashboard
###############################################################

@pytest.mark.asyncio
async def test_library_dashboard_totals(client: AsyncClient, library, db_session, clock):
    await add_issue(db_session, library.dune, library.alice, clock.today - timedelta(days=1))
    returned = await add_issue(db_session, library.clean_code, library.bob, clock.today - timedelta(days=3),
                               status="returned")
    returned.fine = 1000
    await db_session.commit()
    await add_issue(db_session, library.sicp, library.bob, clock.today + timedelta(days=5))
    token = await login_as(client, "lena@riverside.com")

    response = await client.get("/api/dashboard/library", headers=bearer(token))

    assert response.status_code == 200, response.text
    body = response.json()
    assert body["total_books"] == 4
    assert body["registered_students"] == 2
    assert body["active_students"] == 2
    assert body["issued_books"] == 2
    assert body["returned_books"] == 1
    assert body["overdue_books"] == 1
    assert body["total_issues"] == 3
    assert body["total_fines"] == 2000
    assert [s["name"] for s in body["top_students"]] == ["Bob Borrower", "Alice Reader"]
    assert body["top_students"][0]["issue_count"] == 2
    assert [b["times_issued"] for b in body["top_books"]] == [1, 1, 1]


@pytest.mark.asyncio
async def test_library_dashboard_is_staff_only(client: AsyncClient, library):
    token = await login_as(client, "alice@riverside.com")
    response = await client.get("/api/dashboard/library", headers=bearer(token))
    assert response.status_code == 403


###############################################################
# Password reset
###############################################################

@pytest.mark.asyncio
async def test_password_reset_flow(client: AsyncClient, library, clock, mocker):
    send = mocker.patch("app.controllers.auth.send_reset_link")
    old_token = await login_as(client, "alice@riverside.com")

    unknown = await client.post("/auth/password-reset/request", json={"email": "nobody@riverside.com"})
    assert unknown.status_code == 202
    send.assert_not_called()

    requested = await client.post("/auth/password-reset/request", json={"email": "Alice@Riverside.com"})
    assert requested.status_code == 202
    email, reset_token = send.call_args.args
    assert email == "alice@riverside.com"

    wrong = await client.post("/auth/password-reset/confirm", json={
        "email": "alice@riverside.com", "token": "not-the-token", "new_password": "brand-new-1",
    })
    assert wrong.status_code == 400

    confirmed = await client.post("/auth/password-reset/confirm", json={
        "email": "alice@riverside.com", "token": reset_token, "new_password": "brand-new-1",
    })
    assert confirmed.status_code == 200, confirmed.text

    assert (await client.get("/auth/me", headers=bearer(old_token))).status_code == 401
    stale = await client.post("/auth/login", data={"username": "alice@riverside.com", "password": PASSWORD})
    assert stale.status_code == 401
    await login_as(client, "alice@riverside.com", "brand-new-1")

    reused = await client.post("/auth/password-reset/confirm", json={
        "email": "alice@riverside.com", "token": reset_token, "new_password": "another-one",
    })
    assert reused.status_code == 400


@pytest.mark.asyncio
async def test_password_reset_token_expires(client: AsyncClient, library, clock, mocker):
    send = mocker.patch("app.controllers.auth.send_reset_link")
    await client.post("/auth/password-reset/request", json={"email": "lena@riverside.com"})
    _, reset_token = send.call_args.args

    clock.advance(hours=25)
    response = await client.post("/auth/password-reset/confirm", json={
        "email": "lena@riverside.com", "token": reset_token, "new_password": "brand-new-1",
    })

    assert response.status_code == 400


###############################################################
# Admin listings
###############################################################

@pytest.mark.asyncio
async def test_admin_lists_span_every_library(client: AsyncClient, library, db_session, clock, mocker):
    other, _, _, hana = await add_other_library(db_session)
    await add_issue(db_session, library.dune, library.alice, clock.today)
    mocker.patch("app.services.auth.ADMIN_PASSWORD", "super-secret")
    token = await login_as(client, "admin@example.com", "super-secret")

    students = (await client.get("/api/admin/students", headers=bearer(token))).json()
    assert [(s["name"], s["institution_name"]) for s in students] == [
        ("Alice Reader", "Riverside College"), ("Bob Borrower", "Riverside College"), ("Hana Hill", "Hilltop Academy"),
    ]

    books = (await client.get("/api/admin/books", headers=bearer(token))).json()
    assert len(books) == 4
    assert {b["institution_name"] for b in books} == {"Riverside College", "Hilltop Academy"}

    issues = (await client.get("/api/admin/issues", headers=bearer(token))).json()
    assert [(i["book_title"], i["student_code"], i["institution_name"]) for i in issues] == [
        ("Dune", "S-001", "Riverside College"),
    ]

    staff = await login_as(client, "lena@riverside.com")
    assert (await client.get("/api/admin/students", headers=bearer(staff))).status_code == 403


@pytest.mark.asyncio
async def test_admin_updates_and_deactivates_institution(client: AsyncClient, library, mocker):
    mocker.patch("app.services.auth.ADMIN_PASSWORD", "super-secret")
    token = await login_as(client, "admin@example.com", "super-secret")
    url = f"/api/admin/institutions/{library.institution.id}"

    renamed = await client.put(url, headers=bearer(token), json={"name": "Riverside University", "phone": "555-0111"})
    assert renamed.status_code == 200, renamed.text
    assert renamed.json()["name"] == "Riverside University"

    assert (await client.put(url, headers=bearer(token), json={"name": " "})).status_code == 422
    assert (await client.put("/api/admin/institutions/9999", headers=bearer(token), json={})).status_code == 404

    await client.put(url, headers=bearer(token), json={"is_active": False})
    blocked = await client.post("/auth/login", data={"username": "library@riverside.com", "password": PASSWORD})
    assert blocked.status_code == 401
