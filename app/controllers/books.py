import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.connection import get_db
from app.database.models import Book, BookIssue, Category
from app.models.book import BookCreate, BookResponse, BookUpdate, CategoryCreate, CategoryResponse, CategoryUpdate
from app.models.user import Session
from app.services.auth import LIBRARY_STAFF, get_current_session, require_roles

logger = logging.getLogger(__name__)

router = APIRouter()


def _institution_of(session: Session) -> int:
    if session.institution_id is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Session is not bound to a library")
    return session.institution_id


async def _get_owned_book(db: AsyncSession, book_id: int, institution_id: int) -> Book:
    book = await db.get(Book, book_id)
    if book is None or book.institution_id != institution_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Book not found")
    return book


async def _get_owned_category(db: AsyncSession, category_id: int, institution_id: int) -> Category:
    category = await db.get(Category, category_id)
    if category is None or category.institution_id != institution_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Category not found")
    return category


@router.get("/categories", response_model=List[CategoryResponse])
async def list_categories(session: Session = Depends(get_current_session), db: AsyncSession = Depends(get_db)):
    institution_id = _institution_of(session)
    stmt = (
        select(Category, func.count(Book.id))
        .outerjoin(Book, Book.category_id == Category.id)
        .where(Category.institution_id == institution_id)
        .group_by(Category.id)
        .order_by(Category.name)
    )
    result = await db.execute(stmt)
    return [
        CategoryResponse(id=c.id, name=c.name, description=c.description, book_count=count)
        for c, count in result.all()
    ]


@router.post("/categories", response_model=CategoryResponse, status_code=status.HTTP_201_CREATED)
async def create_category(
        payload: CategoryCreate,
        session: Session = Depends(require_roles(*LIBRARY_STAFF)),
        db: AsyncSession = Depends(get_db),
):
    institution_id = _institution_of(session)
    existing = await db.execute(
        select(Category).where(Category.institution_id == institution_id, Category.name == payload.name)
    )
    if existing.scalars().first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Category already exists")
    category = Category(institution_id=institution_id, name=payload.name, description=payload.description)
    db.add(category)
    await db.commit()
    await db.refresh(category)
    return CategoryResponse(id=category.id, name=category.name, description=category.description)


@router.put("/categories/{category_id}", response_model=CategoryResponse)
async def update_category(
        category_id: int,
        payload: CategoryUpdate,
        session: Session = Depends(require_roles(*LIBRARY_STAFF)),
        db: AsyncSession = Depends(get_db),
):
    institution_id = _institution_of(session)
    category = await _get_owned_category(db, category_id, institution_id)
    updates = payload.model_dump(exclude_unset=True)
    if updates.get("name") and updates["name"] != category.name:
        clash = await db.execute(
            select(Category.id).where(Category.institution_id == institution_id, Category.name == updates["name"])
        )
        if clash.first():
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Category already exists")
    for key, value in updates.items():
        if value is not None:
            setattr(category, key, value)
    await db.commit()

    book_count = (await db.execute(
        select(func.count(Book.id)).where(Book.category_id == category.id)
    )).scalar_one()
    return CategoryResponse(id=category.id, name=category.name, description=category.description,
                            book_count=book_count)


@router.delete("/categories/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_category(
        category_id: int,
        session: Session = Depends(require_roles(*LIBRARY_STAFF)),
        db: AsyncSession = Depends(get_db),
):
    """
    Deletes a category. Its books stay in the catalogue, uncategorised.
    """
    category = await _get_owned_category(db, category_id, _institution_of(session))
    books = (await db.execute(select(Book).where(Book.category_id == category.id))).scalars().all()
    for book in books:
        book.category_id = None
        book.category = None
    await db.delete(category)
    await db.commit()
    logger.info("Deleted category %s (%d books uncategorised)", category_id, len(books))
    return


@router.get("/", response_model=List[BookResponse])
async def list_books(
        q: Optional[str] = None,
        category: Optional[str] = None,
        session: Session = Depends(get_current_session),
        db: AsyncSession = Depends(get_db),
):
    """
    Lists the library's books, optionally filtered by a title/author/ISBN search
    and by category name.
    """
    institution_id = _institution_of(session)
    stmt = select(Book).where(Book.institution_id == institution_id)
    if q and q.strip():
        term = f"%{q.strip()}%"
        stmt = stmt.where(or_(Book.title.ilike(term), Book.author.ilike(term), Book.isbn.ilike(term)))
    if category and category != "all":
        stmt = stmt.join(Category, Book.category_id == Category.id).where(Category.name == category)
    result = await db.execute(stmt.order_by(Book.title))
    return [BookResponse.model_validate(b) for b in result.scalars().all()]


@router.post("/", response_model=BookResponse, status_code=status.HTTP_201_CREATED)
async def create_book(
        payload: BookCreate,
        session: Session = Depends(require_roles(*LIBRARY_STAFF)),
        db: AsyncSession = Depends(get_db),
):
    institution_id = _institution_of(session)
    if payload.category_id is not None:
        await _get_owned_category(db, payload.category_id, institution_id)
    book = Book(**payload.model_dump(), institution_id=institution_id, available_copies=payload.total_copies)
    db.add(book)
    await db.commit()
    await db.refresh(book)
    logger.info("Added book %r to library %s", book.title, institution_id)
    return BookResponse.model_validate(book)


@router.put("/{book_id}", response_model=BookResponse)
async def update_book(
        book_id: int,
        payload: BookUpdate,
        session: Session = Depends(require_roles(*LIBRARY_STAFF)),
        db: AsyncSession = Depends(get_db),
):
    institution_id = _institution_of(session)
    book = await _get_owned_book(db, book_id, institution_id)
    # category_id may be cleared with null; every other field keeps its value when null.
    updates = {
        key: value for key, value in payload.model_dump(exclude_unset=True).items()
        if value is not None or key == "category_id"
    }
    if updates.get("category_id") is not None:
        await _get_owned_category(db, updates["category_id"], institution_id)
    if "total_copies" in updates:
        on_loan = book.total_copies - book.available_copies
        if updates["total_copies"] < on_loan:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"{on_loan} copies are on loan; total cannot drop below that",
            )
        book.available_copies = updates["total_copies"] - on_loan
    for key, value in updates.items():
        setattr(book, key, value)
    await db.commit()
    await db.refresh(book)
    return BookResponse.model_validate(book)


@router.delete("/{book_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_book(
        book_id: int,
        session: Session = Depends(require_roles(*LIBRARY_STAFF)),
        db: AsyncSession = Depends(get_db),
):
    """
    Deletes a book that has never been issued. Issue history (return dates,
    fines, invoices) keeps referring to its book, so any issue row blocks the delete.
    """
    book = await _get_owned_book(db, book_id, _institution_of(session))
    issues = (await db.execute(
        select(BookIssue.status).where(BookIssue.book_id == book.id)
    )).scalars().all()
    if any(s != "returned" for s in issues):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Book has copies on loan")
    if issues:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Book has issue history and cannot be deleted")
    await db.delete(book)
    await db.commit()
    logger.info("Deleted book %s", book_id)
    return
