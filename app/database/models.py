from sqlalchemy.orm import DeclarativeBase, relationship
from sqlalchemy import Column, Integer, String, Date, DateTime, Text, Boolean, Float, ForeignKey, UniqueConstraint
from datetime import datetime as dt


# Base class for all models
class Base(DeclarativeBase):
    pass


class Institution(Base):
    """A college library or a private library; both own books, students and issues."""
    __tablename__ = "institutions"
    id = Column(Integer, primary_key=True, index=True)
    kind = Column(String(50), nullable=False, default="institution")  # institution | private_library
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password = Column(Text, nullable=False)
    phone = Column(String(50), nullable=True)
    address = Column(Text, nullable=True)
    website = Column(String(255), nullable=True)
    college_code = Column(String(50), nullable=True)
    library_code = Column(String(50), unique=True, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=dt.now, nullable=False)

    students = relationship("Student", back_populates="institution", cascade="all, delete-orphan")
    librarians = relationship("Librarian", back_populates="institution", cascade="all, delete-orphan")
    books = relationship("Book", back_populates="institution", cascade="all, delete-orphan")


class Student(Base):
    __tablename__ = "students"
    id = Column(Integer, primary_key=True, index=True)
    institution_id = Column(Integer, ForeignKey("institutions.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    student_id = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password = Column(Text, nullable=False)
    class_name = Column(String(100), nullable=True)
    section = Column(String(50), nullable=True)
    mobile_number = Column(String(50), nullable=True)
    address = Column(Text, nullable=True)
    course = Column(String(255), nullable=True)
    branch = Column(String(255), nullable=True)
    join_date = Column(Date, default=lambda: dt.now().date(), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    institution = relationship("Institution", back_populates="students")
    issues = relationship("BookIssue", back_populates="student", cascade="all, delete-orphan")
    __table_args__ = (UniqueConstraint('institution_id', 'student_id', name='_institution_student_uc'),)


class Librarian(Base):
    __tablename__ = "librarians"
    id = Column(Integer, primary_key=True, index=True)
    institution_id = Column(Integer, ForeignKey("institutions.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password = Column(Text, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    institution = relationship("Institution", back_populates="librarians")


class Category(Base):
    __tablename__ = "categories"
    id = Column(Integer, primary_key=True, index=True)
    institution_id = Column(Integer, ForeignKey("institutions.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    books = relationship("Book", back_populates="category")
    __table_args__ = (UniqueConstraint('institution_id', 'name', name='_institution_category_uc'),)


class Book(Base):
    __tablename__ = "books"
    id = Column(Integer, primary_key=True, index=True)
    institution_id = Column(Integer, ForeignKey("institutions.id"), nullable=False, index=True)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=True)
    title = Column(String(255), nullable=False)
    author = Column(String(255), nullable=False)
    isbn = Column(String(50), nullable=False)
    publisher = Column(String(255), nullable=True)
    publish_year = Column(Integer, nullable=True)
    total_copies = Column(Integer, default=1, nullable=False)
    available_copies = Column(Integer, default=1, nullable=False)
    description = Column(Text, nullable=True)
    image_url = Column(Text, nullable=True)

    institution = relationship("Institution", back_populates="books")
    category = relationship("Category", back_populates="books", lazy="selectin")
    issues = relationship("BookIssue", back_populates="book")


class BookIssue(Base):
    """A lending record. Only `issued` and `returned` are persisted; overdue is derived from due_date."""
    __tablename__ = "book_issues"
    id = Column(Integer, primary_key=True, index=True)
    book_id = Column(Integer, ForeignKey("books.id"), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey("students.id"), nullable=False, index=True)
    institution_id = Column(Integer, ForeignKey("institutions.id"), nullable=False, index=True)
    issue_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False)
    return_date = Column(Date, nullable=True)
    status = Column(String(20), default="issued", nullable=False, index=True)
    fine = Column(Float, default=0, nullable=False)
    issued_by = Column(String(255), nullable=True)

    book = relationship("Book", back_populates="issues")
    student = relationship("Student", back_populates="issues")


class Notification(Base):
    __tablename__ = "notifications"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    role = Column(String(50), nullable=False)
    institution_id = Column(Integer, ForeignKey("institutions.id"), nullable=False, index=True)
    type = Column(String(50), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=dt.now, nullable=False, index=True)


class AuthSession(Base):
    """Server-side record of a login; deleting the row logs the token out."""
    __tablename__ = "auth_sessions"
    id = Column(String(64), primary_key=True)
    role = Column(String(50), nullable=False)
    user_id = Column(Integer, nullable=True)
    institution_id = Column(Integer, nullable=True)
    email = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=dt.now, nullable=False)


class PasswordReset(Base):
    """A one-time password reset token for any stored account, keyed by email."""
    __tablename__ = "password_resets"
    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), nullable=False, index=True)
    token_hash = Column(Text, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    used = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=dt.now, nullable=False)
