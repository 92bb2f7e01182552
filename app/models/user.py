from pydantic import BaseModel, EmailStr, Field, field_validator, ConfigDict
from typing import Annotated, Literal, Optional, Union
from datetime import date, datetime


Role = Literal["institution", "private_library", "student", "librarian", "admin"]


# --- Principals: one concrete shape per role, selected by the `role` tag ---

class InstitutionPrincipal(BaseModel):
    role: Literal["institution"] = "institution"
    id: int
    name: str
    email: EmailStr
    college_code: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class PrivateLibraryPrincipal(BaseModel):
    role: Literal["private_library"] = "private_library"
    id: int
    name: str
    email: EmailStr
    library_code: str

    model_config = ConfigDict(from_attributes=True)


class StudentPrincipal(BaseModel):
    role: Literal["student"] = "student"
    id: int
    name: str
    email: EmailStr
    student_id: str
    institution_id: int
    class_name: Optional[str] = None
    section: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class LibrarianPrincipal(BaseModel):
    role: Literal["librarian"] = "librarian"
    id: int
    name: str
    email: EmailStr
    institution_id: int

    model_config = ConfigDict(from_attributes=True)


class AdminPrincipal(BaseModel):
    role: Literal["admin"] = "admin"
    email: EmailStr
    name: str = "Admin"


Principal = Annotated[
    Union[InstitutionPrincipal, PrivateLibraryPrincipal, StudentPrincipal, LibrarianPrincipal, AdminPrincipal],
    Field(discriminator="role"),
]


class Session(BaseModel):
    """The authenticated context handed to every operation."""
    session_id: str
    principal: Principal
    institution_id: Optional[int] = None
    created_at: datetime

    @property
    def role(self) -> str:
        return self.principal.role

    @property
    def user_id(self) -> Optional[int]:
        # The admin is configured, not stored, so it has no account id.
        if self.principal.role == "admin":
            return None
        return self.principal.id


class Token(BaseModel):
    access_token: str
    token_type: str
    session: Session


# --- Registration / management payloads ---

class InstitutionCreate(BaseModel):
    name: str
    email: EmailStr
    password: str
    phone: str
    address: Optional[str] = None
    website: Optional[str] = None
    college_code: Optional[str] = None

    @field_validator('name')
    def validate_name(cls, v):
        if not v.strip():
            raise ValueError('Name cannot be empty')
        return v.strip()

    @field_validator('password')
    def validate_password(cls, v):
        if len(v) < 6:
            raise ValueError('Password must be at least 6 characters long')
        return v


class PrivateLibraryCreate(InstitutionCreate):
    pass


class InstitutionResponse(BaseModel):
    id: int
    kind: str
    name: str
    email: EmailStr
    phone: Optional[str] = None
    address: Optional[str] = None
    website: Optional[str] = None
    college_code: Optional[str] = None
    library_code: Optional[str] = None
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class StudentCreate(BaseModel):
    name: str
    student_id: str
    email: EmailStr
    password: str
    class_name: Optional[str] = None
    section: Optional[str] = None
    mobile_number: Optional[str] = None
    address: Optional[str] = None
    course: Optional[str] = None
    branch: Optional[str] = None

    @field_validator('name', 'student_id')
    def validate_not_blank(cls, v):
        if not v.strip():
            raise ValueError('Field cannot be empty')
        return v.strip()

    @field_validator('password')
    def validate_password(cls, v):
        if len(v) < 6:
            raise ValueError('Password must be at least 6 characters long')
        return v


class StudentResponse(BaseModel):
    id: int
    institution_id: int
    name: str
    student_id: str
    email: EmailStr
    class_name: Optional[str] = None
    section: Optional[str] = None
    mobile_number: Optional[str] = None
    course: Optional[str] = None
    branch: Optional[str] = None
    join_date: date
    is_active: bool
    institution_name: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class StudentUpdate(BaseModel):
    name: Optional[str] = None
    class_name: Optional[str] = None
    section: Optional[str] = None
    mobile_number: Optional[str] = None
    address: Optional[str] = None
    course: Optional[str] = None
    branch: Optional[str] = None
    is_active: Optional[bool] = None

    @field_validator('name')
    def validate_not_blank(cls, v):
        if v is not None and not v.strip():
            raise ValueError('Field cannot be empty')
        return v.strip() if v is not None else v


class InstitutionUpdate(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    website: Optional[str] = None
    college_code: Optional[str] = None
    is_active: Optional[bool] = None

    @field_validator('name')
    def validate_name(cls, v):
        if v is not None and not v.strip():
            raise ValueError('Name cannot be empty')
        return v.strip() if v is not None else v


# --- Password reset ---

class PasswordResetRequest(BaseModel):
    email: EmailStr


class PasswordResetConfirm(BaseModel):
    email: EmailStr
    token: str
    new_password: str

    @field_validator('new_password')
    def validate_password(cls, v):
        if len(v) < 6:
            raise ValueError('Password must be at least 6 characters long')
        return v
