from pydantic import BaseModel, ConfigDict, field_validator, model_validator
from typing import Optional


class CategoryCreate(BaseModel):
    name: str
    description: Optional[str] = None

    @field_validator('name')
    def validate_name(cls, v):
        if not v.strip():
            raise ValueError('Category name cannot be empty')
        return v.strip()


class CategoryUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None

    @field_validator('name')
    def validate_name(cls, v):
        if v is not None and not v.strip():
            raise ValueError('Category name cannot be empty')
        return v.strip() if v is not None else v


class CategoryResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    book_count: int = 0


class BookBase(BaseModel):
    title: str
    author: str
    isbn: str
    category_id: Optional[int] = None
    publisher: Optional[str] = None
    publish_year: Optional[int] = None
    description: Optional[str] = None
    image_url: Optional[str] = None


class BookCreate(BookBase):
    total_copies: int = 1

    @field_validator('title', 'author')
    def validate_not_blank(cls, v):
        if not v.strip():
            raise ValueError('Field cannot be empty')
        return v.strip()

    @field_validator('total_copies')
    def validate_copies(cls, v):
        if v < 1:
            raise ValueError('A book needs at least one copy')
        return v


class BookUpdate(BaseModel):
    title: Optional[str] = None
    author: Optional[str] = None
    isbn: Optional[str] = None
    category_id: Optional[int] = None
    publisher: Optional[str] = None
    publish_year: Optional[int] = None
    total_copies: Optional[int] = None
    description: Optional[str] = None
    image_url: Optional[str] = None

    @field_validator('title', 'author')
    def validate_not_blank(cls, v):
        if v is not None and not v.strip():
            raise ValueError('Field cannot be empty')
        return v.strip() if v is not None else v

    @field_validator('total_copies')
    def validate_copies(cls, v):
        if v is not None and v < 1:
            raise ValueError('A book needs at least one copy')
        return v


class BookResponse(BookBase):
    id: int
    institution_id: int
    total_copies: int
    available_copies: int
    category: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

    @model_validator(mode="before")
    @classmethod
    def flatten_category(cls, data):
        # ORM rows carry a Category relationship; expose only its name.
        category = getattr(data, "category", None)
        if category is not None and not isinstance(category, str):
            return {
                **{k: getattr(data, k, None) for k in cls.model_fields if k != "category"},
                "category": category.name,
            }
        return data
