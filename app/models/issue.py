from pydantic import BaseModel, ConfigDict, field_validator
from typing import Literal, Optional
from datetime import date


class IssueCreate(BaseModel):
    book_id: int
    student_id: int
    due_date: Optional[date] = None


class IssueResponse(BaseModel):
    id: int
    book_id: int
    student_id: int
    institution_id: int
    issue_date: date
    due_date: date
    return_date: Optional[date] = None
    status: Literal["issued", "returned"]
    fine: float = 0
    issued_by: Optional[str] = None
    book_title: Optional[str] = None
    student_name: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

    @field_validator('status', mode='before')
    def normalize_status(cls, v):
        # "overdue" is a derived condition of an active issue, never a stored state.
        if v == "overdue":
            return "issued"
        return v


class ReturnResponse(BaseModel):
    issue: IssueResponse
    days_overdue: int
    fine: float


class Invoice(BaseModel):
    invoice_number: str
    issue_id: int
    institution_name: str
    student_name: str
    student_code: str
    book_title: str
    book_author: str
    isbn: str
    issue_date: date
    due_date: date
    return_date: Optional[date] = None
    status: str
    days_overdue: int
    fine: float
