from pydantic import BaseModel
from typing import Optional

class PopularBook(BaseModel):
    book_id: int
    title: Optional[str] = None
    count: int

class DepartmentCount(BaseModel):
    dept_id: str
    name: Optional[str] = None
    count: int

class OverdueSummary(BaseModel):
    count: int
    total_unpaid_fines: float

class DashboardStats(BaseModel):
    total_books: int
    total_students: int
    active_loans: int
    overdue_loans: int

class StudentSummary(BaseModel):
    student_id: str
    active_loans: int
    overdue_loans: int
    unpaid_fines: float
