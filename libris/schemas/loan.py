#!/usr/bin/env python
"""
    Loan Schema for Libris,
    issue/return/renew requests and loan records.

    :copyright: (c) 2025 by AUTHORS
    :license: see LICENSE for more details
"""

from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from libris.schemas.fine import Fine

class IssueRequest(BaseModel):
    student_id: str
    book_id: int
    issue_date: Optional[datetime] = None
    due_date: Optional[datetime] = None

class ReturnRequest(BaseModel):
    return_date: Optional[datetime] = None

class RenewRequest(BaseModel):
    days: Optional[int] = Field(None, gt=0)

class LoanUpdate(BaseModel):
    due_date: Optional[datetime] = None
    renewal_count: Optional[int] = Field(None, ge=0)

class Loan(BaseModel):
    id: int
    book_id: int
    book_title: Optional[str] = None
    student_id: str
    student_name: Optional[str] = None
    librarian_id: Optional[int] = None
    issue_date: datetime
    due_date: Optional[datetime] = None
    return_date: Optional[datetime] = None
    renewal_count: int
    is_active: bool

    class Config:
        from_attributes = True

class ReturnReceipt(BaseModel):
    loan: Loan
    fine: Optional[Fine] = None

    class Config:
        from_attributes = True
