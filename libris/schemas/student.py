#!/usr/bin/env python
"""
    Student Schema for Libris,
    with canonical student ids and institutional email addresses.

    :copyright: (c) 2025 by AUTHORS
    :license: see LICENSE for more details
"""

from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional
from datetime import datetime
from libris.configs import INSTITUTION_EMAIL_DOMAIN
from libris.core.identifiers import (
    DEPARTMENT_CODES,
    normalize_student_id,
    validate_student_id,
)

def canonical_student_id(value: str) -> str:
    if not validate_student_id(value):
        raise ValueError(f"'{value}' is not a valid student id (e.g. 1cd23is145)")
    return normalize_student_id(value)

def institutional_email(value: str) -> str:
    value = value.strip().lower()
    if not value.endswith(f"@{INSTITUTION_EMAIL_DOMAIN}"):
        raise ValueError(f"email must end with @{INSTITUTION_EMAIL_DOMAIN}")
    return value

def department_code(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    value = value.strip().upper()
    if value not in DEPARTMENT_CODES:
        raise ValueError(f"unknown department '{value}'")
    return value

class StudentCreate(BaseModel):
    student_id: str
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    contact: Optional[str] = Field(None, max_length=20)
    year: Optional[int] = Field(None, ge=1, le=5)
    dept_id: Optional[str] = None

    @field_validator('student_id')
    @classmethod
    def check_student_id(cls, value):
        return canonical_student_id(value)

    @field_validator('email')
    @classmethod
    def check_email(cls, value):
        return institutional_email(value)

    @field_validator('dept_id')
    @classmethod
    def check_dept_id(cls, value):
        return department_code(value)

class StudentUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    contact: Optional[str] = Field(None, max_length=20)
    year: Optional[int] = Field(None, ge=1, le=5)
    dept_id: Optional[str] = None

    @field_validator('email')
    @classmethod
    def check_email(cls, value):
        return value if value is None else institutional_email(value)

    @field_validator('dept_id')
    @classmethod
    def check_dept_id(cls, value):
        return department_code(value)

class Student(BaseModel):
    student_id: str
    name: str
    email: str
    contact: Optional[str] = None
    year: Optional[int] = None
    dept_id: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
