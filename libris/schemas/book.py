#!/usr/bin/env python
"""
    Book Schema for Libris,
    request and response shapes for catalog records.

    :copyright: (c) 2025 by AUTHORS
    :license: see LICENSE for more details
"""

from pydantic import BaseModel, Field, model_validator
from typing import Optional

class BookCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    author_id: Optional[int] = None
    publisher: Optional[str] = Field(None, max_length=255)
    year: Optional[int] = Field(None, ge=0)
    available_copies: int = Field(1, ge=0)
    total_copies: Optional[int] = Field(None, ge=0)

    @model_validator(mode='after')
    def check_copies(self):
        if self.total_copies is not None and self.available_copies > self.total_copies:
            raise ValueError("available_copies cannot exceed total_copies")
        return self

class BookUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    author_id: Optional[int] = None
    publisher: Optional[str] = Field(None, max_length=255)
    year: Optional[int] = Field(None, ge=0)
    available_copies: Optional[int] = Field(None, ge=0)
    total_copies: Optional[int] = Field(None, ge=0)

class Book(BaseModel):
    id: int
    title: str
    author_id: Optional[int] = None
    author_name: Optional[str] = None
    publisher: Optional[str] = None
    year: Optional[int] = None
    available_copies: int
    total_copies: int

    class Config:
        from_attributes = True
        json_schema_extra = {
            "example": {
                "id": 1,
                "title": "Operating System Concepts",
                "author_id": 3,
                "author_name": "Abraham Silberschatz",
                "publisher": "Wiley",
                "year": 2018,
                "available_copies": 2,
                "total_copies": 4
            }
        }
