from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import datetime

class LibrarianCreate(BaseModel):
    email: EmailStr
    name: Optional[str] = Field(None, max_length=100)
    role: Optional[str] = Field(None, max_length=50)

class LibrarianUpdate(BaseModel):
    email: Optional[EmailStr] = None
    name: Optional[str] = Field(None, max_length=100)
    role: Optional[str] = Field(None, max_length=50)

class Librarian(BaseModel):
    id: int
    email: str
    name: Optional[str] = None
    role: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
