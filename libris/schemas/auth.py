from pydantic import BaseModel, EmailStr, Field
from typing import Optional, Literal
from datetime import datetime

class SignUpRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8)
    role: Literal['student', 'librarian']
    name: Optional[str] = Field(None, max_length=100)
    student_id: Optional[str] = None
    contact: Optional[str] = Field(None, max_length=20)
    year: Optional[int] = Field(None, ge=1, le=5)
    dept_id: Optional[str] = None

class SignInRequest(BaseModel):
    email: EmailStr
    password: str

class Session(BaseModel):
    email: str
    role: str
    user_id: str
    issued_at: datetime
    token: Optional[str] = None

    class Config:
        from_attributes = True
