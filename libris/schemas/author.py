from pydantic import BaseModel, Field
from typing import Optional

class AuthorCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)

class AuthorUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)

class Author(BaseModel):
    id: int
    name: str

    class Config:
        from_attributes = True
