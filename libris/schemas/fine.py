from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from libris.core.models import FineStatus

class FineCreate(BaseModel):
    loan_id: int
    amount: float = Field(..., gt=0)
    date_calculated: Optional[datetime] = None

class FineUpdate(BaseModel):
    amount: Optional[float] = Field(None, gt=0)
    status: Optional[FineStatus] = None

class Fine(BaseModel):
    id: int
    loan_id: int
    amount: float
    status: FineStatus
    date_calculated: datetime

    class Config:
        from_attributes = True
