from pydantic import BaseModel

class Department(BaseModel):
    id: str
    name: str

    class Config:
        from_attributes = True
