from pydantic import BaseModel, ConfigDict, EmailStr, Field
from uuid import UUID

class UserCreate(BaseModel):
    email: EmailStr
    username: str = Field(..., min_length=3)
    password: str = Field(..., min_length=8)
    org_id: UUID
    role: str = "OPERATOR" # Default role

class UserResponse(BaseModel):
    id: UUID
    org_id: UUID
    email: EmailStr
    username: str
    role: str
    is_active: bool
    model_config = ConfigDict(from_attributes=True)
