from typing import Optional
from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from app.models.user import Role as RoleEnum


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: EmailStr
    role: RoleEnum
    clinic_id: Optional[int] = None
    is_active: bool
    must_change_password: bool
    created_at: datetime


class StaffCreate(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8, max_length=72)


class StaffUpdate(BaseModel):
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(default=None, min_length=8, max_length=72)
    is_active: Optional[bool] = None
