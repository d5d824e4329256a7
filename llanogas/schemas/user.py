"""Pydantic schemas for user administration."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from llanogas.db.enums import Role


class UserCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(..., min_length=8)
    role: Role
    position: str | None = None
    process: str | None = None
    is_active: bool = True


class UserUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    email: EmailStr | None = None
    password: str | None = Field(None, min_length=8)
    role: Role | None = None
    position: str | None = None
    process: str | None = None
    is_active: bool | None = None


class UserRead(BaseModel):
    id: UUID
    name: str
    email: str
    role: Role
    position: str | None
    process: str | None
    is_active: bool
    created_at: datetime
    updated_at: datetime
    deactivated_at: datetime | None

    model_config = {"from_attributes": True}


class UserDeactivateResponse(BaseModel):
    message: str
    user: UserRead
