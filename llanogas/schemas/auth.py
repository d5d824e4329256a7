"""Authentication-related Pydantic schemas."""

from uuid import UUID

from pydantic import BaseModel

from llanogas.db.enums import Role


class UserSession(BaseModel):
    """
    Session context for authenticated requests.

    Returned by the get_current_session dependency.
    """
    user_id: UUID
    role: Role
    email: str
    name: str


class LoginRequest(BaseModel):
    email: str
    password: str


class MeResponse(BaseModel):
    """Current user, returned on login and by /auth/me."""
    user_id: UUID
    email: str
    name: str
    role: Role
    position: str | None = None
    process: str | None = None
