# medtasks/schemas/user_schema.py
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict


class UserSummary(BaseModel):
    """A user as handed to callers: never carries the password."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    full_name: Optional[str] = None
    is_admin: bool = False


class LoginRequest(BaseModel):
    username: str
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserSummary
