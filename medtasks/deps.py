# medtasks/deps.py

from fastapi import Depends, HTTPException, Request
from fastapi.security import OAuth2PasswordBearer

from medtasks.auth.security import JWTError, decode_access_token
from medtasks.config import Settings
from medtasks.errors import NotFound
from medtasks.schemas.user_schema import UserSummary
from medtasks.storage.base import StorageBackend

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_storage(request: Request) -> StorageBackend:
    return request.app.state.storage


def get_current_user(
    token: str = Depends(oauth2_scheme),
    settings: Settings = Depends(get_settings),
    storage: StorageBackend = Depends(get_storage),
) -> UserSummary:
    try:
        user_id = decode_access_token(token, settings.secret_key, settings.algorithm)
    except (JWTError, KeyError, ValueError):
        raise HTTPException(401, "Invalid or expired token")

    try:
        return storage.get_user(user_id)
    except NotFound:
        raise HTTPException(401, "User not found")


def require_admin(user: UserSummary = Depends(get_current_user)) -> UserSummary:
    if not user.is_admin:
        raise HTTPException(403, "Administrator rights required")
    return user
