# medtasks/auth/auth_router.py

import logging

from fastapi import APIRouter, Depends, HTTPException

from medtasks.auth.security import create_access_token
from medtasks.config import Settings
from medtasks.deps import get_current_user, get_settings, get_storage
from medtasks.schemas.user_schema import LoginRequest, TokenResponse, UserSummary
from medtasks.storage.base import StorageBackend

logger = logging.getLogger("medtasks.auth")

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=TokenResponse)
def login(
    request: LoginRequest,
    settings: Settings = Depends(get_settings),
    storage: StorageBackend = Depends(get_storage),
):
    user = storage.authenticate(request.username, request.password)
    if not user:
        logger.info("login_rejected", extra={"username": request.username})
        raise HTTPException(401, "Invalid credentials")

    token = create_access_token(
        str(user.id),
        settings.secret_key,
        algorithm=settings.algorithm,
        minutes=settings.access_token_expire_minutes,
    )
    return TokenResponse(access_token=token, user=user)


@router.get("/me", response_model=UserSummary)
def me(user: UserSummary = Depends(get_current_user)):
    return user
