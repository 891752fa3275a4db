# medtasks/main.py

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from medtasks.admin.database_router import router as database_router
from medtasks.auth.auth_router import router as auth_router
from medtasks.config import Settings, get_settings
from medtasks.errors import BackendUnavailable, InitializationFailure, NotFound, StorageError, ValidationFailure
from medtasks.logging_setup import setup_logging
from medtasks.organization.organization_router import router as organization_router
from medtasks.storage.base import StorageBackend
from medtasks.storage.factory import build_storage
from medtasks.task.task_router import router as task_router

logger = logging.getLogger("medtasks.app")

# ---------------- CORS ----------------
ORIGINS = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:8080",
    "http://127.0.0.1:8080",
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

ERROR_STATUS = {
    NotFound: 404,
    ValidationFailure: 422,
    BackendUnavailable: 503,
    InitializationFailure: 503,
}


def _storage_error_handler(request: Request, exc: StorageError) -> JSONResponse:
    status = next((code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)), 500)
    if status >= 500:
        logger.error("storage_error", extra={"path": request.url.path, "error": exc.message})
    return JSONResponse(status_code=status, content={"detail": exc.message})


def create_app(settings: Optional[Settings] = None, storage: Optional[StorageBackend] = None) -> FastAPI:
    settings = settings or get_settings()
    if not settings.secret_key:
        raise RuntimeError("SECRET_KEY missing in .env!")

    app = FastAPI(title="Medical organization task monitor")

    origins = list(ORIGINS)
    if settings.frontend_origin:
        origins.append(settings.frontend_origin)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ---------------- STORAGE INIT ----------------
    storage = storage or build_storage(settings)
    storage.initialize()
    logger.info("storage_ready", extra={"backend": storage.name})

    app.state.settings = settings
    app.state.storage = storage

    app.add_exception_handler(StorageError, _storage_error_handler)

    # ---------------- ROUTERS ----------------
    app.include_router(auth_router)
    app.include_router(organization_router)
    app.include_router(task_router)
    app.include_router(database_router)

    @app.get("/")
    def read_root():
        return {"message": "Backend running", "storage": app.state.storage.name}

    return app


def build_app() -> FastAPI:
    """Entry point for `uvicorn --factory medtasks.main:build_app`."""
    settings = get_settings()
    setup_logging(settings.log_level, sql_echo=settings.sql_echo)
    return create_app(settings)
