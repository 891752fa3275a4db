# medtasks/admin/database_router.py

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from medtasks.deps import get_storage, require_admin
from medtasks.schemas.user_schema import UserSummary
from medtasks.storage.base import StorageBackend
from medtasks.storage.factory import relational_backend
from medtasks.storage.fallback import FallbackStorage

logger = logging.getLogger("medtasks.admin")

router = APIRouter(prefix="/database", tags=["database"])

EXPORT_FILENAME = "medtasks.sqlite"


def _relational(storage: StorageBackend):
    sql = relational_backend(storage)
    if sql is None:
        raise HTTPException(409, "Database images need the relational backend")
    return sql


@router.get("/export")
def export_database(
    admin: UserSummary = Depends(require_admin),
    storage: StorageBackend = Depends(get_storage),
):
    image = _relational(storage).export_image()
    logger.info("database_exported", extra={"user_id": admin.id, "size": len(image)})
    return Response(
        content=image,
        media_type="application/vnd.sqlite3",
        headers={"Content-Disposition": f'attachment; filename="{EXPORT_FILENAME}"'},
    )


@router.post("/import")
async def import_database(
    request: Request,
    admin: UserSummary = Depends(require_admin),
    storage: StorageBackend = Depends(get_storage),
):
    data = await request.body()
    if not data:
        raise HTTPException(400, "Empty upload")

    _relational(storage).import_image(data)
    logger.warning("database_imported", extra={"user_id": admin.id, "size": len(data)})
    return {"message": "Database imported"}


@router.post("/reset")
def reset_database(
    admin: UserSummary = Depends(require_admin),
    storage: StorageBackend = Depends(get_storage),
):
    storage.reset()
    logger.warning("database_reset", extra={"user_id": admin.id})
    return {"message": "Database reset"}


@router.post("/reconcile")
def reconcile_backends(
    admin: UserSummary = Depends(require_admin),
    storage: StorageBackend = Depends(get_storage),
):
    if not isinstance(storage, FallbackStorage):
        return {"copied": 0}
    return {"copied": storage.reconcile()}
