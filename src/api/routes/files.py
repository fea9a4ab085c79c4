"""
Uploaded files
==============

GET /api/v1/files/{filename} -- serve a stored profile photo
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import FileResponse

from src.api.dependencies import get_current_user, get_file_storage
from src.api.middleware import limiter
from src.config import settings
from src.domain.errors import NotFoundError
from src.infrastructure.models import UserModel
from src.infrastructure.storage import FileStorage

router = APIRouter(prefix="/files", tags=["files"])


@router.get("/{filename}", response_class=FileResponse, summary="Fetch an uploaded file")
@limiter.limit(settings.rate_limit)
async def get_file(
    request: Request,
    filename: str,
    user: UserModel = Depends(get_current_user),
    storage: FileStorage = Depends(get_file_storage),
):
    path = storage.path_for(filename)
    if path is None:
        raise NotFoundError(f"File {filename} not found")
    return FileResponse(path)
