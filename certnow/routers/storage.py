"""Signed downloads for the local storage backend (dev only)."""

import os

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import FileResponse

from certnow.core.security import verify_download_token
from certnow.services import storage_service

router = APIRouter()

MEDIA_TYPES = {
    "pdf": "application/pdf",
    "png": "image/png",
    "jpg": "image/jpeg",
    "webp": "image/webp",
}


@router.get("/local/{storage_key:path}")
def download_local_file(storage_key: str, token: str = Query(...)):
    """Serve a locally stored object when the signed token matches its key."""
    if storage_service._get_storage_backend() != "local":
        raise HTTPException(status_code=404, detail="File not found")
    if not verify_download_token(token, storage_key):
        raise HTTPException(status_code=403, detail="Invalid or expired link")

    bucket, _, path = storage_key.partition("/")
    try:
        file_path = storage_service.local_file_path(bucket, path)
    except ValueError:
        raise HTTPException(status_code=404, detail="File not found")
    if not os.path.isfile(file_path):
        raise HTTPException(status_code=404, detail="File not found")

    ext = path.rsplit(".", 1)[-1].lower() if "." in path else ""
    return FileResponse(file_path, media_type=MEDIA_TYPES.get(ext, "application/octet-stream"))
