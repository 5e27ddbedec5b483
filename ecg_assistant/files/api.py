# -*- coding: utf-8 -*-
"""Files — public download endpoint for stored ECG files."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException
from fastapi.responses import FileResponse

from ..intake.file_intake import EXTENSION_TYPES, file_extension
from .storage import resolve_path

router = APIRouter(prefix="/files", tags=["Files"])


@router.get("/{key:path}", summary="Download a stored ECG file")
def download_file(key: str):
    path = resolve_path(key)
    if path is None or not path.is_file():
        raise HTTPException(status_code=404, detail="File not found")
    media_type = EXTENSION_TYPES.get(file_extension(path.name), "application/octet-stream")
    return FileResponse(str(path), media_type=media_type, filename=path.name)
