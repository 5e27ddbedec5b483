# -*- coding: utf-8 -*-
"""Intake — ECG file validation and the single-slot file holder."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Optional

from PIL import Image
from pillow_heif import register_heif_opener

from ..errors import FileRejected, RejectReason

register_heif_opener()

logger = logging.getLogger(__name__)

VALID_TYPES = {
    "application/pdf": "pdf",
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/webp": "webp",
    "image/heic": "heic",
    "image/heif": "heif",
}
VALID_EXTENSIONS = {"pdf", "png", "jpg", "jpeg", "webp", "heic", "heif"}

EXTENSION_TYPES = {
    "pdf": "application/pdf",
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "webp": "image/webp",
    "heic": "image/heic",
    "heif": "image/heif",
}


@dataclass(frozen=True)
class ECGFile:
    name: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def extension(self) -> str:
        # Derived from the accepted content type so storage key and file_type agree.
        return VALID_TYPES.get(self.content_type, "bin")

    @property
    def is_pdf(self) -> bool:
        return self.content_type == "application/pdf"

    @property
    def is_image(self) -> bool:
        return self.content_type.startswith("image/")

    def summary(self) -> dict:
        return {"name": self.name, "content_type": self.content_type, "size_bytes": self.size}


def file_extension(filename: str) -> str:
    suffix = Path(filename or "").suffix.lower().lstrip(".")
    if not re.fullmatch(r"[a-z0-9]{1,12}", suffix):
        return ""
    return suffix


def _verify_image(data: bytes) -> None:
    with Image.open(BytesIO(data)) as img:
        img.load()


def validate_file(name: str, content_type: str | None, data: bytes, *, max_bytes: int) -> ECGFile:
    """Validate an uploaded candidate and return it as an ECGFile.

    Accepted when either the declared MIME type or the extension is in the allow-list.
    Image uploads are fully decoded before acceptance so corrupt files fail here.
    """
    mime = (content_type or "").strip().lower()
    ext = file_extension(name)

    if len(data) > max_bytes:
        raise FileRejected(
            RejectReason.too_large,
            f"Файл слишком большой: максимальный размер {max_bytes // (1024 * 1024)} МБ",
        )
    if mime not in VALID_TYPES and ext not in VALID_EXTENSIONS:
        raise FileRejected(
            RejectReason.unsupported_type,
            "Неверный формат файла. Поддерживаются: PDF, PNG, JPG, JPEG, WEBP, HEIC",
        )
    if not data:
        raise FileRejected(RejectReason.empty, "Файл пуст")

    # An allow-listed declared MIME type wins over the extension.
    if mime not in VALID_TYPES:
        mime = EXTENSION_TYPES[ext]
    candidate = ECGFile(name=name or f"ecg.{VALID_TYPES[mime]}", content_type=mime, data=data)

    if candidate.is_image:
        try:
            _verify_image(data)
        except Exception as exc:
            logger.info("image decode failed for %s: %s", candidate.name, exc)
            raise FileRejected(
                RejectReason.unreadable,
                "Не удалось обработать файл. Попробуйте другой формат.",
            ) from exc
    return candidate


class FileSlot:
    """Holds at most one accepted file; a new acceptance silently replaces the old one."""

    def __init__(self) -> None:
        self._file: Optional[ECGFile] = None

    @property
    def file(self) -> Optional[ECGFile]:
        return self._file

    def offer(self, name: str, content_type: str | None, data: bytes, *, max_bytes: int) -> ECGFile:
        # Validation runs before touching the slot so a rejection keeps the held file.
        accepted = validate_file(name, content_type, data, max_bytes=max_bytes)
        self._file = accepted
        return accepted

    def clear(self) -> None:
        self._file = None
