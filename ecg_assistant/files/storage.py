# -*- coding: utf-8 -*-
"""Files — persist ECG uploads on disk and expose them under a public URL."""

from __future__ import annotations

import re
import time
from dataclasses import dataclass
from pathlib import Path

from ..config import settings

_KEY_PART = re.compile(r"[^\w.\-]+")


@dataclass(frozen=True)
class StoredFile:
    key: str
    path: Path
    public_url: str
    size_bytes: int


def _safe_part(value: str) -> str:
    cleaned = _KEY_PART.sub("_", (value or "").strip())
    if cleaned in {"", ".", ".."}:
        cleaned = "unknown"
    return cleaned[:200]


def build_key(session_id: str, extension: str, *, now_ms: int | None = None) -> str:
    """``{session}/{timestamp}.{ext}``; the millisecond stamp avoids collisions, it does not guarantee uniqueness."""
    stamp = now_ms if now_ms is not None else int(time.time() * 1000)
    ext = _safe_part(extension.lstrip(".").lower()) or "bin"
    return f"{_safe_part(session_id)}/{stamp}.{ext}"


def public_url_for(key: str) -> str:
    return f"{settings.public_base_url}/files/{key}"


def save_file(*, session_id: str, extension: str, data: bytes) -> StoredFile:
    key = build_key(session_id, extension)
    path = settings.files_root / key
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return StoredFile(key=key, path=path, public_url=public_url_for(key), size_bytes=len(data))


def resolve_path(key: str) -> Path | None:
    root = settings.files_root.resolve()
    path = (root / key).resolve()
    # Reject keys escaping the files root.
    if root not in path.parents:
        return None
    return path
