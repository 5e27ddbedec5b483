# -*- coding: utf-8 -*-
"""Reference data — SQLite storage."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import uuid4

from ..app_db import db_conn
from ..config import settings
from .models import ReferenceRange, ReferenceRangeCreateRequest, ReferenceRangeUpdateRequest


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def create_reference(request: ReferenceRangeCreateRequest) -> ReferenceRange:
    ref_id = str(uuid4())
    now = _utc_now()
    with db_conn(settings.app_db_path) as conn:
        conn.execute(
            """
            INSERT INTO reference_data (
                id, user_id, name, value_min, value_max, unit, description, created_at, updated_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                ref_id,
                request.user_id,
                request.name.strip(),
                request.value_min,
                request.value_max,
                request.unit,
                request.description,
                now,
                now,
            ),
        )
    return ReferenceRange(
        id=ref_id,
        user_id=request.user_id,
        name=request.name.strip(),
        value_min=request.value_min,
        value_max=request.value_max,
        unit=request.unit,
        description=request.description,
        created_at=now,
        updated_at=now,
    )


def list_references(*, user_id: str) -> List[ReferenceRange]:
    with db_conn(settings.app_db_path) as conn:
        rows = conn.execute(
            "SELECT * FROM reference_data WHERE user_id = ? ORDER BY name ASC",
            (user_id,),
        ).fetchall()
        return [ReferenceRange.model_validate(dict(r)) for r in rows]


def get_reference(ref_id: str) -> Optional[ReferenceRange]:
    with db_conn(settings.app_db_path) as conn:
        row = conn.execute("SELECT * FROM reference_data WHERE id = ?", (ref_id,)).fetchone()
        return ReferenceRange.model_validate(dict(row)) if row else None


def update_reference(ref_id: str, request: ReferenceRangeUpdateRequest) -> Optional[ReferenceRange]:
    existing = get_reference(ref_id)
    if not existing:
        return None
    changes: Dict[str, Any] = request.model_dump(exclude_unset=True)
    merged = existing.model_copy(update={**changes, "updated_at": _utc_now()})
    if merged.value_min is not None and merged.value_max is not None and merged.value_min > merged.value_max:
        raise ValueError("value_min must not exceed value_max")
    with db_conn(settings.app_db_path) as conn:
        conn.execute(
            """
            UPDATE reference_data
            SET name = ?, value_min = ?, value_max = ?, unit = ?, description = ?, updated_at = ?
            WHERE id = ?
            """,
            (
                merged.name,
                merged.value_min,
                merged.value_max,
                merged.unit,
                merged.description,
                merged.updated_at,
                ref_id,
            ),
        )
    return merged


def delete_reference(ref_id: str) -> bool:
    with db_conn(settings.app_db_path) as conn:
        cur = conn.execute("DELETE FROM reference_data WHERE id = ?", (ref_id,))
        return cur.rowcount == 1
