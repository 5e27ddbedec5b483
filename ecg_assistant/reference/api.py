# -*- coding: utf-8 -*-
"""Reference data — API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query

from .models import (
    ReferenceRange,
    ReferenceRangeCreateRequest,
    ReferenceRangeListResponse,
    ReferenceRangeUpdateRequest,
)
from .storage import create_reference, delete_reference, list_references, update_reference

router = APIRouter(prefix="/api/reference-data", tags=["Reference data"])


@router.post("", response_model=ReferenceRange, summary="Create a reference range")
def create_reference_api(request: ReferenceRangeCreateRequest):
    return create_reference(request)


@router.get("", response_model=ReferenceRangeListResponse, summary="List reference ranges (by name)")
def list_references_api(user_id: str = Query(default="local")):
    items = list_references(user_id=user_id)
    return ReferenceRangeListResponse(count=len(items), items=items)


@router.patch("/{ref_id}", response_model=ReferenceRange, summary="Update a reference range")
def update_reference_api(ref_id: str, request: ReferenceRangeUpdateRequest):
    try:
        updated = update_reference(ref_id, request)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if not updated:
        raise HTTPException(status_code=404, detail="Reference range not found")
    return updated


@router.delete("/{ref_id}", summary="Delete a reference range")
def delete_reference_api(ref_id: str):
    if not delete_reference(ref_id):
        raise HTTPException(status_code=404, detail="Reference range not found")
    return {"status": "ok", "id": ref_id}
