# -*- coding: utf-8 -*-
"""Records — ECG history endpoints."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query

from .models import ScanDetailResponse, ScanListResponse
from .storage import get_patient, get_report_for_scan, get_scan, list_scans

router = APIRouter(prefix="/api/scans", tags=["ECG history"])


@router.get("", response_model=ScanListResponse, summary="List a user's ECG scans (newest first)")
def list_scans_api(
    user_id: str = Query(default="local"),
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
):
    scans = list_scans(user_id=user_id, limit=limit, offset=offset)
    return ScanListResponse(user_id=user_id, count=len(scans), scans=scans)


@router.get("/{scan_id}", response_model=ScanDetailResponse, summary="One scan with its report and patient")
def get_scan_api(scan_id: str):
    scan = get_scan(scan_id)
    if not scan:
        raise HTTPException(status_code=404, detail="Scan not found")
    return ScanDetailResponse(
        scan=scan,
        report=get_report_for_scan(scan_id),
        patient=get_patient(scan.patient_id) if scan.patient_id else None,
    )
