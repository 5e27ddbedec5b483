# -*- coding: utf-8 -*-
"""Records — patients, ECG scans and medical reports."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ScanStatus(str, Enum):
    pending = "pending"
    completed = "completed"
    failed = "failed"


class PatientRecord(BaseModel):
    id: str
    user_id: str
    age: int
    gender: str
    height_cm: float
    weight_kg: float
    current_complaints: List[str] = Field(default_factory=list)
    complaints_details: Optional[str] = None
    medical_history: Optional[str] = None
    risk_factors: List[str] = Field(default_factory=list)
    created_at: str
    updated_at: str


class ScanRecord(BaseModel):
    id: str
    user_id: str
    patient_id: Optional[str] = None
    file_name: str
    file_type: str
    file_url: str
    storage_key: Optional[str] = None
    analysis_status: ScanStatus = ScanStatus.pending
    interpreter_result: Optional[Dict[str, Any]] = None
    final_analysis: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    created_at: str
    finished_at: Optional[str] = None


class ReportRecord(BaseModel):
    id: str
    user_id: str
    patient_id: str
    ecg_scan_id: str
    report_text: str
    risk_level: str
    recommendations: Optional[str] = None
    created_at: str


class ScanListResponse(BaseModel):
    user_id: str
    count: int
    scans: List[ScanRecord]


class ScanDetailResponse(BaseModel):
    scan: ScanRecord
    report: Optional[ReportRecord] = None
    patient: Optional[PatientRecord] = None
