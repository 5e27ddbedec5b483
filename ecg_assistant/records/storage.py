# -*- coding: utf-8 -*-
"""Records — SQLite storage for patients, scans and reports.

Scans move from ``pending`` to ``completed`` or ``failed`` exactly once; the
status updates below only match pending rows so a finished scan never changes.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import uuid4

from ..app_db import db_conn
from ..config import settings
from .models import PatientRecord, ReportRecord, ScanRecord, ScanStatus


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _loads(raw: Optional[str], default: Any = None) -> Any:
    if not raw:
        return default
    try:
        return json.loads(raw)
    except Exception:
        return default


def _patient_from_row(row: Dict[str, Any]) -> PatientRecord:
    row = dict(row)
    row["current_complaints"] = _loads(row.get("current_complaints"), [])
    row["risk_factors"] = _loads(row.get("risk_factors"), [])
    return PatientRecord.model_validate(row)


def _scan_from_row(row: Dict[str, Any]) -> ScanRecord:
    row = dict(row)
    row["interpreter_result"] = _loads(row.get("interpreter_result"))
    row["final_analysis"] = _loads(row.get("final_analysis"))
    return ScanRecord.model_validate(row)


# ---------- patients ----------


def create_patient(
    *,
    user_id: str,
    age: int,
    gender: str,
    height_cm: float,
    weight_kg: float,
    complaints: List[str],
    complaints_details: Optional[str],
    medical_history: Optional[str],
    risk_factors: List[str],
) -> PatientRecord:
    patient_id = str(uuid4())
    now = _utc_now()
    with db_conn(settings.app_db_path) as conn:
        conn.execute(
            """
            INSERT INTO patients (
                id, user_id, age, gender, height_cm, weight_kg, current_complaints,
                complaints_details, medical_history, risk_factors, created_at, updated_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                patient_id,
                user_id,
                int(age),
                gender,
                float(height_cm),
                float(weight_kg),
                json.dumps(list(complaints), ensure_ascii=False),
                complaints_details or None,
                medical_history or None,
                json.dumps(list(risk_factors), ensure_ascii=False),
                now,
                now,
            ),
        )
    return PatientRecord(
        id=patient_id,
        user_id=user_id,
        age=int(age),
        gender=gender,
        height_cm=float(height_cm),
        weight_kg=float(weight_kg),
        current_complaints=list(complaints),
        complaints_details=complaints_details or None,
        medical_history=medical_history or None,
        risk_factors=list(risk_factors),
        created_at=now,
        updated_at=now,
    )


def get_patient(patient_id: str) -> Optional[PatientRecord]:
    with db_conn(settings.app_db_path) as conn:
        row = conn.execute("SELECT * FROM patients WHERE id = ?", (patient_id,)).fetchone()
        return _patient_from_row(row) if row else None


# ---------- scans ----------


def create_scan(
    *,
    user_id: str,
    patient_id: str,
    file_name: str,
    file_type: str,
    file_url: str,
    storage_key: Optional[str] = None,
) -> ScanRecord:
    scan_id = str(uuid4())
    now = _utc_now()
    with db_conn(settings.app_db_path) as conn:
        conn.execute(
            """
            INSERT INTO ecg_scans (
                id, user_id, patient_id, file_name, file_type, file_url, storage_key,
                analysis_status, created_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                scan_id,
                user_id,
                patient_id,
                file_name,
                file_type,
                file_url,
                storage_key,
                ScanStatus.pending.value,
                now,
            ),
        )
    return ScanRecord(
        id=scan_id,
        user_id=user_id,
        patient_id=patient_id,
        file_name=file_name,
        file_type=file_type,
        file_url=file_url,
        storage_key=storage_key,
        analysis_status=ScanStatus.pending,
        created_at=now,
    )


def get_scan(scan_id: str) -> Optional[ScanRecord]:
    with db_conn(settings.app_db_path) as conn:
        row = conn.execute("SELECT * FROM ecg_scans WHERE id = ?", (scan_id,)).fetchone()
        return _scan_from_row(row) if row else None


def list_scans(*, user_id: str, limit: int = 50, offset: int = 0) -> List[ScanRecord]:
    with db_conn(settings.app_db_path) as conn:
        rows = conn.execute(
            "SELECT * FROM ecg_scans WHERE user_id = ? ORDER BY created_at DESC LIMIT ? OFFSET ?",
            (user_id, int(limit), int(offset)),
        ).fetchall()
        return [_scan_from_row(r) for r in rows]


def complete_scan(
    scan_id: str,
    *,
    interpreter_result: Dict[str, Any],
    final_analysis: Dict[str, Any],
) -> bool:
    with db_conn(settings.app_db_path) as conn:
        cur = conn.execute(
            """
            UPDATE ecg_scans
            SET analysis_status = ?, interpreter_result = ?, final_analysis = ?, finished_at = ?
            WHERE id = ? AND analysis_status = ?
            """,
            (
                ScanStatus.completed.value,
                json.dumps(interpreter_result, ensure_ascii=False),
                json.dumps(final_analysis, ensure_ascii=False),
                _utc_now(),
                scan_id,
                ScanStatus.pending.value,
            ),
        )
        return cur.rowcount == 1


def fail_scan(scan_id: str, *, error: str) -> bool:
    with db_conn(settings.app_db_path) as conn:
        cur = conn.execute(
            """
            UPDATE ecg_scans
            SET analysis_status = ?, error = ?, finished_at = ?
            WHERE id = ? AND analysis_status = ?
            """,
            (ScanStatus.failed.value, error[:2000], _utc_now(), scan_id, ScanStatus.pending.value),
        )
        return cur.rowcount == 1


# ---------- reports ----------


def create_report(
    *,
    user_id: str,
    patient_id: str,
    ecg_scan_id: str,
    report_text: str,
    risk_level: str,
    recommendations: Optional[str],
) -> ReportRecord:
    report_id = str(uuid4())
    now = _utc_now()
    with db_conn(settings.app_db_path) as conn:
        conn.execute(
            """
            INSERT INTO medical_reports (
                id, user_id, patient_id, ecg_scan_id, report_text, risk_level, recommendations, created_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (report_id, user_id, patient_id, ecg_scan_id, report_text, risk_level, recommendations, now),
        )
    return ReportRecord(
        id=report_id,
        user_id=user_id,
        patient_id=patient_id,
        ecg_scan_id=ecg_scan_id,
        report_text=report_text,
        risk_level=risk_level,
        recommendations=recommendations,
        created_at=now,
    )


def get_report_for_scan(scan_id: str) -> Optional[ReportRecord]:
    with db_conn(settings.app_db_path) as conn:
        row = conn.execute(
            "SELECT * FROM medical_reports WHERE ecg_scan_id = ?",
            (scan_id,),
        ).fetchone()
        return ReportRecord.model_validate(dict(row)) if row else None

