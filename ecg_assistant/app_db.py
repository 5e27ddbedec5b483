# -*- coding: utf-8 -*-
"""App database (patients/scans/reports/reference data) — SQLite helpers."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator


def connect(db_path: Path) -> sqlite3.Connection:
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(db_path), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


def init_app_db(db_path: Path) -> None:
    conn = connect(db_path)
    try:
        cur = conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS patients (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                age INTEGER NOT NULL,
                gender TEXT NOT NULL,
                height_cm REAL NOT NULL,
                weight_kg REAL NOT NULL,
                current_complaints TEXT NOT NULL DEFAULT '[]',
                complaints_details TEXT,
                medical_history TEXT,
                risk_factors TEXT NOT NULL DEFAULT '[]',
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );
            """
        )
        cur.execute(
            "CREATE INDEX IF NOT EXISTS idx_patients_user_created ON patients(user_id, created_at DESC);"
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS ecg_scans (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                patient_id TEXT,
                file_name TEXT NOT NULL,
                file_type TEXT NOT NULL,
                file_url TEXT NOT NULL,
                storage_key TEXT,
                analysis_status TEXT NOT NULL DEFAULT 'pending',
                interpreter_result TEXT,
                final_analysis TEXT,
                error TEXT,
                created_at TEXT NOT NULL,
                finished_at TEXT,
                FOREIGN KEY(patient_id) REFERENCES patients(id) ON DELETE SET NULL
            );
            """
        )
        cur.execute(
            "CREATE INDEX IF NOT EXISTS idx_ecg_scans_user_created ON ecg_scans(user_id, created_at DESC);"
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS medical_reports (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                patient_id TEXT NOT NULL,
                ecg_scan_id TEXT NOT NULL UNIQUE,
                report_text TEXT NOT NULL,
                risk_level TEXT NOT NULL,
                recommendations TEXT,
                created_at TEXT NOT NULL,
                FOREIGN KEY(ecg_scan_id) REFERENCES ecg_scans(id) ON DELETE CASCADE,
                FOREIGN KEY(patient_id) REFERENCES patients(id) ON DELETE CASCADE
            );
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS reference_data (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                name TEXT NOT NULL,
                value_min REAL,
                value_max REAL,
                unit TEXT,
                description TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );
            """
        )
        cur.execute(
            "CREATE INDEX IF NOT EXISTS idx_reference_data_user_name ON reference_data(user_id, name ASC);"
        )
        conn.commit()
    finally:
        conn.close()


@contextmanager
def db_conn(db_path: Path) -> Iterator[sqlite3.Connection]:
    conn = connect(db_path)
    try:
        yield conn
        conn.commit()
    finally:
        conn.close()
