# -*- coding: utf-8 -*-
"""Intake — Pydantic models for the wizard API."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

COMPLAINT_OPTIONS = [
    "Боль в груди",
    "Одышка",
    "Учащённое сердцебиение",
    "Головокружение",
    "Обмороки",
    "Отёки",
    "Слабость",
    "Другое",
]

RISK_FACTOR_OPTIONS = [
    "Курение",
    "Гипертония",
    "Диабет",
    "Высокий холестерин",
    "Семейная история сердечных заболеваний",
    "Ожирение",
    "Малоподвижный образ жизни",
    "Стресс",
]


class Gender(str, Enum):
    male = "male"
    female = "female"


class MultiSelectField(str, Enum):
    complaints = "complaints"
    risk_factors = "risk_factors"


class PatientIntake(BaseModel):
    """Draft patient data; every field stays optional until the step boundary checks it."""

    age: Optional[int] = None
    gender: Optional[Gender] = None
    height: Optional[float] = Field(None, description="cm")
    weight: Optional[float] = Field(None, description="kg")
    complaints: List[str] = Field(default_factory=list)
    complaints_details: str = ""
    medical_history: str = ""
    risk_factors: List[str] = Field(default_factory=list)


class PatientIntakeUpdate(BaseModel):
    age: Optional[int] = None
    gender: Optional[Gender] = None
    height: Optional[float] = None
    weight: Optional[float] = None
    complaints: Optional[List[str]] = None
    complaints_details: Optional[str] = Field(None, max_length=4000)
    medical_history: Optional[str] = Field(None, max_length=4000)
    risk_factors: Optional[List[str]] = None


class ToggleRequest(BaseModel):
    field: MultiSelectField
    value: str = Field(..., min_length=1, max_length=200)


class SessionCreateRequest(BaseModel):
    user_id: str = Field("local", min_length=1, max_length=128)


class FileSummary(BaseModel):
    name: str
    content_type: str
    size_bytes: int


class SessionSnapshot(BaseModel):
    session_id: str
    user_id: str
    step: int
    total_steps: int
    progress: int
    file: Optional[FileSummary] = None
    patient: PatientIntake
    state: str
    error: Optional[str] = None
    has_result: bool = False


class IntakeOptionsResponse(BaseModel):
    complaints: List[str]
    risk_factors: List[str]


class SubmitResponse(BaseModel):
    session_id: str
    state: str
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
