# -*- coding: utf-8 -*-
"""Analysis functions — request/response models (camelCase on the wire)."""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from ..pipeline.models import ECGAnalysis, Urgency


class AnalyzeECGRequest(BaseModel):
    ecgScanId: str = Field(..., min_length=1)
    fileUrl: str = Field(..., min_length=1)
    fileType: Optional[str] = None


class PatientPayload(BaseModel):
    age: Optional[int] = None
    gender: Optional[str] = None
    complaints: list[str] = Field(default_factory=list)
    complaintsDetails: Optional[str] = None
    medicalHistory: Optional[str] = None
    riskFactors: list[str] = Field(default_factory=list)


class GenerateReportRequest(BaseModel):
    ecgScanId: str = Field(..., min_length=1)
    patientId: str = Field(..., min_length=1)
    userId: str = Field("local", min_length=1)
    ecgAnalysis: ECGAnalysis
    patientData: PatientPayload = Field(default_factory=PatientPayload)


class GenerateReportResponse(BaseModel):
    reportText: str
    riskLevel: Urgency
    recommendations: str
    reportId: Optional[str] = None


def error_body(message: str, code: Optional[str] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"error": message}
    if code:
        body["code"] = code
    return body
