# -*- coding: utf-8 -*-
"""Pipeline — states, urgency scale and the combined analysis payload."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


class PipelineState(str, Enum):
    idle = "idle"
    submitting = "submitting"
    awaiting_interpretation = "awaiting_interpretation"
    awaiting_report = "awaiting_report"
    done = "done"
    failed = "failed"


IN_FLIGHT_STATES = {
    PipelineState.submitting,
    PipelineState.awaiting_interpretation,
    PipelineState.awaiting_report,
}


class Urgency(str, Enum):
    normal = "норма"
    attention = "требует внимания"
    urgent = "срочная помощь"


DEFAULT_URGENCY = Urgency.attention

_URGENCY_ALIASES = {
    "норма": Urgency.normal,
    "normal": Urgency.normal,
    "low": Urgency.normal,
    "требует внимания": Urgency.attention,
    "внимание": Urgency.attention,
    "needs-attention": Urgency.attention,
    "needs attention": Urgency.attention,
    "attention": Urgency.attention,
    "medium": Urgency.attention,
    "срочная помощь": Urgency.urgent,
    "срочно": Urgency.urgent,
    "urgent": Urgency.urgent,
    "high": Urgency.urgent,
}


def normalize_urgency(value: Any) -> Urgency:
    """Map any interpreter value onto the closed scale; unknown values become needs-attention."""
    if isinstance(value, Urgency):
        return value
    if not isinstance(value, str):
        return DEFAULT_URGENCY
    key = " ".join(value.strip().lower().replace("_", " ").split())
    return _URGENCY_ALIASES.get(key, DEFAULT_URGENCY)


class ECGAnalysis(BaseModel):
    heart_rate: str = "Не определено"
    rhythm: str = "Не определено"
    main_findings: List[str] = Field(default_factory=lambda: ["Анализ выполнен"])
    diagnosis: str = "Требуется дополнительная оценка специалиста"
    urgency: Urgency = DEFAULT_URGENCY

    @field_validator("urgency", mode="before")
    @classmethod
    def _closed_scale(cls, value: Any) -> Urgency:
        return normalize_urgency(value)


class MedicalReportResult(BaseModel):
    reportText: str
    riskLevel: Urgency
    recommendations: Optional[str] = None
    reportId: Optional[str] = None


class AnalysisOutcome(BaseModel):
    """What the result presenter receives once the pipeline is done."""

    ecg_scan_id: str
    patient_id: str
    file_url: str
    ecgAnalysis: ECGAnalysis
    report: MedicalReportResult

    def as_payload(self) -> Dict[str, Any]:
        return {
            "ecgScanId": self.ecg_scan_id,
            "patientId": self.patient_id,
            "fileUrl": self.file_url,
            "ecgAnalysis": self.ecgAnalysis.model_dump(mode="json"),
            **self.report.model_dump(mode="json"),
        }
