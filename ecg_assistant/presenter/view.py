# -*- coding: utf-8 -*-
"""Result presenter — turns the combined analysis payload into a render-ready view."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

BANNER_COLORS = {
    "норма": "success",
    "требует внимания": "warning",
    "срочная помощь": "destructive",
}
DIAGNOSIS_STYLES = {
    "срочная помощь": "destructive",
    "требует внимания": "warning",
}
NEW_ANALYSIS = "new_analysis"


class Banner(BaseModel):
    title: str = "Результаты анализа ЭКГ"
    urgency: str
    color: str


class DiagnosisBlock(BaseModel):
    label: str = "Диагноз"
    text: str
    style: str
    alert: bool = False


class ECGFields(BaseModel):
    heart_rate: Optional[str] = None
    rhythm: Optional[str] = None
    main_findings: List[str] = Field(default_factory=list)


class NarrativeSection(BaseModel):
    title: str = "Заключение врача"
    text: str
    open: bool = False


class ResultView(BaseModel):
    banner: Banner
    diagnosis: Optional[DiagnosisBlock] = None
    ecg: Optional[ECGFields] = None
    narrative: NarrativeSection
    recommendations: Optional[str] = None
    actions: List[str] = Field(default_factory=lambda: [NEW_ANALYSIS])


def banner_color(level: Optional[str]) -> str:
    return BANNER_COLORS.get((level or "").lower(), "muted")


def banner_urgency(payload: Dict[str, Any]) -> str:
    analysis = payload.get("ecgAnalysis") or {}
    return analysis.get("urgency") or payload.get("riskLevel") or "норма"


def build_result_view(payload: Dict[str, Any], *, narrative_open: bool = False) -> ResultView:
    """Each sub-block is optional; absent fields suppress their block."""
    urgency = banner_urgency(payload)
    level = urgency.lower()
    analysis = payload.get("ecgAnalysis") or None

    diagnosis = None
    ecg = None
    if analysis:
        if analysis.get("diagnosis"):
            diagnosis = DiagnosisBlock(
                text=analysis["diagnosis"],
                style=DIAGNOSIS_STYLES.get(level, "primary"),
                alert=level == "срочная помощь",
            )
        ecg = ECGFields(
            heart_rate=analysis.get("heart_rate") or None,
            rhythm=analysis.get("rhythm") or None,
            main_findings=list(analysis.get("main_findings") or []),
        )

    return ResultView(
        banner=Banner(urgency=urgency, color=banner_color(urgency)),
        diagnosis=diagnosis,
        ecg=ecg,
        narrative=NarrativeSection(text=payload.get("reportText") or "", open=narrative_open),
        recommendations=payload.get("recommendations") or None,
    )
