# -*- coding: utf-8 -*-
"""Medical report — narrative prompt and risk-level derivation."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from ..pipeline.models import ECGAnalysis, Urgency, normalize_urgency
from .gateway import AIGateway

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "Ты — русскоязычный врач-кардиолог с большим опытом. "
    "Составляй подробные, но понятные медицинские заключения."
)
FALLBACK_REPORT_TEXT = "Не удалось сгенерировать отчёт"
DEFAULT_RECOMMENDATIONS = "Рекомендуется консультация с кардиологом для более детального обследования."


def derive_risk_level(urgency: Any, report_text: str) -> Urgency:
    """Start from the interpreter urgency, then let keywords in the narrative override it.

    "норма" wins over "срочная помощь"/"срочно" when both appear; the check is a plain
    substring match, so "нормальный" also counts as норма.
    """
    risk = normalize_urgency(urgency)
    if "норма" in report_text:
        return Urgency.normal
    if "срочная помощь" in report_text or "срочно" in report_text:
        return Urgency.urgent
    return risk


def _join(values: Optional[List[str]], empty: str) -> str:
    items = [v for v in (values or []) if v]
    return ", ".join(items) if items else empty


def _bound(value: Any) -> str:
    if value is None:
        return "—"
    return f"{float(value):g}"


def _gender_label(gender: Optional[str]) -> str:
    return "мужской" if gender == "male" else "женский"


def build_report_prompt(
    analysis: ECGAnalysis,
    patient: Dict[str, Any],
    reference_ranges: Optional[List[Dict[str, Any]]] = None,
) -> str:
    lines = [
        "На основе симптомов пациента, анамнеза и результатов анализа ЭКГ дай подробный, но понятный вывод.",
        "",
        "Данные пациента:",
        f"- Возраст: {patient.get('age')} лет",
        f"- Пол: {_gender_label(patient.get('gender'))}",
        f"- Жалобы: {_join(patient.get('complaints'), 'нет')}",
        f"- Подробности жалоб: {patient.get('complaintsDetails') or 'не указано'}",
        f"- Медицинская история: {patient.get('medicalHistory') or 'не указано'}",
        f"- Факторы риска: {_join(patient.get('riskFactors'), 'нет')}",
        "",
        "Результаты ЭКГ:",
        f"- ЧСС: {analysis.heart_rate}",
        f"- Ритм: {analysis.rhythm}",
        f"- Находки: {', '.join(analysis.main_findings)}",
        f"- Диагноз: {analysis.diagnosis}",
        f"- Срочность: {analysis.urgency.value}",
    ]
    if reference_ranges:
        lines += ["", "Референсные значения:"]
        for ref in reference_ranges:
            low = _bound(ref.get("value_min"))
            high = _bound(ref.get("value_max"))
            unit = f" {ref['unit']}" if ref.get("unit") else ""
            lines.append(f"- {ref.get('name')}: {low}–{high}{unit}")
    lines += [
        "",
        "Напиши заключение на русском языке:",
        "1. Краткое резюме состояния пациента",
        "2. Интерпретация результатов ЭКГ",
        "3. Оценка риска (норма / требует внимания / срочная помощь)",
        "4. Рекомендации по дальнейшим действиям",
        "",
        "Ответ должен быть заботливым, профессиональным и понятным для пациента.",
    ]
    return "\n".join(lines)


async def generate_report_text(
    gateway: AIGateway,
    *,
    analysis: ECGAnalysis,
    patient: Dict[str, Any],
    temperature: float,
    reference_ranges: Optional[List[Dict[str, Any]]] = None,
) -> str:
    messages = [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": build_report_prompt(analysis, patient, reference_ranges)},
    ]
    logger.info("generating medical report")
    text = (await gateway.complete(messages, temperature=temperature)).strip()
    return text or FALLBACK_REPORT_TEXT
