# -*- coding: utf-8 -*-
"""ECG interpretation — vision/text prompt, JSON extraction and default fill."""

from __future__ import annotations

import logging
from io import BytesIO
from typing import Any, Dict, List, Optional, Tuple

import httpx
from pypdf import PdfReader
from pypdf.errors import PyPdfError

from ..pipeline.models import ECGAnalysis, normalize_urgency
from .gateway import AIGateway
from .parsing import parse_model_json

logger = logging.getLogger(__name__)

_PDF_TEXT_LIMIT = 12_000

URGENCY_CRITERIA = """ВАЖНО: Определи уровень срочности на основе следующих критериев:
- "срочная помощь" — при признаках инфаркта (ST-элевация/депрессия >2мм, патологические Q-зубцы), опасных аритмий (желудочковая тахикардия, фибрилляция желудочков, AV-блокада III степени), асистолии, критической брадикардии (<40 уд/мин) или тахикардии (>150 уд/мин)
- "требует внимания" — при умеренных отклонениях: фибрилляция/трепетание предсердий, частые экстрасистолы, AV-блокада I-II степени, умеренные изменения ST-T, удлинение QT, ЧСС 40-50 или 100-150 уд/мин
- "норма" — только при отсутствии значимых отклонений, нормальном синусовом ритме, ЧСС 60-100 уд/мин

Верни ТОЛЬКО JSON в таком формате (без markdown):
{
  "heart_rate": "число уд/мин или Не определено",
  "rhythm": "синусовый / фибрилляция предсердий / ...",
  "main_findings": ["конкретные находки..."],
  "diagnosis": "краткий диагноз",
  "urgency": "норма / требует внимания / срочная помощь"
}"""


def is_pdf(file_url: str, file_type: Optional[str]) -> bool:
    # A declared type is authoritative; the URL suffix only decides when it is missing.
    if file_type:
        return file_type.strip().lower() == "application/pdf"
    return file_url.lower().endswith(".pdf")


def _as_text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return f"{value:g}"
    if isinstance(value, str):
        s = value.strip()
        return s or None
    return str(value).strip() or None


def _as_findings(value: Any) -> Optional[List[str]]:
    if isinstance(value, str):
        s = value.strip()
        return [s] if s else None
    if not isinstance(value, list):
        return None
    out = [str(x).strip() for x in value if x is not None and str(x).strip()]
    return out or None


def normalize_analysis(parsed: Dict[str, Any]) -> ECGAnalysis:
    """Back-fill missing fields with safe placeholders; urgency lands on the closed scale."""
    fields: Dict[str, Any] = {"urgency": normalize_urgency(parsed.get("urgency"))}
    heart_rate = _as_text(parsed.get("heart_rate"))
    if heart_rate:
        fields["heart_rate"] = heart_rate
    rhythm = _as_text(parsed.get("rhythm"))
    if rhythm:
        fields["rhythm"] = rhythm
    findings = _as_findings(parsed.get("main_findings"))
    if findings:
        fields["main_findings"] = findings
    diagnosis = _as_text(parsed.get("diagnosis"))
    if diagnosis:
        fields["diagnosis"] = diagnosis
    return ECGAnalysis(**fields)


def extract_pdf_text(data: bytes, *, max_chars: int = _PDF_TEXT_LIMIT) -> str:
    try:
        reader = PdfReader(BytesIO(data))
        parts: list[str] = []
        for number, page in enumerate(reader.pages, start=1):
            try:
                parts.append(page.extract_text() or "")
            except (PyPdfError, ValueError, KeyError) as exc:
                logger.debug("pdf page %d text extraction failed: %s", number, exc)
        text = "\n".join(parts).strip()
    except (PyPdfError, ValueError, OSError) as exc:
        logger.info("pdf text extraction failed: %s", exc)
        return ""
    return text[:max_chars]


async def check_file_access(
    file_url: str,
    *,
    fetch_body: bool,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Tuple[Optional[str], Optional[bytes]]:
    """Check that the file URL answers; returns (problem, body). Problems are only logged by callers."""
    try:
        async with httpx.AsyncClient(timeout=30, follow_redirects=True, transport=transport) as client:
            if fetch_body:
                resp = await client.get(file_url)
            else:
                resp = await client.head(file_url)
    except httpx.HTTPError as exc:
        logger.info("file access check failed: %s", exc)
        return "Не удалось получить доступ к файлу", None
    if resp.status_code >= 400:
        return f"Файл недоступен: {resp.status_code}", None
    logger.info("file is accessible, content-type: %s", resp.headers.get("content-type"))
    return None, resp.content if fetch_body else None


def build_messages(file_url: str, file_type: Optional[str], pdf_text: str = "") -> List[Dict[str, Any]]:
    if is_pdf(file_url, file_type):
        text = f"Ты — опытный кардиолог. Проанализируй ЭКГ по ссылке: {file_url}\n\n"
        if pdf_text:
            text += f"Текст, извлечённый из PDF:\n{pdf_text}\n\n"
        content: List[Dict[str, Any]] = [{"type": "text", "text": text + URGENCY_CRITERIA}]
    else:
        content = [
            {"type": "text", "text": "Ты — опытный кардиолог. Проанализируй эту ЭКГ.\n\n" + URGENCY_CRITERIA},
            {"type": "image_url", "image_url": {"url": file_url}},
        ]
    return [{"role": "user", "content": content}]


async def interpret_ecg(
    gateway: AIGateway,
    *,
    file_url: str,
    file_type: Optional[str],
    temperature: float,
    file_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Tuple[Dict[str, Any], ECGAnalysis]:
    """Run the interpretation call; returns (raw parsed JSON, normalized analysis).

    Raises RemoteCallError / MalformedResponseError; an unreachable file is only logged.
    """
    pdf = is_pdf(file_url, file_type)
    problem, body = await check_file_access(file_url, fetch_body=pdf, transport=file_transport)
    if problem:
        logger.warning("ECG file check: %s (%s)", problem, file_url[:100])
    pdf_text = extract_pdf_text(body) if (pdf and body) else ""

    logger.info("sending interpretation request, pdf=%s", pdf)
    text = await gateway.complete(build_messages(file_url, file_type, pdf_text), temperature=temperature)
    logger.info("AI response text length: %d", len(text))

    parsed = parse_model_json(text)
    return parsed, normalize_analysis(parsed)
