# -*- coding: utf-8 -*-
"""Analysis functions — ECG interpretation and medical report endpoints.

Both endpoints answer ``{"error": ...}`` on failure so the pipeline client can
surface the message verbatim.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from typing import Any, Dict, Optional, Tuple

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from ..ai.gateway import AIGateway, get_gateway
from ..ai.interpreter import interpret_ecg
from ..ai.report import DEFAULT_RECOMMENDATIONS, derive_risk_level, generate_report_text
from ..config import settings
from ..errors import RemoteCallError, ServiceNotConfigured
from ..records.storage import complete_scan, create_report
from ..reference.storage import list_references
from .models import AnalyzeECGRequest, GenerateReportRequest, GenerateReportResponse, error_body

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/functions", tags=["Analysis functions"])


def _error(status_code: int, message: str, code: Optional[str] = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=error_body(message, code))


async def _read_json(request: Request) -> Tuple[Optional[Dict[str, Any]], Optional[JSONResponse]]:
    raw = (await request.body()).decode("utf-8", errors="replace")
    if not raw.strip():
        logger.error("empty request body")
        return None, _error(400, "Empty request body")
    try:
        body = json.loads(raw)
    except ValueError:
        logger.error("invalid JSON body: %s", raw[:200])
        return None, _error(400, "Invalid JSON body")
    if not isinstance(body, dict):
        return None, _error(400, "Invalid JSON body")
    return body, None


def _missing_fields(exc: ValidationError) -> str:
    names = sorted({str(err["loc"][0]) for err in exc.errors() if err.get("loc")})
    return "Missing required fields: " + ", ".join(names)


@router.post("/analyze-ecg", summary="Interpret an uploaded ECG with the vision model")
async def analyze_ecg(request: Request, gateway: AIGateway = Depends(get_gateway)):
    body, problem = await _read_json(request)
    if problem is not None:
        return problem
    try:
        payload = AnalyzeECGRequest.model_validate(body)
    except ValidationError as exc:
        return _error(400, _missing_fields(exc))

    logger.info("analyzing ECG scan %s (%s)", payload.ecgScanId, payload.fileType or "unknown type")
    try:
        parsed, analysis = await interpret_ecg(
            gateway,
            file_url=payload.fileUrl,
            file_type=payload.fileType,
            temperature=settings.interpret_temperature,
            file_transport=gateway.transport,
        )
    except ServiceNotConfigured as exc:
        return _error(500, exc.message, exc.code)
    except RemoteCallError as exc:
        logger.error("analyze-ecg failed for scan %s: %s", payload.ecgScanId, exc.message)
        return _error(500, exc.message)

    result = analysis.model_dump(mode="json")
    if not complete_scan(payload.ecgScanId, interpreter_result=parsed, final_analysis=result):
        logger.warning("scan %s was not pending; analysis not stored", payload.ecgScanId)
    return result


@router.post(
    "/generate-report",
    response_model=GenerateReportResponse,
    summary="Write the patient-facing report and derive the risk level",
)
async def generate_report(request: Request, gateway: AIGateway = Depends(get_gateway)):
    body, problem = await _read_json(request)
    if problem is not None:
        return problem
    try:
        payload = GenerateReportRequest.model_validate(body)
    except ValidationError as exc:
        return _error(400, _missing_fields(exc))

    references = [ref.model_dump() for ref in list_references(user_id=payload.userId)]
    try:
        report_text = await generate_report_text(
            gateway,
            analysis=payload.ecgAnalysis,
            patient=payload.patientData.model_dump(),
            temperature=settings.report_temperature,
            reference_ranges=references,
        )
    except ServiceNotConfigured as exc:
        return _error(500, exc.message, exc.code)
    except RemoteCallError as exc:
        logger.error("generate-report failed for scan %s: %s", payload.ecgScanId, exc.message)
        return _error(500, exc.message)

    risk_level = derive_risk_level(payload.ecgAnalysis.urgency, report_text)
    try:
        saved = create_report(
            user_id=payload.userId,
            patient_id=payload.patientId,
            ecg_scan_id=payload.ecgScanId,
            report_text=report_text,
            risk_level=risk_level.value,
            recommendations=DEFAULT_RECOMMENDATIONS,
        )
    except sqlite3.IntegrityError as exc:
        logger.error("could not store report for scan %s: %s", payload.ecgScanId, exc)
        return _error(409, f"Не удалось сохранить отчёт: {exc}")

    logger.info("report %s stored, risk level %s", saved.id, risk_level.value)
    return GenerateReportResponse(
        reportText=report_text,
        riskLevel=risk_level,
        recommendations=DEFAULT_RECOMMENDATIONS,
        reportId=saved.id,
    )
