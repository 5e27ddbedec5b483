# -*- coding: utf-8 -*-
"""Intake — wizard API endpoints."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from ..config import settings
from ..errors import FileRejected, IntakeValidationError, SubmissionInFlight
from ..pipeline.client import FunctionsClient, get_functions_client
from ..pipeline.orchestrator import SubmissionOrchestrator
from ..presenter.view import ResultView, build_result_view
from .models import (
    COMPLAINT_OPTIONS,
    RISK_FACTOR_OPTIONS,
    IntakeOptionsResponse,
    PatientIntakeUpdate,
    SessionCreateRequest,
    SessionSnapshot,
    SubmitResponse,
    ToggleRequest,
)
from .session import IntakeSession, registry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/intake", tags=["Intake"])


def _session_or_404(session_id: str) -> IntakeSession:
    session = registry.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return session


def _validation_400(exc: IntakeValidationError) -> HTTPException:
    detail: Dict[str, Any] = {"message": exc.message, "fields": exc.fields}
    if isinstance(exc, FileRejected):
        detail["reason"] = exc.reason.value
    return HTTPException(status_code=400, detail=detail)


@router.get("/options", response_model=IntakeOptionsResponse, summary="Selectable complaints and risk factors")
def intake_options():
    return IntakeOptionsResponse(complaints=list(COMPLAINT_OPTIONS), risk_factors=list(RISK_FACTOR_OPTIONS))


@router.post("/sessions", response_model=SessionSnapshot, summary="Start a new intake session")
def create_session(request: Optional[SessionCreateRequest] = None):
    session = registry.create(user_id=(request.user_id if request else "local"))
    logger.info("intake session %s created for %s", session.session_id, session.user_id)
    return session.snapshot()


@router.get("/sessions/{session_id}", response_model=SessionSnapshot)
def get_session(session_id: str):
    return _session_or_404(session_id).snapshot()


@router.post("/sessions/{session_id}/file", response_model=SessionSnapshot, summary="Offer an ECG file")
async def upload_file(session_id: str, file: UploadFile = File(...)):
    session = _session_or_404(session_id)
    data = await file.read()
    try:
        accepted = session.file_slot.offer(
            file.filename or "",
            file.content_type,
            data,
            max_bytes=settings.max_upload_bytes,
        )
    except FileRejected as exc:
        logger.info("file rejected for session %s: %s", session_id, exc.reason.value)
        raise _validation_400(exc) from exc
    logger.info("file %s accepted for session %s (%d bytes)", accepted.name, session_id, accepted.size)
    return session.snapshot()


@router.delete("/sessions/{session_id}/file", response_model=SessionSnapshot)
def clear_file(session_id: str):
    session = _session_or_404(session_id)
    session.file_slot.clear()
    return session.snapshot()


@router.patch("/sessions/{session_id}/patient", response_model=SessionSnapshot, summary="Merge patient fields")
def update_patient(session_id: str, request: PatientIntakeUpdate):
    session = _session_or_404(session_id)
    session.patient.merge(request)
    return session.snapshot()


@router.post("/sessions/{session_id}/patient/toggle", response_model=SessionSnapshot)
def toggle_patient_value(session_id: str, request: ToggleRequest):
    session = _session_or_404(session_id)
    session.patient.toggle(request.field, request.value)
    return session.snapshot()


@router.post("/sessions/{session_id}/next", response_model=SessionSnapshot, summary="Advance one wizard step")
def next_step(session_id: str):
    session = _session_or_404(session_id)
    try:
        session.next_step()
    except IntakeValidationError as exc:
        raise _validation_400(exc) from exc
    return session.snapshot()


@router.post("/sessions/{session_id}/back", response_model=SessionSnapshot)
def previous_step(session_id: str):
    session = _session_or_404(session_id)
    session.previous_step()
    return session.snapshot()


@router.post("/sessions/{session_id}/submit", response_model=SubmitResponse, summary="Run the analysis pipeline")
async def submit(session_id: str, client: FunctionsClient = Depends(get_functions_client)):
    session = _session_or_404(session_id)
    try:
        outcome = await SubmissionOrchestrator(client).run(session)
    except SubmissionInFlight as exc:
        raise HTTPException(status_code=409, detail="Анализ уже выполняется") from exc
    except IntakeValidationError as exc:
        raise _validation_400(exc) from exc
    return SubmitResponse(
        session_id=session.session_id,
        state=session.state.value,
        result=outcome.as_payload() if outcome else None,
        error=session.error,
    )


@router.get("/sessions/{session_id}/result", response_model=ResultView, summary="Render-ready analysis result")
def get_result(session_id: str):
    session = _session_or_404(session_id)
    if session.result is None:
        raise HTTPException(status_code=404, detail="No analysis result yet")
    return build_result_view(session.result.as_payload(), narrative_open=session.narrative_open)


@router.post("/sessions/{session_id}/result/narrative", response_model=ResultView)
def toggle_narrative(session_id: str):
    session = _session_or_404(session_id)
    if session.result is None:
        raise HTTPException(status_code=404, detail="No analysis result yet")
    session.narrative_open = not session.narrative_open
    return build_result_view(session.result.as_payload(), narrative_open=session.narrative_open)


@router.post("/sessions/{session_id}/reset", response_model=SessionSnapshot, summary="Start a new analysis")
def reset_session(session_id: str):
    session = _session_or_404(session_id)
    session.reset()
    logger.info("intake session %s reset (generation %d)", session_id, session.generation)
    return session.snapshot()
