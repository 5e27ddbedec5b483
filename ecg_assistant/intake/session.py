# -*- coding: utf-8 -*-
"""Intake — per-session wizard context and the in-process session registry."""

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional
from uuid import uuid4

from ..config import settings
from ..errors import IntakeValidationError
from ..pipeline.models import AnalysisOutcome, IN_FLIGHT_STATES, PipelineState
from .file_intake import ECGFile, FileSlot
from .models import FileSummary, SessionSnapshot
from .patient import PatientDataCollector, validate_demographics

logger = logging.getLogger(__name__)

TOTAL_STEPS = 4
STEP_FILE = 1
STEP_DEMOGRAPHICS = 2
STEP_COMPLAINTS = 3
STEP_SUBMIT = 4


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class IntakeSession:
    """Everything one wizard run holds: file slot, patient draft, pipeline state and result.

    ``generation`` is bumped on every reset; pipeline code compares it before
    applying a late result so abandoned runs never write into a fresh session.
    """

    def __init__(self, *, user_id: str, session_id: str | None = None) -> None:
        self.session_id = session_id or str(uuid4())
        self.user_id = user_id
        self.created_at = _utc_now()
        self.step = STEP_FILE
        self.file_slot = FileSlot()
        self.patient = PatientDataCollector()
        self.state = PipelineState.idle
        self.error: Optional[str] = None
        self.result: Optional[AnalysisOutcome] = None
        self.narrative_open = False
        self.generation = 0
        self.last_seen = time.monotonic()

    @property
    def file(self) -> Optional[ECGFile]:
        return self.file_slot.file

    @property
    def in_flight(self) -> bool:
        return self.state in IN_FLIGHT_STATES

    def check_step(self, step: int) -> None:
        if step == STEP_FILE and self.file is None:
            raise IntakeValidationError("Загрузите файл: пожалуйста, загрузите файл ЭКГ", fields=["file"])
        if step == STEP_DEMOGRAPHICS:
            validate_demographics(self.patient.data)

    def next_step(self) -> int:
        self.check_step(self.step)
        if self.step < TOTAL_STEPS:
            self.step += 1
        return self.step

    def previous_step(self) -> int:
        if self.step > STEP_FILE:
            self.step -= 1
        return self.step

    def check_ready_to_submit(self) -> None:
        self.check_step(STEP_FILE)
        self.check_step(STEP_DEMOGRAPHICS)

    def reset(self) -> None:
        self.generation += 1
        self.step = STEP_FILE
        self.file_slot.clear()
        self.patient.reset()
        self.state = PipelineState.idle
        self.error = None
        self.result = None
        self.narrative_open = False

    def snapshot(self) -> SessionSnapshot:
        held = self.file
        return SessionSnapshot(
            session_id=self.session_id,
            user_id=self.user_id,
            step=self.step,
            total_steps=TOTAL_STEPS,
            progress=round(self.step / TOTAL_STEPS * 100),
            file=FileSummary(**held.summary()) if held else None,
            patient=self.patient.data,
            state=self.state.value,
            error=self.error,
            has_result=self.result is not None,
        )


class SessionRegistry:
    """Sessions keyed by id; idle ones expire after ``ttl_seconds`` unless a run is in flight."""

    def __init__(self, *, ttl_seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        self._sessions: Dict[str, IntakeSession] = {}
        self._lock = threading.Lock()
        self.ttl_seconds = ttl_seconds
        self._clock = clock

    def _evict_idle(self, now: float) -> int:
        expired = [
            sid
            for sid, s in self._sessions.items()
            if not s.in_flight and now - s.last_seen > self.ttl_seconds
        ]
        for sid in expired:
            del self._sessions[sid]
        if expired:
            logger.info("evicted %d idle intake sessions", len(expired))
        return len(expired)

    def create(self, *, user_id: str) -> IntakeSession:
        session = IntakeSession(user_id=user_id)
        with self._lock:
            now = self._clock()
            self._evict_idle(now)
            session.last_seen = now
            self._sessions[session.session_id] = session
        return session

    def get(self, session_id: str) -> Optional[IntakeSession]:
        with self._lock:
            now = self._clock()
            self._evict_idle(now)
            session = self._sessions.get(session_id)
            if session is not None:
                session.last_seen = now
            return session

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            states: Dict[str, int] = {}
            for s in self._sessions.values():
                states[s.state.value] = states.get(s.state.value, 0) + 1
            return {"sessions": len(self._sessions), "states": states}


registry = SessionRegistry(ttl_seconds=settings.session_ttl_minutes * 60)
