# -*- coding: utf-8 -*-
"""Pipeline — submission orchestrator.

Runs patient → file → scan → interpretation → report for one intake session.
Each step awaits the previous one; the first failure aborts the rest and leaves
the session in ``failed`` with the most specific message available.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Any, Dict, Optional

from pydantic import ValidationError

from ..errors import RemoteCallError, SubmissionInFlight
from ..files.storage import save_file
from ..intake.models import PatientIntake
from ..intake.session import IntakeSession
from ..records.storage import create_patient, create_scan, fail_scan
from .client import FunctionsClient
from .models import AnalysisOutcome, ECGAnalysis, MedicalReportResult, PipelineState

logger = logging.getLogger(__name__)


def patient_payload(data: PatientIntake) -> Dict[str, Any]:
    """Patient fields as the report function expects them."""
    return {
        "age": data.age,
        "gender": data.gender.value if data.gender else None,
        "height": data.height,
        "weight": data.weight,
        "complaints": list(data.complaints),
        "complaintsDetails": data.complaints_details,
        "medicalHistory": data.medical_history,
        "riskFactors": list(data.risk_factors),
    }


class SubmissionOrchestrator:
    def __init__(self, client: FunctionsClient) -> None:
        self.client = client

    @staticmethod
    def _current(session: IntakeSession, generation: int) -> bool:
        return session.generation == generation

    def _fail(
        self,
        session: IntakeSession,
        generation: int,
        scan_id: Optional[str],
        message: str,
    ) -> None:
        if scan_id and fail_scan(scan_id, error=message):
            logger.info("scan %s marked failed", scan_id)
        if not self._current(session, generation):
            logger.info("session %s was reset; dropping failure of stale run", session.session_id)
            return
        session.state = PipelineState.failed
        session.error = message

    async def run(self, session: IntakeSession) -> Optional[AnalysisOutcome]:
        """Submit the session; returns the outcome, or None when the run failed or went stale.

        Raises IntakeValidationError before anything is written when the draft is
        incomplete, and SubmissionInFlight while a previous run is still pending.
        """
        if session.in_flight:
            raise SubmissionInFlight(f"session {session.session_id} is already submitting")
        session.check_ready_to_submit()

        generation = session.generation
        ecg_file = session.file
        intake = session.patient.data.model_copy(deep=True)
        session.state = PipelineState.submitting
        session.error = None
        session.result = None

        scan_id: Optional[str] = None
        try:
            patient = create_patient(
                user_id=session.user_id,
                age=intake.age,
                gender=intake.gender.value,
                height_cm=intake.height,
                weight_kg=intake.weight,
                complaints=intake.complaints,
                complaints_details=intake.complaints_details,
                medical_history=intake.medical_history,
                risk_factors=intake.risk_factors,
            )
            logger.info("patient %s created for session %s", patient.id, session.session_id)

            stored = save_file(session_id=session.session_id, extension=ecg_file.extension, data=ecg_file.data)
            logger.info("file stored at %s (%d bytes)", stored.key, stored.size_bytes)

            scan = create_scan(
                user_id=session.user_id,
                patient_id=patient.id,
                file_name=ecg_file.name,
                file_type=ecg_file.content_type,
                file_url=stored.public_url,
                storage_key=stored.key,
            )
            scan_id = scan.id
            logger.info("scan %s pending", scan_id)

            session.state = PipelineState.awaiting_interpretation
            analysis_data = await self.client.analyze_ecg(
                ecg_scan_id=scan.id,
                file_url=stored.public_url,
                file_type=ecg_file.content_type,
            )
            if not self._current(session, generation):
                logger.info("session %s was reset; discarding interpretation", session.session_id)
                return None
            analysis = ECGAnalysis.model_validate(analysis_data)

            session.state = PipelineState.awaiting_report
            report_data = await self.client.generate_report(
                ecg_scan_id=scan.id,
                patient_id=patient.id,
                user_id=session.user_id,
                ecg_analysis=analysis.model_dump(mode="json"),
                patient_data=patient_payload(intake),
            )
            if not self._current(session, generation):
                logger.info("session %s was reset; discarding report", session.session_id)
                return None
            report = MedicalReportResult.model_validate(report_data)
        except RemoteCallError as exc:
            logger.error("submission failed for session %s: %s", session.session_id, exc.message)
            self._fail(session, generation, scan_id, exc.message)
            return None
        except ValidationError as exc:
            logger.error("unexpected function payload for session %s: %s", session.session_id, exc)
            self._fail(session, generation, scan_id, "Ошибка обработки ответа сервиса анализа")
            return None
        except (sqlite3.Error, OSError) as exc:
            logger.exception("storage failure for session %s", session.session_id)
            self._fail(session, generation, scan_id, f"Ошибка сохранения данных: {exc}")
            return None
        except Exception as exc:
            # Any other failure must still leave the session out of its in-flight state.
            logger.exception("unexpected submission failure for session %s", session.session_id)
            self._fail(session, generation, scan_id, f"Непредвиденная ошибка анализа: {exc}")
            return None

        outcome = AnalysisOutcome(
            ecg_scan_id=scan.id,
            patient_id=patient.id,
            file_url=stored.public_url,
            ecgAnalysis=analysis,
            report=report,
        )
        session.result = outcome
        session.state = PipelineState.done
        logger.info("session %s done, risk level %s", session.session_id, report.riskLevel.value)
        return outcome
