# -*- coding: utf-8 -*-

from __future__ import annotations

import importlib
import json
import os
import shutil
import sys
import tempfile
import unittest
from io import BytesIO
from pathlib import Path
from types import SimpleNamespace
from uuid import uuid4

import httpx
from PIL import Image

INTERPRETATION = json.dumps(
    {
        "heart_rate": "72 уд/мин",
        "rhythm": "синусовый",
        "main_findings": ["Без острых изменений"],
        "diagnosis": "Синусовый ритм",
        "urgency": "требует внимания",
    },
    ensure_ascii=False,
)
REPORT = "Состояние стабильное. Рекомендуется плановое наблюдение у кардиолога."


def _png_bytes() -> bytes:
    buf = BytesIO()
    Image.new("RGB", (16, 16), (250, 250, 250)).save(buf, format="PNG")
    return buf.getvalue()


class TestSubmissionPipeline(unittest.IsolatedAsyncioTestCase):
    @classmethod
    def setUpClass(cls) -> None:
        cls._tmp = Path(tempfile.mkdtemp(prefix="ecg-pipeline-test-"))
        data_root = cls._tmp / "data"
        os.environ["ECG_DATA_ROOT"] = str(data_root)
        os.environ["ECG_DB_PATH"] = str(data_root / "ecg.db")
        os.environ["ECG_AI_API_KEY"] = "test-key"
        os.environ["ECG_PUBLIC_BASE_URL"] = "http://testserver"
        os.environ.pop("ECG_FUNCTIONS_BASE_URL", None)

        # Ensure settings/app reflect the env vars above.
        for name in list(sys.modules.keys()):
            if name.startswith("ecg_assistant"):
                sys.modules.pop(name, None)

        cls.m = SimpleNamespace(
            api=importlib.import_module("ecg_assistant.api"),
            app_db=importlib.import_module("ecg_assistant.app_db"),
            config=importlib.import_module("ecg_assistant.config"),
            errors=importlib.import_module("ecg_assistant.errors"),
            gateway=importlib.import_module("ecg_assistant.ai.gateway"),
            client=importlib.import_module("ecg_assistant.pipeline.client"),
            orchestrator=importlib.import_module("ecg_assistant.pipeline.orchestrator"),
            models=importlib.import_module("ecg_assistant.pipeline.models"),
            session=importlib.import_module("ecg_assistant.intake.session"),
            intake_models=importlib.import_module("ecg_assistant.intake.models"),
        )

    @classmethod
    def tearDownClass(cls) -> None:
        shutil.rmtree(cls._tmp, ignore_errors=True)

    def setUp(self) -> None:
        self.replies = {"interpret": (200, INTERPRETATION), "report": (200, REPORT)}
        self.hooks = {}
        self.calls = []
        self.file_requests = []
        self.app = self.m.api.app
        gw = self.m.gateway
        gateway = gw.AIGateway(
            gw.GatewaySettings(
                base_url="http://ai.test/v1",
                api_key="test-key",
                model="test-model",
                timeout=5,
                max_tokens=256,
            ),
            transport=httpx.MockTransport(self._handle),
        )
        self.app.dependency_overrides[gw.get_gateway] = lambda: gateway
        self.functions = self.m.client.FunctionsClient(
            "http://testserver/api/functions",
            transport=httpx.ASGITransport(app=self.app),
        )
        self.orchestrator = self.m.orchestrator.SubmissionOrchestrator(self.functions)

    def tearDown(self) -> None:
        self.app.dependency_overrides.clear()

    def _handle(self, request: httpx.Request) -> httpx.Response:
        if request.url.host != "ai.test":
            self.file_requests.append((request.method, str(request.url)))
            return httpx.Response(200, headers={"content-type": "image/png"})
        body = json.loads(request.content)
        kind = "report" if body["messages"][0]["role"] == "system" else "interpret"
        self.calls.append(kind)
        hook = self.hooks.get(kind)
        if hook:
            hook()
        status, content = self.replies[kind]
        if status != 200:
            return httpx.Response(status, text=content)
        return httpx.Response(200, json={"choices": [{"message": {"role": "assistant", "content": content}}]})

    def _session(self, *, with_file: bool = True):
        session = self.m.session.registry.create(user_id=f"user-{uuid4().hex[:8]}")
        if with_file:
            session.file_slot.offer("ecg.png", "image/png", _png_bytes(), max_bytes=1024 * 1024)
        session.patient.merge(
            self.m.intake_models.PatientIntakeUpdate(
                age=35,
                gender="male",
                height=175,
                weight=70,
                complaints=["Боль в груди"],
            )
        )
        return session

    def _rows(self, sql: str, params: tuple) -> list:
        with self.m.app_db.db_conn(self.m.config.settings.app_db_path) as conn:
            return [dict(r) for r in conn.execute(sql, params).fetchall()]

    async def test_valid_png_reaches_done(self) -> None:
        session = self._session()
        outcome = await self.orchestrator.run(session)

        Urgency = self.m.models.Urgency
        PipelineState = self.m.models.PipelineState
        self.assertIsNotNone(outcome)
        self.assertEqual(session.state, PipelineState.done)
        self.assertIsNone(session.error)
        self.assertIs(session.result, outcome)
        self.assertIn(outcome.report.riskLevel, set(Urgency))
        self.assertEqual(outcome.report.riskLevel, Urgency.attention)
        self.assertTrue(outcome.report.reportText)
        self.assertEqual(outcome.ecgAnalysis.diagnosis, "Синусовый ритм")
        self.assertEqual(self.calls, ["interpret", "report"])
        self.assertEqual(self.file_requests, [("HEAD", outcome.file_url)])
        self.assertTrue(outcome.file_url.startswith(f"http://testserver/files/{session.session_id}/"))

        scans = self._rows("SELECT * FROM ecg_scans WHERE user_id = ?", (session.user_id,))
        self.assertEqual(len(scans), 1)
        self.assertEqual(scans[0]["analysis_status"], "completed")
        self.assertEqual(json.loads(scans[0]["final_analysis"])["urgency"], "требует внимания")
        reports = self._rows("SELECT * FROM medical_reports WHERE ecg_scan_id = ?", (outcome.ecg_scan_id,))
        self.assertEqual(len(reports), 1)
        self.assertEqual(reports[0]["id"], outcome.report.reportId)
        patients = self._rows("SELECT * FROM patients WHERE id = ?", (outcome.patient_id,))
        self.assertEqual(patients[0]["age"], 35)
        self.assertEqual(json.loads(patients[0]["current_complaints"]), ["Боль в груди"])

    async def test_interpreter_500_fails_without_completed_scan_or_report(self) -> None:
        self.replies["interpret"] = (500, "upstream exploded")
        session = self._session()
        outcome = await self.orchestrator.run(session)

        self.assertIsNone(outcome)
        self.assertEqual(session.state, self.m.models.PipelineState.failed)
        self.assertTrue(session.error.startswith("AI ошибка 500"))
        self.assertEqual(self.calls, ["interpret"])

        scans = self._rows("SELECT * FROM ecg_scans WHERE user_id = ?", (session.user_id,))
        self.assertEqual([s["analysis_status"] for s in scans], ["failed"])
        self.assertIn("AI ошибка 500", scans[0]["error"])
        reports = self._rows("SELECT * FROM medical_reports WHERE user_id = ?", (session.user_id,))
        self.assertEqual(reports, [])

    async def test_report_failure_keeps_completed_scan(self) -> None:
        self.replies["report"] = (503, "busy")
        session = self._session()
        outcome = await self.orchestrator.run(session)

        self.assertIsNone(outcome)
        self.assertEqual(session.state, self.m.models.PipelineState.failed)
        self.assertIn("503", session.error)
        scans = self._rows("SELECT * FROM ecg_scans WHERE user_id = ?", (session.user_id,))
        self.assertEqual(scans[0]["analysis_status"], "completed")
        self.assertEqual(self._rows("SELECT * FROM medical_reports WHERE user_id = ?", (session.user_id,)), [])

    async def test_prose_wrapped_fence_is_extracted(self) -> None:
        self.replies["interpret"] = (
            200,
            'Формат ответа: {"diagnosis": "пример"}\n```json\n'
            '{"diagnosis": "Фибрилляция предсердий", "urgency": "требует внимания"}\n```\nГотово.',
        )
        session = self._session()
        outcome = await self.orchestrator.run(session)

        self.assertIsNotNone(outcome)
        self.assertEqual(outcome.ecgAnalysis.diagnosis, "Фибрилляция предсердий")
        self.assertEqual(outcome.ecgAnalysis.heart_rate, "Не определено")

    async def test_unparseable_interpretation_fails(self) -> None:
        self.replies["interpret"] = (200, "Извините, изображение нечитаемо.")
        session = self._session()
        await self.orchestrator.run(session)

        self.assertEqual(session.state, self.m.models.PipelineState.failed)
        self.assertEqual(session.error, "AI не вернул структурированный ответ")

    async def test_keyword_override_in_report(self) -> None:
        self.replies["report"] = (200, "Необходимо срочно обратиться за медицинской помощью.")
        session = self._session()
        outcome = await self.orchestrator.run(session)
        self.assertEqual(outcome.report.riskLevel, self.m.models.Urgency.urgent)

    async def test_reset_during_interpretation_discards_result(self) -> None:
        session = self._session()
        self.hooks["interpret"] = session.reset
        outcome = await self.orchestrator.run(session)

        self.assertIsNone(outcome)
        self.assertEqual(self.calls, ["interpret"])
        self.assertEqual(session.state, self.m.models.PipelineState.idle)
        self.assertIsNone(session.result)
        self.assertIsNone(session.error)
        self.assertEqual(self._rows("SELECT * FROM medical_reports WHERE user_id = ?", (session.user_id,)), [])

    async def test_stored_key_follows_accepted_content_type(self) -> None:
        session = self._session(with_file=False)
        session.file_slot.offer("scan.pdf", "image/png", _png_bytes(), max_bytes=1024 * 1024)
        outcome = await self.orchestrator.run(session)

        self.assertTrue(outcome.file_url.endswith(".png"))
        self.assertEqual(self.file_requests, [("HEAD", outcome.file_url)])
        scans = self._rows("SELECT * FROM ecg_scans WHERE id = ?", (outcome.ecg_scan_id,))
        self.assertEqual(scans[0]["file_type"], "image/png")
        self.assertTrue(scans[0]["storage_key"].endswith(".png"))

    async def test_unexpected_client_error_fails_and_allows_resubmit(self) -> None:
        def broken(request: httpx.Request) -> httpx.Response:
            raise httpx.InvalidURL("bad function url")

        orchestrator = self.m.orchestrator.SubmissionOrchestrator(
            self.m.client.FunctionsClient("http://testserver/api/functions", transport=httpx.MockTransport(broken))
        )
        session = self._session()
        outcome = await orchestrator.run(session)

        self.assertIsNone(outcome)
        self.assertEqual(session.state, self.m.models.PipelineState.failed)
        self.assertIn("bad function url", session.error)
        scans = self._rows("SELECT * FROM ecg_scans WHERE user_id = ?", (session.user_id,))
        self.assertEqual([s["analysis_status"] for s in scans], ["failed"])

        outcome = await self.orchestrator.run(session)
        self.assertIsNotNone(outcome)
        self.assertEqual(session.state, self.m.models.PipelineState.done)

    async def test_in_flight_session_is_refused(self) -> None:
        session = self._session()
        session.state = self.m.models.PipelineState.awaiting_report
        with self.assertRaises(self.m.errors.SubmissionInFlight):
            await self.orchestrator.run(session)
        self.assertEqual(self.calls, [])

    async def test_incomplete_intake_writes_nothing(self) -> None:
        session = self._session(with_file=False)
        with self.assertRaises(self.m.errors.IntakeValidationError):
            await self.orchestrator.run(session)
        self.assertEqual(self._rows("SELECT * FROM patients WHERE user_id = ?", (session.user_id,)), [])
        self.assertEqual(session.state, self.m.models.PipelineState.idle)

    async def test_missing_credential_is_a_config_error(self) -> None:
        settings = self.m.config.settings
        saved = settings.ai_api_key
        settings.ai_api_key = None
        gw = self.m.gateway
        unconfigured = gw.AIGateway(transport=httpx.MockTransport(self._handle))
        self.app.dependency_overrides[gw.get_gateway] = lambda: unconfigured
        try:
            async with httpx.AsyncClient(
                transport=httpx.ASGITransport(app=self.app), base_url="http://testserver"
            ) as client:
                resp = await client.post(
                    "/api/functions/analyze-ecg",
                    json={"ecgScanId": "x", "fileUrl": "http://testserver/files/x.png", "fileType": "image/png"},
                )
            self.assertEqual(resp.status_code, 500)
            self.assertEqual(resp.json()["code"], "not_configured")

            session = self._session()
            await self.orchestrator.run(session)
            self.assertEqual(session.state, self.m.models.PipelineState.failed)
            self.assertIn("API не настроен", session.error)
        finally:
            settings.ai_api_key = saved
        self.assertEqual(self.calls, [])

    async def test_functions_reject_bad_bodies(self) -> None:
        async with httpx.AsyncClient(
            transport=httpx.ASGITransport(app=self.app), base_url="http://testserver"
        ) as client:
            resp = await client.post("/api/functions/analyze-ecg", content=b"")
            self.assertEqual(resp.status_code, 400)
            self.assertEqual(resp.json()["error"], "Empty request body")

            resp = await client.post(
                "/api/functions/analyze-ecg", content=b"{not json", headers={"content-type": "application/json"}
            )
            self.assertEqual(resp.status_code, 400)
            self.assertEqual(resp.json()["error"], "Invalid JSON body")

            resp = await client.post("/api/functions/analyze-ecg", json={"fileUrl": "http://x/a.png"})
            self.assertEqual(resp.status_code, 400)
            self.assertIn("ecgScanId", resp.json()["error"])

            resp = await client.post("/api/functions/generate-report", json={"ecgScanId": "x"})
            self.assertEqual(resp.status_code, 400)
            self.assertIn("patientId", resp.json()["error"])
        self.assertEqual(self.calls, [])


if __name__ == "__main__":
    unittest.main()
