# -*- coding: utf-8 -*-
"""Pipeline — HTTP client for the two analysis functions."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from ..config import settings
from ..errors import MalformedResponseError, RemoteCallError, ServiceNotConfigured

logger = logging.getLogger(__name__)


class FunctionsClient:
    """Invokes ``analyze-ecg`` / ``generate-report`` and turns error bodies into exceptions."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = (base_url or settings.functions_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.functions_timeout
        self.transport = transport

    async def invoke(self, name: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.base_url}/{name}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                resp = await client.post(url, json=payload)
        except httpx.HTTPError as exc:
            logger.error("function %s unreachable: %s", name, exc)
            raise RemoteCallError(f"Сервис анализа недоступен: {exc}") from exc

        try:
            data = resp.json()
        except ValueError as exc:
            if resp.status_code >= 400:
                raise RemoteCallError(
                    f"Ошибка сервиса анализа ({resp.status_code})", status_code=resp.status_code
                ) from exc
            raise MalformedResponseError(f"Некорректный ответ функции {name}") from exc

        if resp.status_code >= 400 or (isinstance(data, dict) and data.get("error")):
            message = data.get("error") if isinstance(data, dict) else None
            message = str(message or f"Ошибка сервиса анализа ({resp.status_code})")
            logger.error("function %s failed (%s): %s", name, resp.status_code, message)
            if isinstance(data, dict) and data.get("code") == ServiceNotConfigured.code:
                raise ServiceNotConfigured(message, status_code=resp.status_code)
            raise RemoteCallError(message, status_code=resp.status_code)

        if not isinstance(data, dict):
            raise MalformedResponseError(f"Некорректный ответ функции {name}")
        return data

    async def analyze_ecg(self, *, ecg_scan_id: str, file_url: str, file_type: str) -> Dict[str, Any]:
        return await self.invoke(
            "analyze-ecg",
            {"ecgScanId": ecg_scan_id, "fileUrl": file_url, "fileType": file_type},
        )

    async def generate_report(
        self,
        *,
        ecg_scan_id: str,
        patient_id: str,
        user_id: str,
        ecg_analysis: Dict[str, Any],
        patient_data: Dict[str, Any],
    ) -> Dict[str, Any]:
        return await self.invoke(
            "generate-report",
            {
                "ecgScanId": ecg_scan_id,
                "patientId": patient_id,
                "userId": user_id,
                "ecgAnalysis": ecg_analysis,
                "patientData": patient_data,
            },
        )


def get_functions_client() -> FunctionsClient:
    """FastAPI dependency; tests point it at the app itself through httpx.ASGITransport."""
    return FunctionsClient()
