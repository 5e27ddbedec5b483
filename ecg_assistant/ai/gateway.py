# -*- coding: utf-8 -*-
"""AI gateway — OpenAI-compatible chat completions over httpx."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from ..config import settings
from ..errors import MalformedResponseError, RemoteCallError, ServiceNotConfigured

logger = logging.getLogger(__name__)


@dataclass
class GatewaySettings:
    base_url: str
    api_key: str
    model: str
    timeout: float
    max_tokens: int


def resolve_gateway_settings() -> GatewaySettings:
    if not settings.ai_api_key:
        logger.error("ECG_AI_API_KEY not configured")
        raise ServiceNotConfigured("API не настроен. Обратитесь к администратору.", status_code=500)
    return GatewaySettings(
        base_url=settings.ai_base_url.rstrip("/"),
        api_key=settings.ai_api_key,
        model=settings.ai_model,
        timeout=settings.ai_timeout,
        max_tokens=settings.ai_max_tokens,
    )


class AIGateway:
    """Thin async client; ``transport`` is injectable so tests can answer with httpx.MockTransport."""

    def __init__(
        self,
        cfg: Optional[GatewaySettings] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._cfg = cfg
        self.transport = transport

    @property
    def cfg(self) -> GatewaySettings:
        # Resolved on first use so request validation runs before the credential check.
        if self._cfg is None:
            self._cfg = resolve_gateway_settings()
        return self._cfg

    @property
    def url(self) -> str:
        base = self.cfg.base_url
        if base.endswith("/chat/completions"):
            return base
        return f"{base}/chat/completions"

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.cfg.timeout,
            follow_redirects=True,
            transport=self.transport,
        )

    async def complete(self, messages: List[Dict[str, Any]], *, temperature: float) -> str:
        payload = {
            "model": self.cfg.model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": self.cfg.max_tokens,
        }
        headers = {
            "Authorization": f"Bearer {self.cfg.api_key}",
            "Content-Type": "application/json",
        }
        try:
            async with self.client() as client:
                resp = await client.post(self.url, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            logger.error("AI gateway request failed: %s", exc)
            raise RemoteCallError(f"AI сервис недоступен: {exc}") from exc

        logger.info("AI gateway response status: %s", resp.status_code)
        if resp.status_code >= 400:
            snippet = (resp.text or "").strip()[:200]
            raise RemoteCallError(f"AI ошибка {resp.status_code}: {snippet}", status_code=resp.status_code)

        try:
            data = resp.json()
        except ValueError as exc:
            raise MalformedResponseError("Ошибка обработки ответа ИИ. Попробуйте ещё раз позже.") from exc
        return extract_completion_text(data)


def extract_completion_text(data: object) -> str:
    """Concatenate assistant text from an OpenAI-compatible ``choices`` response."""
    if not isinstance(data, dict):
        return ""
    choices = data.get("choices")
    if not isinstance(choices, list):
        return ""
    out: list[str] = []
    for choice in choices:
        if not isinstance(choice, dict):
            continue
        msg = choice.get("message")
        if isinstance(msg, dict):
            content = msg.get("content")
            if isinstance(content, str) and content:
                out.append(content)
            elif isinstance(content, list):
                for part in content:
                    if isinstance(part, dict) and isinstance(part.get("text"), str):
                        out.append(part["text"])
        maybe_text = choice.get("text")
        if isinstance(maybe_text, str) and maybe_text:
            out.append(maybe_text)
        if out:
            break
    return "".join(out)


def get_gateway() -> AIGateway:
    """FastAPI dependency; tests override it with a gateway bound to a mock transport."""
    return AIGateway()
