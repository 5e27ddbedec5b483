from __future__ import annotations

import os
from pathlib import Path
from typing import List


class Settings:
    """Centralized configuration for the ECG intake backend."""

    def __init__(self) -> None:
        base_dir = Path(__file__).resolve().parent
        repo_root = base_dir.parent
        data_root_default = repo_root / "data"

        self.data_root: Path = Path(
            os.environ.get("ECG_DATA_ROOT") or data_root_default
        ).expanduser()
        self.app_db_path: Path = Path(
            os.environ.get("ECG_DB_PATH") or (self.data_root / "ecg.db")
        ).expanduser()
        self.files_root: Path = self.data_root / "ecg-files"
        self.max_upload_mb: int = int(os.environ.get("ECG_MAX_UPLOAD_MB") or "20")
        self.session_ttl_minutes: float = float(os.environ.get("ECG_SESSION_TTL_MINUTES") or "60")

        # ---- AI gateway (OpenAI-compatible chat completions) ----
        self.ai_api_key: str | None = os.environ.get("ECG_AI_API_KEY") or None
        self.ai_base_url: str = os.environ.get(
            "ECG_AI_BASE_URL", "https://ai.gateway.lovable.dev/v1"
        )
        self.ai_model: str = os.environ.get("ECG_AI_MODEL", "google/gemini-2.5-flash")
        self.ai_timeout: float = float(os.environ.get("ECG_AI_TIMEOUT", "60"))
        self.ai_max_tokens: int = int(os.environ.get("ECG_AI_MAX_TOKENS", "2048"))
        self.interpret_temperature: float = float(
            os.environ.get("ECG_INTERPRET_TEMPERATURE", "0.3")
        )
        self.report_temperature: float = float(
            os.environ.get("ECG_REPORT_TEMPERATURE", "0.7")
        )

        # ---- Public URLs ----
        self.host: str = os.environ.get("ECG_HOST", "127.0.0.1")
        self.port: int = int(os.environ.get("ECG_PORT", "8000"))
        self.public_base_url: str = (
            os.environ.get("ECG_PUBLIC_BASE_URL") or f"http://{self.host}:{self.port}"
        ).rstrip("/")
        # The orchestrator reaches the analysis functions over HTTP, like any remote caller.
        self.functions_base_url: str = (
            os.environ.get("ECG_FUNCTIONS_BASE_URL") or f"{self.public_base_url}/api/functions"
        ).rstrip("/")
        self.functions_timeout: float = float(os.environ.get("ECG_FUNCTIONS_TIMEOUT", "180"))

        self.log_level: str = os.environ.get("ECG_LOG_LEVEL", "INFO").upper()

        cors = os.environ.get("ECG_CORS_ORIGINS", "*")
        if cors.strip() == "*":
            self.cors_origins: List[str] = ["*"]
        else:
            self.cors_origins = [
                origin.strip() for origin in cors.split(",") if origin.strip()
            ]

    @property
    def max_upload_bytes(self) -> int:
        return int(self.max_upload_mb) * 1024 * 1024


settings = Settings()
