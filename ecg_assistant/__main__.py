# -*- coding: utf-8 -*-
"""Run the API with uvicorn: ``python -m ecg_assistant``."""

from __future__ import annotations

import logging

import uvicorn

from .config import settings


def run() -> None:
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run("ecg_assistant.api:app", host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()
