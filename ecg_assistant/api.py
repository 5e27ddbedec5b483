# -*- coding: utf-8 -*-
"""
ECG intake assistant API

Step-by-step ECG intake wizard, AI interpretation and patient-facing reports.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .app_db import init_app_db
from .config import settings
from .errors import RemoteCallError, ServiceNotConfigured
from .files.api import router as files_router
from .functions.api import router as functions_router
from .intake.api import router as intake_router
from .intake.session import registry
from .records.api import router as records_router
from .reference.api import router as reference_router

logger = logging.getLogger(__name__)

app = FastAPI(
    title="ECG Intake Assistant",
    description="ECG upload wizard, AI interpretation and medical reports",
    version="1.0.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Ensure the app DB exists even when lifespan events are not triggered (e.g. some test clients).
init_app_db(settings.app_db_path)


@app.exception_handler(ServiceNotConfigured)
async def _not_configured_handler(request: Request, exc: ServiceNotConfigured):
    return JSONResponse(status_code=500, content={"error": exc.message, "code": exc.code})


@app.exception_handler(RemoteCallError)
async def _remote_error_handler(request: Request, exc: RemoteCallError):
    logger.error("unhandled remote error on %s: %s", request.url.path, exc.message)
    return JSONResponse(status_code=502, content={"error": exc.message})


app.include_router(intake_router)
app.include_router(functions_router)
app.include_router(records_router)
app.include_router(reference_router)
app.include_router(files_router)


@app.get("/api/health")
def health_check():
    return {
        "status": "ok",
        "ai_configured": bool(settings.ai_api_key),
        "model": settings.ai_model,
        **registry.stats(),
    }
