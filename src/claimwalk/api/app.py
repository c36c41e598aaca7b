# src/claimwalk/api/app.py
"""
FastAPI application wiring.

This file creates the `FastAPI` instance and mounts the routers.
Business logic lives in the engine packages; `claimwalk.api.routes` only adapts payloads.
"""

from __future__ import annotations

import os

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

from claimwalk.config.settings import get_settings
from claimwalk.core.logging import configure_logging

from .routes import router

configure_logging()

app = FastAPI(title=f"{get_settings().app.name} API", version="0.1.0")

# CORS: allow browser clients listed in CLAIMWALK_CORS_ORIGINS="http://localhost:8003,..."
cors_origins = [s.strip() for s in os.getenv("CLAIMWALK_CORS_ORIGINS", "").split(",") if s.strip()]
if cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.include_router(router)
