# File: backend/app/api/v1/health.py
# Version: v0.2.0
"""
Simple healthcheck router.

`folding` reports whether the ViennaRNA engine is importable; without it designs
still run but fold ΔG and structure checks are omitted.
"""
from __future__ import annotations

from fastapi import APIRouter

from backend.app.core.config import settings
from backend.app.core.mutagenesis.designer import default_fold_engine

router = APIRouter(tags=["health"])


@router.get("/health")
def health() -> dict[str, str]:
    """Return a minimal health payload."""
    return {
        "status": "ok",
        "app": settings.APP_NAME,
        "folding": "available" if default_fold_engine() is not None else "unavailable",
    }
