# File: backend/app/api/v1/api.py
# Version: v0.8.0
"""
v1 API aggregator.

Routers included under /api:
- health
- mutagenesis (primer design, notation parsing, parameters)
"""
from __future__ import annotations

from fastapi import APIRouter

from . import health as health_router
from . import mutagenesis as mutagenesis_router

# All v1 JSON APIs live under /api via api_router
api_router = APIRouter()
api_router.include_router(health_router.router)
api_router.include_router(mutagenesis_router.router)
