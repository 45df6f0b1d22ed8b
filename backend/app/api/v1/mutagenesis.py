# File: backend/app/api/v1/mutagenesis.py
# Version: v0.1.0
"""
Mutagenesis endpoints (mounted under /api):
- POST /mutagenesis/design       ← design primers for one mutation
- POST /mutagenesis/parse        ← parse a notation string (no design)
- GET  /mutagenesis/parameters   ← current design parameters
- PUT  /mutagenesis/parameters   ← validate (partial override) & persist

Errors:
- 400: the mutation does not apply to the template (invalid base, out of range, no-op)
- 422: malformed request/parameters, or no candidate survived (diagnostic text in `detail`)
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, HTTPException

from backend.app.config.config_mutagenesis import ensure_current_exists, load_current_params, save_current_params
from backend.app.core.mutagenesis.designer import design_mutagenesis_primers
from backend.app.core.mutagenesis.diagnostics import NoCandidateFoundError
from backend.app.core.mutagenesis.errors import MutationInputError
from backend.app.core.mutagenesis.mutations import parse_mutation_notation
from backend.app.core.mutagenesis.parameters import MutagenesisParameters, merge_parameters
from backend.app.core.mutagenesis.schemas import (
    MutagenesisDesignRequest,
    MutagenesisDesignResponse,
    ParseRequest,
    ParseResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/mutagenesis", tags=["mutagenesis"])


@router.get("/parameters", response_model=MutagenesisParameters)
def get_parameters():
    """
    Return the current editable mutagenesis parameters.
    If not initialized, create mutagenesis_param.json from defaults and return it.
    """
    _, params = ensure_current_exists()
    return params


@router.put("/parameters", response_model=MutagenesisParameters)
def update_parameters(payload: Dict[str, Any]):
    """Merge `payload` over the current parameters, validate and persist."""
    try:
        params = merge_parameters(load_current_params(), payload)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    save_current_params(params)
    return params


@router.post("/parse", response_model=ParseResponse)
def parse_notation(payload: ParseRequest):
    try:
        mutation = parse_mutation_notation(payload.notation)
    except MutationInputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return ParseResponse.from_mutation(mutation)


@router.post("/design", response_model=MutagenesisDesignResponse)
def design(payload: MutagenesisDesignRequest):
    """
    Design primers for the requested mutation.
    If `parameters` is omitted, the stored parameters are used unchanged.
    """
    try:
        params = merge_parameters(load_current_params(), payload.parameters or {})
    except ValueError as e:
        raise HTTPException(status_code=422, detail=f"Invalid parameters: {e}")

    try:
        mutation = parse_mutation_notation(payload.mutation) if payload.mutation else payload.to_mutation()
        result = design_mutagenesis_primers(payload.sequence, mutation, params)
    except MutationInputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NoCandidateFoundError as e:
        logger.info("No candidate for %s", payload.mutation or payload.mutationType)
        raise HTTPException(status_code=422, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return MutagenesisDesignResponse.from_result(result)
