# File: backend/app/core/mutagenesis/parameters.py
# Version: v1.0.0
"""
Pydantic model for mutagenesis design parameters (camelCase keys, frozen).

One immutable value is built per request with `merge_parameters(base, overrides)`;
nothing in the engine mutates parameters or relies on module-level mutable defaults.

Usage:
    from backend.app.core.mutagenesis.parameters import MutagenesisParameters, merge_parameters
"""

from __future__ import annotations

from typing import Any, Dict, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, confloat, conint


class Weights(BaseModel):
    """Composite-score weights (0 disables a feature)."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    offTarget: confloat(ge=0) = 0.25
    terminal3DG: confloat(ge=0) = 0.20
    gQuadruplexRev: confloat(ge=0) = 0.15
    gQuadruplexFwd: confloat(ge=0) = 0.05
    tmRev: confloat(ge=0) = 0.05
    hairpinRev: confloat(ge=0) = 0.05
    heterodimer: confloat(ge=0) = 0.06
    gcRev: confloat(ge=0) = 0.04
    selfDimerFwd: confloat(ge=0) = 0.04
    selfDimerRev: confloat(ge=0) = 0.04
    threePrimeCompFwd: confloat(ge=0) = 0.04
    threePrimeCompRev: confloat(ge=0) = 0.04
    gcFwd: confloat(ge=0) = 0.02
    gcClampFwd: confloat(ge=0) = 0.03
    gcClampRev: confloat(ge=0) = 0.03
    tmDiff: confloat(ge=0) = 0.03
    tmFwd: confloat(ge=0) = 0.02
    hairpinFwd: confloat(ge=0) = 0.02
    homopolymerFwd: confloat(ge=0) = 0.02
    homopolymerRev: confloat(ge=0) = 0.02
    lengthFwd: confloat(ge=0) = 0.01
    lengthRev: confloat(ge=0) = 0.01


class MutagenesisParameters(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    # Lengths
    minAnnealingLength: conint(ge=6) = Field(15, description="Minimum 3' annealing length (back-to-back)")
    maxAnnealingLength: conint(ge=6) = Field(35, description="Maximum 3' annealing length (back-to-back)")
    minPrimerLength: conint(ge=6) = Field(15, description="Minimum total primer length")
    maxPrimerLength: conint(ge=6) = Field(60, description="Maximum total primer length")
    minFlankingLength: conint(ge=1) = Field(10, description="Minimum flank per side (overlapping)")
    maxFlankingLength: conint(ge=1) = Field(25, description="Maximum flank per side (overlapping)")

    # Temperatures (°C)
    minTm: confloat(ge=0) = Field(55.0, description="Minimum primer Tm")
    maxTm: confloat(ge=0) = Field(72.0, description="Normal maximum primer Tm")
    rescueMaxTm: confloat(ge=0) = Field(76.0, description="Hard Tm ceiling used in rescue mode")

    # Composition
    minGC: confloat(ge=0, le=1) = Field(0.40, description="Minimum GC fraction")
    maxGC: confloat(ge=0, le=1) = Field(0.60, description="Maximum GC fraction")
    maxPolyN: conint(ge=2) = Field(4, description="Homopolymer run length flagged by the local context screen")
    minDg: float = Field(-5.0, description="Fold ΔG floor (kcal/mol) for overlapping designs")
    gcClampRequired: bool = True

    # Off-targets
    checkOffTargets: bool = False
    maxOffTargets: conint(ge=0) = 2

    # Strategy & template
    strategy: Literal["back-to-back", "overlapping"] = "back-to-back"
    organism: Optional[Literal["ecoli", "human"]] = "ecoli"
    circular: bool = True
    confineTo5Tails: bool = False
    exhaustiveSearch: bool = False

    # Reaction conditions
    primerConc: confloat(gt=0) = Field(500.0, description="Primer concentration (nM)")
    naConc: confloat(ge=0) = Field(50.0, description="Na+ (mM)")
    mgConc: confloat(ge=0) = Field(2.0, description="Mg2+ (mM)")
    foldTemperature: float = Field(37.0, description="Folding temperature (°C)")

    # Tiering
    minScoreForExcellent: confloat(ge=0, le=100) = 70.0
    rescueExcludedFromExcellent: bool = True

    weights: Weights = Field(default_factory=Weights)

    def model_post_init(self, __context) -> None:  # pydantic v2 hook
        if self.maxAnnealingLength < self.minAnnealingLength:
            raise ValueError("maxAnnealingLength must be >= minAnnealingLength")
        if self.maxPrimerLength < self.minPrimerLength:
            raise ValueError("maxPrimerLength must be >= minPrimerLength")
        if self.maxFlankingLength < self.minFlankingLength:
            raise ValueError("maxFlankingLength must be >= minFlankingLength")
        if self.maxTm < self.minTm:
            raise ValueError("maxTm must be >= minTm")
        if self.rescueMaxTm < self.maxTm:
            raise ValueError("rescueMaxTm must be >= maxTm")
        if self.maxGC < self.minGC:
            raise ValueError("maxGC must be >= minGC")

    def weight_table(self) -> Dict[str, float]:
        return self.weights.model_dump()


def _deep_merge(base: Dict[str, Any], overrides: Mapping[str, Any]) -> Dict[str, Any]:
    out = dict(base)
    for key, value in overrides.items():
        if isinstance(value, Mapping) and isinstance(out.get(key), dict):
            out[key] = _deep_merge(out[key], value)
        else:
            out[key] = value
    return out


def merge_parameters(
    base: Optional[MutagenesisParameters] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> MutagenesisParameters:
    """
    Build a validated parameter value from `base` plus (possibly nested) overrides.

    `base` is never modified. Nested mappings (weights) are merged key by key.
    """
    root = base if base is not None else MutagenesisParameters()
    if not overrides:
        return root
    return MutagenesisParameters.model_validate(_deep_merge(root.model_dump(), overrides))
