# File: backend/app/core/mutagenesis/schemas.py
# Version: v0.1.0
"""
DTOs for requests and responses used by the mutagenesis endpoints and the CLI.

- `MutagenesisDesignRequest` takes either a `mutation` notation string or the
  structured fields (`mutationType`, 1-based `position`, ...).
- `parameters` is an optional partial override merged over the stored parameters
  (backend/app/config/mutagenesis_param.json, with fallback to defaults).
- `MutagenesisDesignResponse.from_result` flattens the engine's dataclasses.
"""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, conint

from .models import (
    CandidatePair,
    DesignWarning,
    HeterodimerCheck,
    Mutation,
    MutagenesisResult,
    PrimerCandidate,
    Protocol,
    StructureCheck,
)

MutationType = Literal["substitution", "insertion", "deletion", "codon_change", "region_substitution"]


class MutagenesisDesignRequest(BaseModel):
    """Request to design mutagenesis primers for one mutation on a template."""
    sequence: str = Field(..., description="Template sequence (raw; whitespace is ignored).")
    mutation: Optional[str] = Field(None, description="Notation, e.g. A123G, K45R, del100-110, ins100_ACGT.")
    mutationType: Optional[MutationType] = None
    position: Optional[conint(ge=1)] = Field(None, description="1-based position (codon number for codon_change).")
    replacement: Optional[str] = Field(None, description="New bases (substitution/insertion/region_substitution).")
    length: Optional[conint(ge=1)] = Field(None, description="Bases removed (deletion/region_substitution).")
    targetAA: Optional[str] = Field(None, description="Target amino acid (codon_change).")
    parameters: Optional[Dict[str, Any]] = None

    def to_mutation(self) -> Mutation:
        """Structured fields → Mutation; raises ValueError when they are incomplete."""
        if self.mutationType is None or self.position is None:
            raise ValueError("Provide either 'mutation' or both 'mutationType' and 'position'")
        kind = self.mutationType
        pos = self.position - 1
        if kind == "codon_change":
            if not self.targetAA:
                raise ValueError("codon_change requires 'targetAA'")
            return Mutation(kind, pos * 3, target_aa=self.targetAA.upper())
        if kind == "deletion":
            return Mutation(kind, pos, deletion_length=self.length or 1)
        if not self.replacement:
            raise ValueError(f"{kind} requires 'replacement'")
        if kind == "region_substitution":
            if not self.length:
                raise ValueError("region_substitution requires 'length'")
            return Mutation(kind, pos, replacement=self.replacement, deletion_length=self.length)
        return Mutation(kind, pos, replacement=self.replacement)


class ParseRequest(BaseModel):
    notation: str


class ParseResponse(BaseModel):
    type: str
    position: int = Field(..., description="0-based position on the template.")
    replacement: str = ""
    deletionLength: int = 0
    targetAA: Optional[str] = None
    original: Optional[str] = None
    notation: Optional[str] = None

    @classmethod
    def from_mutation(cls, m: Mutation) -> "ParseResponse":
        return cls(
            type=m.kind,
            position=m.position,
            replacement=m.replacement,
            deletionLength=m.deletion_length,
            targetAA=m.target_aa,
            original=m.original,
            notation=m.notation,
        )


class WarningInfo(BaseModel):
    kind: str
    severity: str
    message: str
    dg: Optional[float] = None

    @classmethod
    def from_warning(cls, w: DesignWarning) -> "WarningInfo":
        return cls(kind=w.kind, severity=w.severity, message=w.message, dg=w.dg)


class PrimerInfo(BaseModel):
    sequence: str
    start: int
    end: int
    length: int
    tm: float
    gc: float = Field(..., description="GC content in percent.")
    hasGcClamp: bool
    isRescue: bool = False
    foldDg: Optional[float] = None
    terminalDg: Optional[float] = None
    terminalClass: Optional[str] = None
    offTargetCount: Optional[int] = None
    gQuadruplexSeverity: Optional[str] = None
    mismatchTm: Optional[float] = None
    willNotBind: Optional[bool] = None

    @classmethod
    def from_candidate(cls, c: PrimerCandidate) -> "PrimerInfo":
        return cls(
            sequence=c.sequence,
            start=c.start,
            end=c.end,
            length=c.length,
            tm=c.tm,
            gc=round(c.gc * 100.0, 1),
            hasGcClamp=c.has_gc_clamp,
            isRescue=c.is_rescue,
            foldDg=c.fold_dg,
            terminalDg=c.terminal_dg.dg if c.terminal_dg else None,
            terminalClass=c.terminal_dg.classification if c.terminal_dg else None,
            offTargetCount=c.off_target_count,
            gQuadruplexSeverity=c.g_quadruplex.severity if c.g_quadruplex else None,
            mismatchTm=c.mismatch_tm.tm if c.mismatch_tm else None,
            willNotBind=c.mismatch_tm.will_not_bind if c.mismatch_tm else None,
        )


class PairInfo(BaseModel):
    forward: PrimerInfo
    reverse: PrimerInfo
    strategy: str
    tmDiff: float
    penalty: float
    compositeScore: Optional[int] = None
    qualityTier: Optional[str] = None
    scoreBreakdown: Dict[str, Dict[str, float]] = Field(default_factory=dict)
    warnings: List[WarningInfo] = Field(default_factory=list)

    @classmethod
    def from_pair(cls, p: CandidatePair) -> "PairInfo":
        return cls(
            forward=PrimerInfo.from_candidate(p.forward),
            reverse=PrimerInfo.from_candidate(p.reverse),
            strategy=p.strategy,
            tmDiff=p.tm_diff,
            penalty=round(p.penalty, 3),
            compositeScore=p.composite_score,
            qualityTier=p.quality_tier,
            scoreBreakdown=p.score_breakdown,
            warnings=[WarningInfo.from_warning(w) for w in p.warnings],
        )


class StructureInfo(BaseModel):
    foldDg: float
    selfDimerDg: float
    involves3Prime: bool
    threePrimeSeverity: str
    acceptable: bool
    changeFromOriginal: Optional[Dict[str, float]] = None

    @classmethod
    def from_check(cls, s: Optional[StructureCheck]) -> Optional["StructureInfo"]:
        if s is None:
            return None
        return cls(
            foldDg=s.fold_dg,
            selfDimerDg=s.self_dimer_dg,
            involves3Prime=s.involves_3prime,
            threePrimeSeverity=s.three_prime_severity,
            acceptable=s.is_acceptable,
            changeFromOriginal=s.change_from_original,
        )


class HeterodimerInfo(BaseModel):
    dg: float
    maxConsecutive: int
    severity: str
    dimerType: str
    overlapPercent: Optional[float] = None

    @classmethod
    def from_check(cls, h: HeterodimerCheck) -> "HeterodimerInfo":
        return cls(
            dg=h.dg,
            maxConsecutive=h.max_consecutive,
            severity=h.severity,
            dimerType=h.dimer_type,
            overlapPercent=h.overlap_percent,
        )


class ProtocolStepInfo(BaseModel):
    name: str
    temperature: str
    duration: str


class ProtocolInfo(BaseModel):
    name: str
    annealingTemp: float
    steps: List[ProtocolStepInfo]
    notes: List[str]

    @classmethod
    def from_protocol(cls, p: Protocol) -> "ProtocolInfo":
        return cls(
            name=p.name,
            annealingTemp=p.annealing_temp,
            steps=[ProtocolStepInfo(name=s.name, temperature=s.temperature, duration=s.duration) for s in p.steps],
            notes=list(p.notes),
        )


class MutagenesisDesignResponse(BaseModel):
    """Result of a mutagenesis design run."""
    mutationType: str
    position: int
    mutatedSequence: str
    originalCodon: Optional[str] = None
    newCodon: Optional[str] = None
    strategy: str
    usedFallbackStrategy: bool = False
    circularWrapped: bool = False
    annealingTemp: float
    best: PairInfo
    alternates: List[PairInfo] = Field(default_factory=list)
    crossStrategyAlternates: List[PairInfo] = Field(default_factory=list)
    warnings: List[WarningInfo] = Field(default_factory=list)
    structureForward: Optional[StructureInfo] = None
    structureReverse: Optional[StructureInfo] = None
    heterodimer: HeterodimerInfo
    protocol: ProtocolInfo
    positionsExplored: int = 0
    pairsEvaluated: int = 0

    @classmethod
    def from_result(cls, r: MutagenesisResult) -> "MutagenesisDesignResponse":
        return cls(
            mutationType=r.plan.mutation.kind,
            position=r.plan.position,
            mutatedSequence=r.plan.mutated,
            originalCodon=r.plan.original_codon,
            newCodon=r.plan.new_codon,
            strategy=r.strategy,
            usedFallbackStrategy=r.used_fallback_strategy,
            circularWrapped=r.circular_wrapped,
            annealingTemp=r.annealing.annealing_temp,
            best=PairInfo.from_pair(r.best),
            alternates=[PairInfo.from_pair(p) for p in r.alternates],
            crossStrategyAlternates=[PairInfo.from_pair(p) for p in r.cross_strategy_alternates],
            warnings=[WarningInfo.from_warning(w) for w in r.warnings],
            structureForward=StructureInfo.from_check(r.structure_forward),
            structureReverse=StructureInfo.from_check(r.structure_reverse),
            heterodimer=HeterodimerInfo.from_check(r.heterodimer),
            protocol=ProtocolInfo.from_protocol(r.protocol),
            positionsExplored=r.positions_explored,
            pairsEvaluated=r.pairs_evaluated,
        )
