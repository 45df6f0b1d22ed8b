# File: backend/app/core/mutagenesis/models.py
# Version: v0.1.0
"""
Records exchanged inside the mutagenesis engine.

Candidates are immutable: Stage 2 enrichment produces a *new* PrimerCandidate via
`with_enrichment`, which refuses to overwrite a field that is already set.
CandidatePair is the only mutable record (its penalty only ever grows).

Coordinates are 0-based, end-exclusive. Forward coordinates refer to the mutated
sequence; reverse coordinates refer to the original template.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple

# --- Mutation kinds ----------------------------------------------------------------------------

SUBSTITUTION = "substitution"
INSERTION = "insertion"
DELETION = "deletion"
CODON_CHANGE = "codon_change"
REGION_SUBSTITUTION = "region_substitution"

MUTATION_TYPES = (SUBSTITUTION, INSERTION, DELETION, CODON_CHANGE, REGION_SUBSTITUTION)

BACK_TO_BACK = "back-to-back"
OVERLAPPING = "overlapping"
STRATEGIES = (BACK_TO_BACK, OVERLAPPING)


@dataclass(frozen=True)
class Mutation:
    """Mutation descriptor (position is 0-based on the original template)."""
    kind: str
    position: int
    replacement: str = ""          # substitution / region_substitution / insertion payload
    deletion_length: int = 0       # deletion / region_substitution
    target_aa: Optional[str] = None
    original: Optional[str] = None  # letter from the notation, checked against the template
    notation: Optional[str] = None


@dataclass(frozen=True)
class MutationPlan:
    """A mutation resolved against a template: what the engine actually searches."""
    mutation: Mutation
    template: str
    mutated: str
    position: int
    insert_length: int       # bases introduced at `position` in the mutated sequence
    deletion_length: int     # bases consumed at `position` in the template
    original_codon: Optional[str] = None
    new_codon: Optional[str] = None
    codon_changes: Tuple[int, ...] = ()

    @property
    def is_deletion(self) -> bool:
        return self.deletion_length > 0 and self.insert_length == 0

    @property
    def is_insertion(self) -> bool:
        return self.insert_length > 0 and self.deletion_length == 0

    @property
    def is_equal_length(self) -> bool:
        return self.insert_length == self.deletion_length


# --- Thermodynamic detail ----------------------------------------------------------------------

@dataclass(frozen=True)
class Mismatch:
    position: int
    primer_base: str
    template_base: str
    is_terminal: bool
    is_3prime_proximal: bool

    @property
    def type(self) -> str:
        return f"{self.primer_base}·{self.template_base}"


@dataclass(frozen=True)
class MismatchedTm:
    tm: Optional[float]
    will_not_bind: bool
    length: int
    mismatch_fraction: int            # percent, rounded
    mismatches: Tuple[Mismatch, ...]
    consecutive_mismatch_count: int
    max_consecutive_mismatches: int
    dh: float
    ds: float
    salt_correction: float

    @property
    def mismatch_count(self) -> int:
        return len(self.mismatches)

    @property
    def has_critical_3prime_mismatch(self) -> bool:
        return any(m.is_3prime_proximal for m in self.mismatches)

    @property
    def has_terminal_mismatch(self) -> bool:
        return any(m.is_terminal for m in self.mismatches)

    @property
    def has_5prime_mismatch(self) -> bool:
        return any(m.position == 0 for m in self.mismatches)

    @property
    def has_3prime_mismatch(self) -> bool:
        return any(m.position == self.length - 1 for m in self.mismatches)


@dataclass(frozen=True)
class TerminalDG:
    dg: float
    classification: str      # loose | ideal | strong | sticky | invalid
    is_ideal: bool
    terminal_sequence: str


@dataclass(frozen=True)
class GQuadruplexRisk:
    score: float
    has_g4_motif: bool
    has_gggg: bool
    ggg_count: int
    severity: str            # ok | caution | warning | critical
    message: str


# --- Warnings ------------------------------------------------------------------------------------

WARNING_KINDS = frozenset({
    "hairpin",
    "self-dimer",
    "3prime-structure",
    "stability-change",
    "heterodimer",
    "incomplete-overlap",
    "off-target",
    "g-quadruplex",
    "rescue-mode",
    "context-issue",
    "mismatch-binding",
    "strategy-fallback",
})

SEVERITIES = ("info", "caution", "warning", "critical")


@dataclass(frozen=True)
class DesignWarning:
    kind: str
    severity: str
    message: str
    dg: Optional[float] = None

    def __post_init__(self) -> None:
        if self.kind not in WARNING_KINDS:
            raise ValueError(f"Unknown warning kind: {self.kind!r}")
        if self.severity not in SEVERITIES:
            raise ValueError(f"Unknown warning severity: {self.severity!r}")


# --- Candidates ----------------------------------------------------------------------------------

_ENRICHMENT_FIELDS = ("fold_dg", "terminal_dg", "off_target_count", "g_quadruplex", "mismatch_tm")


@dataclass(frozen=True)
class PrimerCandidate:
    sequence: str
    start: int
    end: int
    tm: float
    gc: float
    has_gc_clamp: bool
    is_rescue: bool = False
    template_region: Optional[str] = None

    # Stage 2 (top-N only)
    fold_dg: Optional[float] = None
    terminal_dg: Optional[TerminalDG] = None
    off_target_count: Optional[int] = None
    g_quadruplex: Optional[GQuadruplexRisk] = None
    mismatch_tm: Optional[MismatchedTm] = None

    @property
    def length(self) -> int:
        return len(self.sequence)

    def with_enrichment(self, **values: Any) -> "PrimerCandidate":
        for key, value in values.items():
            if key not in _ENRICHMENT_FIELDS:
                raise ValueError(f"{key} is not an enrichment field")
            if getattr(self, key) is not None and value is not None:
                raise ValueError(f"{key} already set on candidate {self.sequence}")
        return replace(self, **values)


@dataclass
class CandidatePair:
    forward: PrimerCandidate
    reverse: PrimerCandidate
    strategy: str
    tm_diff: float
    penalty: float = 0.0
    split_offset: int = 0
    composite_score: Optional[int] = None
    score_breakdown: Dict[str, Dict[str, float]] = field(default_factory=dict)
    quality_tier: Optional[str] = None
    warnings: List[DesignWarning] = field(default_factory=list)
    left_flank: Optional[int] = None
    right_flank: Optional[int] = None
    enriched: bool = False

    def add_penalty(self, amount: float) -> None:
        if amount < 0:
            raise ValueError("penalty increments must be non-negative")
        self.penalty += amount

    @property
    def is_rescue(self) -> bool:
        return self.forward.is_rescue or self.reverse.is_rescue

    @property
    def worst_dg(self) -> float:
        return min(self.forward.fold_dg or 0.0, self.reverse.fold_dg or 0.0)

    def key(self) -> Tuple[str, int, str, int]:
        return (self.forward.sequence, self.forward.start, self.reverse.sequence, self.reverse.start)


# --- Outputs -------------------------------------------------------------------------------------

@dataclass(frozen=True)
class AnnealingResult:
    tm_forward: float
    tm_reverse: float
    tm_lower: float
    tm_higher: float
    tm_difference: float
    annealing_temp: float
    is_capped: bool


@dataclass(frozen=True)
class ProtocolStep:
    name: str
    temperature: str
    duration: str


@dataclass(frozen=True)
class Protocol:
    name: str
    annealing_temp: float
    steps: Tuple[ProtocolStep, ...]
    notes: Tuple[str, ...]


@dataclass
class StructureCheck:
    hairpin_dg: float
    self_dimer_dg: float
    fold_dg: float
    involves_3prime: bool
    three_prime_severity: str
    warnings: List[DesignWarning] = field(default_factory=list)
    change_from_original: Optional[Dict[str, float]] = None

    @property
    def is_acceptable(self) -> bool:
        return not any(w.severity == "critical" for w in self.warnings)


@dataclass
class HeterodimerCheck:
    dg: float
    max_consecutive: int
    offset: Optional[int]
    involves_3prime_forward: bool
    involves_3prime_reverse: bool
    severity: str          # safe | warning | critical
    dimer_type: str        # none | expected_overlap | ligation_junction | 3prime_extensible | internal_with_3prime | internal | minor
    warnings: List[DesignWarning] = field(default_factory=list)
    overlap_percent: Optional[float] = None

    @property
    def is_acceptable(self) -> bool:
        return self.severity != "critical" and not any(w.severity == "critical" for w in self.warnings)


@dataclass
class MutagenesisResult:
    plan: MutationPlan
    best: CandidatePair
    strategy: str
    annealing: AnnealingResult
    structure_forward: Optional[StructureCheck]
    structure_reverse: Optional[StructureCheck]
    heterodimer: HeterodimerCheck
    protocol: Protocol
    alternates: List[CandidatePair] = field(default_factory=list)
    cross_strategy_alternates: List[CandidatePair] = field(default_factory=list)
    warnings: List[DesignWarning] = field(default_factory=list)
    circular_wrapped: bool = False
    used_fallback_strategy: bool = False
    positions_explored: int = 0
    pairs_evaluated: int = 0

    @property
    def forward(self) -> PrimerCandidate:
        return self.best.forward

    @property
    def reverse(self) -> PrimerCandidate:
        return self.best.reverse

    @property
    def quality_tier(self) -> Optional[str]:
        return self.best.quality_tier

    @property
    def composite_score(self) -> Optional[int]:
        return self.best.composite_score
