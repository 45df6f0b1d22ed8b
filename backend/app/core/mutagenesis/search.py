# File: backend/app/core/mutagenesis/search.py
# Version: v0.3.0
"""
Sliding-window split-point search and the two-stage pipeline.

Stage 1: for each split offset (0, -1, +1, -2, +2; a single offset for deletions and for
overlapping designs) generate pairs, add the local-context penalty, pool them
(first occurrence of a pair wins) and sort by penalty.
Stage 2: enrich the top-N (10, or 100 in exhaustive mode) and rank them by tier.

Circular templates
------------------
When the template is circular and the mutation sits within
(maxAnnealingLength + maxFlankingLength) of an edge, the search runs on a working copy
with one extra template copy on the short side(s):

    working template = [T] + T + [T]
    working mutated  = [T] + M + [T]

Returned coordinates are mapped back: reverse primers (template frame) modulo len(T),
forward primers into the mutated frame modulo len(M). `end` is normalized into
(0, len] so a primer spanning the origin has end < start.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Tuple

from backend.app.core.mutagenesis.constants import CONTEXT_PENALTY, SPLIT_OFFSETS, TOP_N_DEFAULT, TOP_N_EXHAUSTIVE
from backend.app.core.mutagenesis.context import check_sequence_context
from backend.app.core.mutagenesis.diagnostics import SearchDiagnostics
from backend.app.core.mutagenesis.fold import FoldEngine
from backend.app.core.mutagenesis.generator import generate_back_to_back, generate_overlapping
from backend.app.core.mutagenesis.models import (
    BACK_TO_BACK,
    OVERLAPPING,
    CandidatePair,
    DesignWarning,
    MutationPlan,
)
from backend.app.core.mutagenesis.pair_scorer import EnrichmentContext, enrich_pair
from backend.app.core.mutagenesis.parameters import MutagenesisParameters
from backend.app.core.mutagenesis.tiers import rank_by_tier

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorkingTemplate:
    template: str
    mutated: str
    position: int
    plan: MutationPlan
    prefix_copies: int = 0
    suffix_copies: int = 0

    @property
    def wrapped(self) -> bool:
        return bool(self.prefix_copies or self.suffix_copies)

    @classmethod
    def build(cls, plan: MutationPlan, circular: bool, margin: int) -> "WorkingTemplate":
        n = len(plan.template)
        upstream = plan.position
        downstream = n - (plan.position + plan.deletion_length)
        prefix = 1 if circular and upstream < margin else 0
        suffix = 1 if circular and downstream < margin else 0
        if not (prefix or suffix):
            return cls(plan.template, plan.mutated, plan.position, plan)
        logger.info(
            "Circular template: wrapping (upstream=%d, downstream=%d, margin=%d)", upstream, downstream, margin
        )
        return cls(
            template=plan.template * (prefix + 1 + suffix),
            mutated=plan.template * prefix + plan.mutated + plan.template * suffix,
            position=plan.position + n * prefix,
            plan=plan,
            prefix_copies=prefix,
            suffix_copies=suffix,
        )

    def _template_to_mutated(self, t: int) -> int:
        p = self.plan.position
        if t < p:
            return t
        if t >= p + self.plan.deletion_length:
            return t - self.plan.deletion_length + self.plan.insert_length
        return p

    def template_coord(self, y: int) -> int:
        return y % len(self.plan.template)

    def mutated_coord(self, y: int) -> int:
        if not self.wrapped:
            return y
        n = len(self.plan.template)
        m = len(self.plan.mutated)
        shifted = y - n * self.prefix_copies
        if 0 <= shifted < m:
            return shifted
        t = shifted - m if shifted >= m else shifted + n
        return self._template_to_mutated(t % n) % m

    @staticmethod
    def _span(start: int, length: int, size: int) -> Tuple[int, int]:
        return start, ((start + length - 1) % size) + 1

    def normalize(self, pair: CandidatePair) -> None:
        if not self.wrapped:
            return
        n = len(self.plan.template)
        m = len(self.plan.mutated)
        f = pair.forward
        fs, fe = self._span(self.mutated_coord(f.start), f.end - f.start, m)
        pair.forward = replace(f, start=fs, end=fe)
        r = pair.reverse
        if pair.strategy == OVERLAPPING:
            pair.reverse = replace(r, start=fs, end=fe)
        else:
            rs, re_ = self._span(self.template_coord(r.start), r.end - r.start, n)
            pair.reverse = replace(r, start=rs, end=re_)


@dataclass
class SearchOutcome:
    strategy: str
    ranked: List[CandidatePair]
    pooled: int
    wrapped: bool

    @property
    def best(self) -> Optional[CandidatePair]:
        return self.ranked[0] if self.ranked else None


def split_offsets(plan: MutationPlan, strategy: str) -> Tuple[int, ...]:
    if plan.is_deletion or strategy == OVERLAPPING:
        return (0,)
    return SPLIT_OFFSETS


def apply_context_penalty(pair: CandidatePair, work: WorkingTemplate, max_poly_n: int) -> None:
    """Add CONTEXT_PENALTY when the ±6 nt window around the split point is difficult."""
    pos = pair.forward.start if pair.strategy == BACK_TO_BACK else work.position
    check = check_sequence_context(work.mutated, pos, max_poly_n)
    if check.has_problems:
        pair.add_penalty(CONTEXT_PENALTY)
        pair.warnings.append(DesignWarning(
            "context-issue", "caution", f"Difficult local sequence context: {check.describe()}"
        ))


def run_search(
    plan: MutationPlan,
    params: MutagenesisParameters,
    strategy: str,
    diag: SearchDiagnostics,
    fold_engine: Optional[FoldEngine] = None,
) -> SearchOutcome:
    """
    Stage 1 generation over all split offsets, then Stage 2 enrichment of the top-N.

    Returns an outcome whose `ranked` list is empty when nothing was generated; raising is
    left to the caller so a fallback strategy can still be tried.
    """
    margin = params.maxAnnealingLength + params.maxFlankingLength
    work = WorkingTemplate.build(plan, params.circular, margin)
    if strategy not in diag.strategies_tried:
        diag.strategies_tried.append(strategy)

    pool: Dict[Tuple[str, int, str, int], CandidatePair] = {}
    for offset in split_offsets(plan, strategy):
        if strategy == BACK_TO_BACK:
            batch = generate_back_to_back(
                work.template, work.mutated, work.position,
                plan.insert_length, plan.deletion_length, params, diag, shift=offset,
            )
        else:
            batch = generate_overlapping(
                work.template, work.mutated, work.position,
                plan.insert_length, plan.deletion_length, params, diag,
            )
        for pair in batch:
            pair.split_offset = offset
            apply_context_penalty(pair, work, params.maxPolyN)
            work.normalize(pair)
            pool.setdefault(pair.key(), pair)
        logger.debug("%s offset %+d: %d pairs (pool %d)", strategy, offset, len(batch), len(pool))

    pairs = sorted(pool.values(), key=lambda p: p.penalty)
    top_n = TOP_N_EXHAUSTIVE if params.exhaustiveSearch else TOP_N_DEFAULT
    ctx = EnrichmentContext(
        template=plan.template,
        mutated=plan.mutated,
        params=params,
        fold_engine=fold_engine,
        circular=params.circular,
    )
    enriched = [enrich_pair(p, ctx) for p in pairs[:top_n]]
    ranked = rank_by_tier(enriched, params.minScoreForExcellent, params.rescueExcludedFromExcellent)

    logger.info(
        "%s search: %d pooled, %d enriched, best tier=%s",
        strategy, len(pairs), len(enriched), ranked[0].quality_tier if ranked else None,
    )
    return SearchOutcome(strategy=strategy, ranked=ranked, pooled=len(pairs), wrapped=work.wrapped)
