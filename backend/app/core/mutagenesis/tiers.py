# File: backend/app/core/mutagenesis/tiers.py
# Version: v0.1.0
"""
Hard-threshold quality tiers.

    excellent   |ΔTm| <= 2 and worst fold ΔG > -3 and composite >= 70 (when scored)
    good        |ΔTm| <= 5 and worst fold ΔG > -5
    acceptable  |ΔTm| <= 8
    poor        everything else

Pairs carrying a rescue-mode primer are kept out of 'excellent' when
`rescue_excluded` is set. Within a tier: composite score descending when both pairs
have one, otherwise penalty ascending. Python's stable sort keeps generation order
for ties, so rankings are deterministic.
"""

from __future__ import annotations

from functools import cmp_to_key
from typing import Dict, List, Optional

from backend.app.core.mutagenesis.constants import (
    ACCEPTABLE,
    ACCEPTABLE_MAX_TM_DIFF,
    EXCELLENT,
    EXCELLENT_MAX_TM_DIFF,
    EXCELLENT_MIN_DG,
    GOOD,
    GOOD_MAX_TM_DIFF,
    GOOD_MIN_DG,
    POOR,
    TIERS,
)
from backend.app.core.mutagenesis.models import CandidatePair


def classify_tier(pair: CandidatePair, min_score: float = 70.0, rescue_excluded: bool = True) -> str:
    tm_diff = abs(pair.forward.tm - pair.reverse.tm)
    worst = pair.worst_dg
    score_too_low = pair.composite_score is not None and pair.composite_score < min_score
    rescue_blocked = rescue_excluded and pair.is_rescue

    if tm_diff <= EXCELLENT_MAX_TM_DIFF and worst > EXCELLENT_MIN_DG and not score_too_low and not rescue_blocked:
        return EXCELLENT
    if tm_diff <= GOOD_MAX_TM_DIFF and worst > GOOD_MIN_DG:
        return GOOD
    if tm_diff <= ACCEPTABLE_MAX_TM_DIFF:
        return ACCEPTABLE
    return POOR


def _compare(a: CandidatePair, b: CandidatePair) -> int:
    if a.composite_score is not None and b.composite_score is not None:
        return b.composite_score - a.composite_score
    if a.penalty < b.penalty:
        return -1
    if a.penalty > b.penalty:
        return 1
    return 0


def assign_tiers(
    pairs: List[CandidatePair],
    min_score: float = 70.0,
    rescue_excluded: bool = True,
) -> Dict[str, List[CandidatePair]]:
    """Bucket pairs into tiers (setting `quality_tier`) and sort each bucket."""
    buckets: Dict[str, List[CandidatePair]] = {t: [] for t in TIERS}
    for pair in pairs:
        tier = classify_tier(pair, min_score, rescue_excluded)
        pair.quality_tier = tier
        buckets[tier].append(pair)
    for tier in TIERS:
        buckets[tier].sort(key=cmp_to_key(_compare))
    return buckets


def rank_by_tier(pairs: List[CandidatePair], min_score: float = 70.0, rescue_excluded: bool = True) -> List[CandidatePair]:
    buckets = assign_tiers(pairs, min_score, rescue_excluded)
    return [p for tier in TIERS for p in buckets[tier]]


def select_best_by_tier(
    pairs: List[CandidatePair],
    min_score: float = 70.0,
    rescue_excluded: bool = True,
) -> Optional[CandidatePair]:
    """Top pair of the first non-empty tier, or None."""
    ranked = rank_by_tier(pairs, min_score, rescue_excluded)
    return ranked[0] if ranked else None
