# File: backend/app/core/mutagenesis/scoring.py
# Version: v0.2.0
"""
Composite scoring for mutagenic primer pairs.

Higher score is better. Each feature is normalized to [0, 1] with a
piecewise-logistic curve (flat 1.0 inside the optimal range, linear decay to 0.7
across the acceptable range, logistic tail outside), then combined as a
weighted mean and scaled to 0..100.

Feature keys (see DEFAULT_WEIGHTS):
- per-primer: tm*, gc*, length*, hairpin*, selfDimer*, gcClamp*,
  threePrimeComp*, homopolymer*, gQuadruplex*  (Fwd / Rev suffix)
- pair: tmDiff, heterodimer, offTarget, terminal3DG
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Dict, Mapping, Optional

from backend.app.core.mutagenesis.models import GQuadruplexRisk

DEFAULT_WEIGHTS: Dict[str, float] = {
    "offTarget": 0.25,
    "terminal3DG": 0.20,
    "gQuadruplexRev": 0.15,
    "gQuadruplexFwd": 0.05,
    "tmRev": 0.05,
    "hairpinRev": 0.05,
    "heterodimer": 0.06,
    "gcRev": 0.04,
    "selfDimerFwd": 0.04,
    "selfDimerRev": 0.04,
    "threePrimeCompFwd": 0.04,
    "threePrimeCompRev": 0.04,
    "gcFwd": 0.02,
    "gcClampFwd": 0.03,
    "gcClampRev": 0.03,
    "tmDiff": 0.03,
    "tmFwd": 0.02,
    "hairpinFwd": 0.02,
    "homopolymerFwd": 0.02,
    "homopolymerRev": 0.02,
    "lengthFwd": 0.01,
    "lengthRev": 0.01,
}

_G4_MOTIF = re.compile(r"G{3,}[ATGC]{1,7}G{3,}[ATGC]{1,7}G{3,}[ATGC]{1,7}G{3,}")
_GGG_RUN = re.compile(r"G{3,}")
_POLY_AT_3P = re.compile(r"[AT]{4}")


def _clamp(a: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, a))


def piecewise_logistic(
    value: float,
    optimal_low: float,
    optimal_high: float,
    acceptable_low: float,
    acceptable_high: float,
    steepness: float,
) -> float:
    if optimal_low <= value <= optimal_high:
        return 1.0
    if acceptable_low <= value < optimal_low:
        span = optimal_low - acceptable_low
        return 1.0 - 0.3 * (optimal_low - value) / span if span > 0 else 0.7
    if optimal_high < value <= acceptable_high:
        span = acceptable_high - optimal_high
        return 1.0 - 0.3 * (value - optimal_high) / span if span > 0 else 0.7
    excess = acceptable_low - value if value < acceptable_low else value - acceptable_high
    return 0.7 / (1.0 + math.exp(steepness * excess))


def _threshold_decay(dg: float, threshold: float, steepness: float) -> float:
    # ΔG above the threshold is harmless; below it the score decays exponentially.
    if dg >= threshold:
        return 1.0
    return math.exp(-steepness * (threshold - dg))


# --- Sub-scores --------------------------------------------------------------------------------

def score_tm(tm: float) -> float:
    return piecewise_logistic(tm, 55.0, 60.0, 50.0, 65.0, 0.5)


def score_gc(gc_percent: float) -> float:
    return piecewise_logistic(gc_percent, 40.0, 60.0, 30.0, 70.0, 0.15)


def score_length(length: int) -> float:
    return piecewise_logistic(float(length), 18.0, 24.0, 15.0, 30.0, 0.3)


def score_terminal_3dg(dg: float) -> float:
    if -11.0 <= dg <= -6.0:
        return 1.0
    if dg > -6.0:
        return math.exp(-0.3 * (dg + 6.0))
    return math.exp(-0.15 * (-11.0 - dg))


def score_tm_diff(diff: float) -> float:
    d = abs(diff)
    if d <= 3.0:
        return 1.0
    if d <= 5.0:
        return 0.9 - 0.1 * (d - 3.0) / 2.0
    if d <= 8.0:
        return 0.7 - 0.2 * (d - 5.0) / 3.0
    return 0.5 * math.exp(-0.2 * (d - 8.0))


def score_hairpin(dg: float) -> float:
    return _threshold_decay(dg, -3.0, 0.8)


def score_homodimer(dg: float) -> float:
    return _threshold_decay(dg, -6.0, 0.5)


def score_heterodimer(dg: float) -> float:
    return _threshold_decay(dg, -6.0, 0.5)


def score_off_target(count: int) -> float:
    if count <= 0:
        return 1.0
    if count >= 3:
        return 0.0
    return max(0.0, 1.0 - 0.3 * (3 ** (count - 1)))


def score_gc_clamp(seq: str) -> float:
    tail = seq[-2:].upper()
    gc = sum(1 for c in tail if c in "GC")
    return {0: 0.5, 1: 1.0, 2: 0.85}[gc]


def score_3prime_composition(seq: str, terminal_dg: Optional[float] = None) -> float:
    """
    3' end quality: 40% GC clamp, 35% terminal ΔG, 25% sequence pattern.
    """
    s = seq.upper()
    clamp = score_gc_clamp(s)

    if terminal_dg is None:
        dg_part = 1.0
    elif terminal_dg > -6.0:
        dg_part = max(0.2, 1.0 - 0.12 * (terminal_dg + 6.0))
    elif terminal_dg < -11.0:
        dg_part = max(0.5, 1.0 - 0.05 * (-11.0 - terminal_dg))
    else:
        dg_part = 1.0

    last5 = s[-5:]
    pattern = 1.0
    if _POLY_AT_3P.search(last5):
        pattern -= 0.4
    if s[-1:] not in ("G", "C"):
        pattern -= 0.15
    if sum(1 for c in last5 if c in "GC") <= 1:
        pattern -= 0.15
    if "AAA" in last5 or "TTT" in last5:
        pattern -= 0.1
    pattern = max(0.0, pattern)

    return round(0.40 * clamp + 0.35 * dg_part + 0.25 * pattern, 3)


def score_homopolymer(seq: str, max_run: int = 3) -> float:
    longest = 0
    run = 0
    prev = ""
    for c in seq.upper():
        run = run + 1 if c == prev else 1
        prev = c
        longest = max(longest, run)
    if longest <= max_run:
        return 1.0
    return max(0.3, 1.0 - 0.15 * (longest - max_run))


def analyze_g_quadruplex(seq: str) -> GQuadruplexRisk:
    s = seq.upper()
    ggg_count = len(_GGG_RUN.findall(s))
    if _G4_MOTIF.search(s):
        return GQuadruplexRisk(0.0, True, "GGGG" in s, ggg_count, "critical",
                               "G-quadruplex motif (four G-tracts) can block extension")
    if "GGGG" in s:
        return GQuadruplexRisk(0.2, False, True, ggg_count, "warning", "GGGG run present")
    if ggg_count >= 2:
        return GQuadruplexRisk(0.6, False, False, ggg_count, "caution", f"{ggg_count} GGG runs present")
    return GQuadruplexRisk(1.0, False, False, ggg_count, "ok", "No G-quadruplex risk")


# --- Composite ---------------------------------------------------------------------------------

@dataclass
class CompositeScore:
    score: int
    breakdown: Dict[str, Dict[str, float]]


def composite_score(features: Mapping[str, float], weights: Optional[Mapping[str, float]] = None) -> CompositeScore:
    """
    Weighted mean of normalized sub-scores, scaled to 0..100.

    Keys missing from `features` or carrying a zero weight are ignored.
    """
    w = DEFAULT_WEIGHTS if weights is None else weights
    total_weight = 0.0
    acc = 0.0
    breakdown: Dict[str, Dict[str, float]] = {}
    for key, weight in w.items():
        if weight <= 0 or key not in features:
            continue
        value = _clamp(float(features[key]), 0.0, 1.0)
        acc += value * weight
        total_weight += weight
        breakdown[key] = {"score": round(value, 3), "weight": weight, "contribution": round(value * weight, 4)}
    if total_weight == 0:
        return CompositeScore(score=0, breakdown=breakdown)
    return CompositeScore(score=int(round(acc / total_weight * 100)), breakdown=breakdown)
