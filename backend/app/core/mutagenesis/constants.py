# File: backend/app/core/mutagenesis/constants.py
# Version: v0.2.0
"""
Constants and defaults for the mutagenesis subsystem.

Flank windows, penalty weights, tier thresholds and dimer severity bands live
here so the generator, scorer and classifier agree on the same numbers.
"""

from __future__ import annotations

from typing import Dict, Tuple

# --- Search bounds -----------------------------------------------------------------------------

ABSOLUTE_MAX_TM = 76.0            # rescue ceiling
MIN_REVERSE_REGION = 10           # shortest usable reverse binding region
MIN_DELETION_BINDING = 5          # bases required on the 5' side of a deletion junction

# Back-to-back forward 5' flank windows (min, max) upstream of the mutation
FLANK_WINDOW_SUBSTITUTION: Tuple[int, int] = (3, 10)
FLANK_WINDOW_INSERTION: Tuple[int, int] = (0, 5)
FLANK_WINDOW_DELETION: Tuple[int, int] = (5, 15)

SPLIT_OFFSETS: Tuple[int, ...] = (0, -1, 1, -2, 2)

TOP_N_DEFAULT = 10
TOP_N_EXHAUSTIVE = 100

MAX_ALTERNATES = 10
MAX_CROSS_STRATEGY_ALTERNATES = 3

# --- Stage 1 penalty ---------------------------------------------------------------------------

TM_DIFF_DEAD_ZONE = 1.0
TM_DIFF_WEIGHT = 2.0
TM_BELOW_MIN_WEIGHT = 10.0
TM_ABOVE_MAX_WEIGHT = 8.0
OPTIMAL_LENGTH_CAP = 28
LENGTH_EXCESS_WEIGHT = 1.5
GC_HIGH_WEIGHT = 150.0
GC_LOW_WEIGHT = 80.0
CONTEXT_PENALTY = 3.0

# Overlapping designs
OVL_TM_BELOW_WEIGHT = 10.0
OVL_TM_ABOVE_WEIGHT = 3.0
OVL_GC_WEIGHT = 20.0
OVL_LENGTH_WEIGHT = 0.2
OVL_NO_CLAMP_PENALTY = 5.0
OVL_DG_WEIGHT = 2.0

# --- Stage 2 penalty ---------------------------------------------------------------------------

OFF_TARGET_PENALTY = 5.0
OFF_TARGET_MAX_MISMATCHES = 2
TERMINAL_DG_WINDOW: Tuple[float, float] = (-12.0, -6.0)
TERMINAL_DG_PENALTY = 5.0
G4_MOTIF_PENALTY = 1000.0
GGGG_PENALTY = 50.0
WILL_NOT_BIND_PENALTY = 100.0
CRITICAL_3PRIME_MISMATCH_PENALTY = 20.0

# --- Tiers -------------------------------------------------------------------------------------

EXCELLENT = "excellent"
GOOD = "good"
ACCEPTABLE = "acceptable"
POOR = "poor"
TIERS: Tuple[str, ...] = (EXCELLENT, GOOD, ACCEPTABLE, POOR)

EXCELLENT_MAX_TM_DIFF = 2.0
EXCELLENT_MIN_DG = -3.0
GOOD_MAX_TM_DIFF = 5.0
GOOD_MIN_DG = -5.0
ACCEPTABLE_MAX_TM_DIFF = 8.0

# --- Structure thresholds (kcal/mol) -----------------------------------------------------------

HAIRPIN_3PRIME = {"ideal": -2.0, "critical": -4.0}
HAIRPIN_INTERNAL = {"ideal": -3.0, "critical": -6.0}
SELF_DIMER_WARNING = -6.0
SELF_DIMER_CRITICAL = -9.0
STABILITY_WORSENING = 1.0

DIMER_THRESHOLDS: Dict[str, Dict[str, float]] = {
    "hairpin": {"pass": -2.0, "warning": -3.0, "fail": -5.0},
    "self_dimer": {"pass": -5.0, "warning": -6.0, "fail": -9.0},
    "heterodimer": {"pass": -5.0, "warning": -6.0, "fail": -9.0},
    "three_prime": {"pass": -2.0, "warning": -3.0, "fail": -4.0},
}


def classify_dimer_severity(dg: float, kind: str = "heterodimer") -> str:
    """
    Bucket a ΔG against the threshold table.

    Returns:
        'pass' | 'warning' | 'fail'
    """
    bands = DIMER_THRESHOLDS.get(kind)
    if bands is None:
        raise ValueError(f"Unknown dimer kind: {kind}")
    if dg <= bands["fail"]:
        return "fail"
    if dg <= bands["warning"]:
        return "warning"
    return "pass"
