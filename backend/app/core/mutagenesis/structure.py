# File: backend/app/core/mutagenesis/structure.py
# Version: v0.3.0
"""
Secondary-structure and primer-primer interaction checks.

- check_mutant_secondary_structure: fold ΔG from the FoldEngine, an alignment-based
  self-dimer estimate, 3' involvement and a 3' severity level, plus a comparison
  against the unmutated primer when one is given.
- check_heterodimer: ungapped offset scan between the two primers. The best
  alignment is the most negative ΔG; ties go to the longest consecutive run, then
  to the earliest offset.

Energies are summed NN stacks at 37 °C for runs of >= 3 consecutive pairs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from backend.app.core.mutagenesis.constants import (
    HAIRPIN_3PRIME,
    HAIRPIN_INTERNAL,
    SELF_DIMER_CRITICAL,
    SELF_DIMER_WARNING,
    STABILITY_WORSENING,
    classify_dimer_severity,
)
from backend.app.core.mutagenesis.fold import FoldEngine
from backend.app.core.mutagenesis.models import OVERLAPPING, DesignWarning, HeterodimerCheck, StructureCheck
from backend.app.core.mutagenesis.nn_tables import stack_dg
from backend.app.core.mutagenesis.sequence import is_watson_crick, reverse_complement

logger = logging.getLogger(__name__)

THREE_PRIME_WINDOW = 5
OVERLAP_MIN_PERCENT = 90.0


def estimate_self_dimer_dg(seq: str) -> float:
    s = seq.upper()
    n = len(s)
    rc = reverse_complement(s)
    best = 0.0
    for offset in range(-n + 4, n - 3):
        dg = 0.0
        run = 0
        for i in range(n):
            j = i + offset
            if j < 0 or j >= n:
                continue
            if s[i] == rc[j]:
                run += 1
                if run >= 3:
                    dg += stack_dg(s[i - 1] + s[i])
            else:
                run = 0
        best = min(best, dg)
    return round(best, 2)


def classify_3prime_severity(energy: float, base_pairs: Sequence[Tuple[int, int]], length: int) -> Tuple[str, bool, Optional[str]]:
    """
    Tiered 3' structure severity.

    Returns:
        (level, should_warn, message); level is one of
        none | low | info | moderate | warning | critical
    """
    last3 = set(range(length - 3, length))
    last5 = set(range(length - 5, length))
    last10 = set(range(length - 10, length))

    in3 = any(i in last3 or j in last3 for i, j in base_pairs)
    in5 = any(i in last5 or j in last5 for i, j in base_pairs)
    in10 = any(i in last10 or j in last10 for i, j in base_pairs)

    if not in10:
        return "none", False, None
    if in3 and energy <= -4:
        return "critical", True, "3' end is trapped in a stable structure; extension will fail"
    if in5 and energy <= -3:
        return "warning", True, "3' end partially involved in structure; may reduce efficiency"
    if energy > -2:
        return "info", False, "Weak structure near 3' end"
    if energy <= -3:
        return "moderate", True, "Structure near 3' region; monitor PCR efficiency"
    return "low", False, "Minor structure near 3' end"


def check_mutant_secondary_structure(
    mutant_primer: str,
    fold_engine: FoldEngine,
    original_primer: Optional[str] = None,
    temperature: float = 37.0,
) -> StructureCheck:
    """
    Structure report for one primer.

    Raises:
        RuntimeError: propagated from the fold engine when it cannot run.
    """
    seq = mutant_primer.upper()
    structures = fold_engine.fold(seq, temperature)
    fold_dg = round(sum(s.energy for s in structures), 2)
    pairs: List[Tuple[int, int]] = [p for s in structures for p in s.base_pairs]
    self_dimer = estimate_self_dimer_dg(seq)

    n = len(seq)
    involves_3p = any(i >= n - THREE_PRIME_WINDOW or j >= n - THREE_PRIME_WINDOW for i, j in pairs)
    bands = HAIRPIN_3PRIME if involves_3p else HAIRPIN_INTERNAL

    warnings: List[DesignWarning] = []
    if fold_dg < bands["ideal"]:
        where = "Stable hairpin at 3' end" if involves_3p else "Stable hairpin detected"
        warnings.append(DesignWarning(
            "hairpin",
            "critical" if fold_dg < bands["critical"] else "warning",
            f"{where} (ΔG = {fold_dg:.1f} kcal/mol) in {seq}",
            dg=fold_dg,
        ))

    if self_dimer < SELF_DIMER_WARNING:
        warnings.append(DesignWarning(
            "self-dimer",
            "critical" if self_dimer < SELF_DIMER_CRITICAL else "warning",
            f"Stable self-dimer detected (ΔG = {self_dimer:.1f} kcal/mol) in {seq}",
            dg=self_dimer,
        ))

    level, should_warn, message = classify_3prime_severity(fold_dg, pairs, n)
    if should_warn and message:
        warnings.append(DesignWarning(
            "3prime-structure",
            "critical" if level == "critical" else "warning",
            message,
            dg=fold_dg,
        ))

    change = None
    if original_primer:
        orig = original_primer.upper()
        orig_fold = fold_engine.dg(orig, temperature)
        orig_self = estimate_self_dimer_dg(orig)
        change = {
            "fold_change": round(fold_dg - orig_fold, 2),
            "self_dimer_change": round(self_dimer - orig_self, 2),
        }
        if fold_dg < orig_fold - STABILITY_WORSENING or self_dimer < orig_self - STABILITY_WORSENING:
            warnings.append(DesignWarning(
                "stability-change", "warning", "Mutation significantly stabilizes unwanted secondary structure"
            ))

    logger.debug("structure %s: fold=%.2f self=%.2f 3p=%s", seq, fold_dg, self_dimer, level)
    return StructureCheck(
        hairpin_dg=fold_dg,
        self_dimer_dg=self_dimer,
        fold_dg=fold_dg,
        involves_3prime=involves_3p,
        three_prime_severity=level,
        warnings=warnings,
        change_from_original=change,
    )


@dataclass
class _Alignment:
    offset: int
    dg: float
    max_run: int
    aligned: int
    involves_3p_1: bool
    involves_3p_2: bool


def _scan_offset(seq1: str, seq2: str, offset: int) -> _Alignment:
    n1, n2 = len(seq1), len(seq2)
    dg = 0.0
    run = 0
    max_run = 0
    aligned = 0
    in3p1 = in3p2 = False
    for i in range(n1):
        j = i + offset
        if j < 0 or j >= n2:
            continue
        pos2 = n2 - 1 - j
        if is_watson_crick(seq1[i], seq2[pos2]):
            run += 1
            aligned += 1
            max_run = max(max_run, run)
            in3p1 = in3p1 or i >= n1 - THREE_PRIME_WINDOW
            in3p2 = in3p2 or pos2 >= n2 - THREE_PRIME_WINDOW
            if run >= 3:
                dg += stack_dg(seq1[i - 1] + seq1[i])
        else:
            run = 0
    return _Alignment(offset, round(dg, 2), max_run, aligned, in3p1, in3p2)


def _better(cand: _Alignment, best: Optional[_Alignment]) -> bool:
    if best is None:
        return True
    if cand.dg != best.dg:
        return cand.dg < best.dg
    return cand.max_run > best.max_run


def check_heterodimer(primer1: str, primer2: str, design_type: Optional[str] = None) -> HeterodimerCheck:
    seq1 = primer1.upper()
    seq2 = primer2.upper()

    best: Optional[_Alignment] = None
    for offset in range(-len(seq1) + 4, len(seq2) - 3):
        cand = _scan_offset(seq1, seq2, offset)
        if _better(cand, best):
            best = cand

    dg = best.dg if best else 0.0
    max_run = best.max_run if best else 0
    in3p1 = best.involves_3p_1 if best else False
    in3p2 = best.involves_3p_2 if best else False
    offset = best.offset if best else None

    if design_type == OVERLAPPING:
        if seq1 == reverse_complement(seq2):
            return HeterodimerCheck(dg, max_run, offset, in3p1, in3p2, "safe", "expected_overlap",
                                    overlap_percent=100.0)
        overlap = (best.aligned / min(len(seq1), len(seq2)) * 100.0) if best else 0.0
        warnings: List[DesignWarning] = []
        if overlap < OVERLAP_MIN_PERCENT:
            warnings.append(DesignWarning(
                "incomplete-overlap", "warning",
                f"Overlapping primers have only {overlap:.0f}% complementarity (expected ~100%)",
            ))
        return HeterodimerCheck(dg, max_run, offset, in3p1, in3p2, "safe", "ligation_junction",
                                warnings=warnings, overlap_percent=round(overlap, 1))

    band = classify_dimer_severity(dg, "heterodimer")
    severity = "safe"
    dimer_type = "none"
    warnings = []
    if in3p1 and in3p2 and max_run >= 4:
        severity, dimer_type = "critical", "3prime_extensible"
        warnings.append(DesignWarning(
            "heterodimer", "critical",
            f"3' extensible dimer: both primer 3' ends involved with {max_run} consecutive bp", dg=dg,
        ))
    elif (in3p1 or in3p2) and max_run >= 3:
        severity, dimer_type = "warning", "internal_with_3prime"
        which = "forward" if in3p1 else "reverse"
        warnings.append(DesignWarning(
            "heterodimer", "warning",
            f"Heterodimer involves {which} primer 3' end ({max_run} consecutive bp)", dg=dg,
        ))
    elif max_run >= 4:
        severity, dimer_type = "warning", "internal"
        if band != "pass":
            warnings.append(DesignWarning(
                "heterodimer", "warning",
                f"Internal heterodimer (ΔG = {dg:.1f} kcal/mol, {max_run} consecutive bp)", dg=dg,
            ))
    elif band != "pass":
        severity = "critical" if band == "fail" else "warning"
        dimer_type = "minor"
        warnings.append(DesignWarning(
            "heterodimer", severity, f"Primers form heterodimer (ΔG = {dg:.1f} kcal/mol)", dg=dg,
        ))

    return HeterodimerCheck(dg, max_run, offset, in3p1, in3p2, severity, dimer_type, warnings=warnings)
