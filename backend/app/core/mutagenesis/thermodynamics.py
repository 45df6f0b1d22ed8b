# File: backend/app/core/mutagenesis/thermodynamics.py
# Version: v0.3.0
"""
Thermodynamics for mutagenic primers.

Implements:
- Mismatch-aware nearest-neighbor Tm of a primer against a coding-strand window
  (`calculate_mismatched_tm`), with terminal-mismatch, dangling-end and
  tandem-mismatch corrections and Owczarzy salt correction.
- Q5-style Tm (`tm_q5`) used for every candidate during the search, and the
  matching annealing temperature (`annealing_temperature_q5`).
- 3'-terminal stability (`terminal_3prime_dg`) over the last 5 nt.
- Biopython `Tm_NN` as an independent reference (`tm_biopython`,
  `compare_tm_methods`).

Concentrations follow bench units: primer nM, Na+/Mg2+ mM.
"""

from __future__ import annotations

import logging
import math
from typing import Dict, List, Optional, Tuple

from Bio.SeqUtils import MeltingTemp as mt

from backend.app.core.mutagenesis.models import AnnealingResult, MismatchedTm, Mismatch, TerminalDG
from backend.app.core.mutagenesis.nn_tables import (
    CONSECUTIVE_MISMATCH_CAP,
    CONSECUTIVE_MISMATCH_STEP,
    DANGLING_END,
    INIT,
    INTERNAL_MISMATCH,
    MISMATCH_FALLBACK,
    NN_MATCHED,
    NN_MISMATCH,
    OWCZARZY,
    R_GAS,
    T_37C,
    TERMINAL_AT,
    TERMINAL_MISMATCH,
    TERMINAL_MISMATCH_CORRECTION,
    stack_dg,
)
from backend.app.core.mutagenesis.sequence import complement, gc_fraction, is_watson_crick, normalize

logger = logging.getLogger(__name__)

Q5_PRIMER_CONC_NM = 500.0
Q5_MG_MM = 2.0
Q5_NA_MM = 50.0
Q5_ANNEAL_OFFSET = 1.0
Q5_MAX_ANNEAL = 72.0


# --- Salt ----------------------------------------------------------------------------------------

def owczarzy_mg_correction(length: int, gc_frac: float, mg_mM: float) -> float:
    """Reciprocal-temperature Mg2+ correction term (1/K) for a duplex of `length` bp."""
    if length < 2:
        raise ValueError("Owczarzy correction needs at least 2 nt")
    if mg_mM <= 0:
        raise ValueError("Owczarzy Mg2+ correction needs mg_mM > 0")
    ln_mg = math.log(mg_mM * 1e-3)
    k = OWCZARZY
    return (k["a"] + k["b"] * ln_mg + gc_frac * (k["c"] + k["d"] * ln_mg)) + (
        1.0 / (2.0 * (length - 1))
    ) * (k["e"] + k["f"] * ln_mg + k["g"] * ln_mg * ln_mg)


def na_entropy_correction(length: int, na_mM: float) -> float:
    """Na+-only entropy term (cal/K/mol) added to ΔS; 0 without Na+ (1 M reference)."""
    if na_mM <= 0:
        return 0.0
    return 0.368 * (length - 1) * math.log(na_mM * 1e-3)


def _salted_tm(dh: float, ds: float, length: int, gc_frac: float,
               primer_conc_nM: float, na_mM: float, mg_mM: float) -> Tuple[float, float]:
    """
    Tm (°C) with the salt model used throughout: Owczarzy Mg2+ in the reciprocal
    domain when Mg2+ is present, otherwise the Na+ entropy term.

    Returns:
        (tm, reciprocal Mg2+ correction or 0.0)
    """
    if mg_mM > 0:
        corr = owczarzy_mg_correction(length, gc_frac, mg_mM)
        return _apply_reciprocal_correction(_tm_from_enthalpy(dh, ds, primer_conc_nM), corr), corr
    return _tm_from_enthalpy(dh, ds + na_entropy_correction(length, na_mM), primer_conc_nM), 0.0


def _tm_from_enthalpy(dh: float, ds: float, primer_conc_nM: float) -> float:
    ct = primer_conc_nM * 1e-9
    return (dh * 1000.0) / (ds + R_GAS * math.log(ct / 4.0)) - 273.15


def _apply_reciprocal_correction(tm_c: float, correction: float) -> float:
    inv = 1.0 / (tm_c + 273.15) + correction
    return 1.0 / inv - 273.15


# --- Perfect-match NN / Q5 -----------------------------------------------------------------------

def nn_sums(seq: str) -> Tuple[float, float]:
    """ΔH/ΔS of a perfectly matched duplex: initiation + stacks + terminal A/T."""
    dh, ds = INIT
    for i in range(len(seq) - 1):
        params = NN_MATCHED.get(seq[i:i + 2])
        if params:
            dh += params[0]
            ds += params[1]
    for end in (seq[0], seq[-1]):
        if end in "AT":
            dh += TERMINAL_AT[0]
            ds += TERMINAL_AT[1]
    return dh, ds


def tm_q5(
    seq: str,
    primer_conc_nM: float = Q5_PRIMER_CONC_NM,
    mg_mM: float = Q5_MG_MM,
    na_mM: float = Q5_NA_MM,
) -> int:
    """
    Q5-calibrated Tm (°C, integer).

    NN sum at `primer_conc_nM`, Owczarzy Mg2+ correction (Na+ entropy term when
    `mg_mM` is 0), then the polymerase specific empirical mapping.
    """
    s = "".join(c for c in seq.upper() if c in "ACGT")
    if len(s) < 2:
        raise ValueError("Sequence must be at least 2 nucleotides")

    dh, ds = nn_sums(s)
    n = len(s)
    fgc = gc_fraction(s)
    tm_salt, _ = _salted_tm(dh, ds, n, fgc, primer_conc_nM, na_mM, mg_mM)

    tm_neb = 18.25 + 0.949 * tm_salt + 8.67 * fgc - 5.25 * math.log(n) + 0.12 * n - 77.05 / n
    return int(round(tm_neb))


def annealing_temperature_q5(
    forward: str,
    reverse: str,
    offset: float = Q5_ANNEAL_OFFSET,
    max_temp: float = Q5_MAX_ANNEAL,
    primer_conc_nM: float = Q5_PRIMER_CONC_NM,
    mg_mM: float = Q5_MG_MM,
    na_mM: float = Q5_NA_MM,
) -> AnnealingResult:
    """Ta = lower primer Tm + offset, capped at `max_temp`. Tms use the given reaction conditions."""
    tm1 = tm_q5(forward, primer_conc_nM=primer_conc_nM, mg_mM=mg_mM, na_mM=na_mM)
    tm2 = tm_q5(reverse, primer_conc_nM=primer_conc_nM, mg_mM=mg_mM, na_mM=na_mM)
    lower = min(tm1, tm2)
    return AnnealingResult(
        tm_forward=tm1,
        tm_reverse=tm2,
        tm_lower=lower,
        tm_higher=max(tm1, tm2),
        tm_difference=abs(tm1 - tm2),
        annealing_temp=min(lower + offset, max_temp),
        is_capped=lower + offset > max_temp,
    )


def terminal_3prime_dg(seq: str) -> TerminalDG:
    """ΔG (kcal/mol, 37 °C) of the last 5 nt, classified loose/ideal/strong/sticky."""
    s = seq.upper()
    if len(s) < 2:
        return TerminalDG(dg=0.0, classification="invalid", is_ideal=False, terminal_sequence=s)
    terminal = s[-min(5, len(s)):]
    dg = round(sum(stack_dg(terminal[i:i + 2], T_37C) for i in range(len(terminal) - 1)), 2)
    if dg > -6.0:
        cls, ideal = "loose", False
    elif dg > -9.0:
        cls, ideal = "ideal", True
    elif dg > -11.0:
        cls, ideal = "strong", True
    else:
        cls, ideal = "sticky", False
    return TerminalDG(dg=dg, classification=cls, is_ideal=ideal, terminal_sequence=terminal)


# --- Mismatch-aware Tm ---------------------------------------------------------------------------

def _mismatch_stack(primer_dinuc: str, template_dinuc: str, terminal_pair: bool) -> Tuple[float, float]:
    """Lookup chain for a stack containing at least one mismatch; never raises."""
    forward_key = f"{primer_dinuc}/{template_dinuc}"
    reverse_key = f"{template_dinuc}/{primer_dinuc}"
    for key in (forward_key, reverse_key):
        if key in NN_MISMATCH:
            return NN_MISMATCH[key]
    if terminal_pair:
        for key in (forward_key, reverse_key):
            if key in TERMINAL_MISMATCH:
                return TERMINAL_MISMATCH[key]
    for key in (forward_key, reverse_key):
        if key in INTERNAL_MISMATCH:
            return INTERNAL_MISMATCH[key]
    logger.debug("No mismatch parameters for %s; using average penalty", forward_key)
    return MISMATCH_FALLBACK


def calculate_mismatched_tm(
    primer: str,
    template_coding: str,
    primer_conc_nM: float = 500.0,
    na_mM: float = 50.0,
    mg_mM: float = 2.0,
    use_dangling_ends: bool = True,
) -> MismatchedTm:
    """
    Tm of `primer` annealed to the complement of the coding-strand window `template_coding`.

    Both inputs are 5'->3' and must have equal length. The result carries the
    mismatch list and the raw ΔH/ΔS/salt terms; `tm` is None when the primer
    would not bind (>50% mismatches, or a non-finite / < -50 °C result).
    """
    p = normalize(primer)
    coding = normalize(template_coding)
    if len(p) != len(coding):
        raise ValueError(
            f"Primer and template must be same length for mismatch Tm calculation ({len(p)} != {len(coding)})"
        )
    if len(p) < 2:
        raise ValueError("Mismatch Tm needs at least 2 nt")

    n = len(p)
    template = complement(coding)
    dh, ds = INIT

    mismatches: List[Mismatch] = []
    consecutive_count = 0
    max_run = 0
    run = 0
    for i in range(n):
        if not is_watson_crick(p[i], template[i]):
            mismatches.append(
                Mismatch(
                    position=i,
                    primer_base=p[i],
                    template_base=template[i],
                    is_terminal=(i == 0 or i == n - 1),
                    is_3prime_proximal=(i >= n - 3),
                )
            )
            run += 1
            max_run = max(max_run, run)
        else:
            if run > 1:
                consecutive_count += run - 1
            run = 0
    if run > 1:
        consecutive_count += run - 1

    for i in range(n - 1):
        p_di = p[i:i + 2]
        t_di = template[i:i + 2]
        matched = is_watson_crick(p[i], template[i]) and is_watson_crick(p[i + 1], template[i + 1])
        if matched:
            params = NN_MATCHED.get(p_di)
        else:
            params = _mismatch_stack(p_di, t_di, terminal_pair=(i == 0 or i == n - 2))
        if params:
            dh += params[0]
            ds += params[1]

    for end in (p[0], p[-1]):
        if end in "AT":
            dh += TERMINAL_AT[0]
            ds += TERMINAL_AT[1]

    mismatch_positions = {m.position for m in mismatches}
    if 0 in mismatch_positions:
        dh += TERMINAL_MISMATCH_CORRECTION["5prime"][0]
        ds += TERMINAL_MISMATCH_CORRECTION["5prime"][1]
    if n - 1 in mismatch_positions:
        dh += TERMINAL_MISMATCH_CORRECTION["3prime"][0]
        ds += TERMINAL_MISMATCH_CORRECTION["3prime"][1]

    if use_dangling_ends and mismatches:
        if 0 in mismatch_positions:
            de = DANGLING_END.get(f"5_{p[0]}")
            if de:
                dh += de[0]
                ds += de[1]
        if n - 1 in mismatch_positions:
            de = DANGLING_END.get(f"3_{p[-1]}")
            if de:
                dh += de[0]
                ds += de[1]

    if consecutive_count > 0:
        dh += min(consecutive_count * CONSECUTIVE_MISMATCH_STEP[0], CONSECUTIVE_MISMATCH_CAP[0])
        ds += min(consecutive_count * CONSECUTIVE_MISMATCH_STEP[1], CONSECUTIVE_MISMATCH_CAP[1])

    try:
        tm, salt_corr = _salted_tm(dh, ds, n, gc_fraction(p), primer_conc_nM, na_mM, mg_mM)
    except ZeroDivisionError:
        tm, salt_corr = float("nan"), 0.0

    fraction = len(mismatches) / n
    will_not_bind = fraction > 0.5 or not math.isfinite(tm) or tm < -50
    return MismatchedTm(
        tm=None if will_not_bind else round(tm, 1),
        will_not_bind=will_not_bind,
        length=n,
        mismatch_fraction=int(round(fraction * 100)),
        mismatches=tuple(mismatches),
        consecutive_mismatch_count=consecutive_count,
        max_consecutive_mismatches=max_run,
        dh=dh,
        ds=ds,
        salt_correction=salt_corr,
    )


# --- Reference Tm via Biopython ------------------------------------------------------------------

def tm_biopython(
    seq: str,
    na_mM: float = 50.0,
    mg_mM: float = 2.0,
    dntps_mM: float = 0.0,
    primer_conc_nM: float = 500.0,
) -> float:
    """
    Tm (°C) from Biopython's Tm_NN with the SantaLucia 2004 table.

    Tm_NN takes Na/Mg/dNTPs in mM and strand concentrations in nM.
    """
    return float(
        mt.Tm_NN(
            seq,
            nn_table=mt.DNA_NN4,
            Na=na_mM,
            Mg=mg_mM,
            dNTPs=dntps_mM,
            dnac1=primer_conc_nM,
            dnac2=0.0,
            saltcorr=7 if mg_mM > 0 else (5 if na_mM > 0 else 0),
        )
    )


def compare_tm_methods(primer: str, template_coding: Optional[str] = None) -> Dict[str, Optional[float]]:
    """Side-by-side Tm values for one primer (mismatch Tm only when a template window is given)."""
    s = normalize(primer)
    out: Dict[str, Optional[float]] = {
        "q5": float(tm_q5(s)),
        "biopython_nn": round(tm_biopython(s), 1),
        "mismatched": None,
    }
    if template_coding is not None:
        out["mismatched"] = calculate_mismatched_tm(s, template_coding).tm
    return out
