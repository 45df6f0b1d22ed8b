# File: backend/app/core/mutagenesis/pair_scorer.py
# Version: v0.3.0
"""
Pair scoring in two stages.

Stage 1 (every pair, cheap): additive soft-wall penalty, lower is better.
  back-to-back:
    2·max(0, |ΔTm| − 1)²                     Tm mismatch with 1 °C dead zone
    10·(minTm − Tm)²   per primer below minTm
    8·(Tm − maxTm)     per primer above maxTm
    1.5 per nt beyond 28, per primer
    GC: 150·(gc − 0.5)² above 50%, 80·(gc − 0.5)² below
  overlapping:
    10·(minTm − Tm) / 3·(Tm − maxTm) outside the window, 20× GC excess outside
    [minGC, maxGC], 0.2 per nt beyond minAnnealingLength, +5 without a GC clamp

Stage 2 (top-N only, expensive): fold ΔG, mismatch Tm, off-targets, 3' terminal ΔG,
G-quadruplex risk and the 0..100 composite score. Each sub-step that fails is logged
and its field left unset; the pair is still kept.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Optional

from backend.app.core.mutagenesis.constants import (
    CRITICAL_3PRIME_MISMATCH_PENALTY,
    G4_MOTIF_PENALTY,
    GC_HIGH_WEIGHT,
    GC_LOW_WEIGHT,
    GGGG_PENALTY,
    LENGTH_EXCESS_WEIGHT,
    OFF_TARGET_MAX_MISMATCHES,
    OFF_TARGET_PENALTY,
    OPTIMAL_LENGTH_CAP,
    OVL_DG_WEIGHT,
    OVL_GC_WEIGHT,
    OVL_LENGTH_WEIGHT,
    OVL_NO_CLAMP_PENALTY,
    OVL_TM_ABOVE_WEIGHT,
    OVL_TM_BELOW_WEIGHT,
    TERMINAL_DG_PENALTY,
    TERMINAL_DG_WINDOW,
    TM_ABOVE_MAX_WEIGHT,
    TM_BELOW_MIN_WEIGHT,
    TM_DIFF_DEAD_ZONE,
    TM_DIFF_WEIGHT,
    WILL_NOT_BIND_PENALTY,
)
from backend.app.core.mutagenesis.fold import FoldEngine
from backend.app.core.mutagenesis.models import OVERLAPPING, CandidatePair, DesignWarning, PrimerCandidate
from backend.app.core.mutagenesis.offtarget import count_off_target_sites
from backend.app.core.mutagenesis.parameters import MutagenesisParameters
from backend.app.core.mutagenesis.scoring import (
    analyze_g_quadruplex,
    composite_score,
    score_3prime_composition,
    score_gc,
    score_gc_clamp,
    score_hairpin,
    score_heterodimer,
    score_homodimer,
    score_homopolymer,
    score_length,
    score_off_target,
    score_terminal_3dg,
    score_tm,
    score_tm_diff,
)
from backend.app.core.mutagenesis.structure import check_heterodimer, estimate_self_dimer_dg
from backend.app.core.mutagenesis.thermodynamics import calculate_mismatched_tm, terminal_3prime_dg

logger = logging.getLogger(__name__)


# --- Stage 1 -----------------------------------------------------------------------------------

def _primer_terms(c: PrimerCandidate, params: MutagenesisParameters) -> float:
    p = 0.0
    if c.tm < params.minTm:
        p += TM_BELOW_MIN_WEIGHT * (params.minTm - c.tm) ** 2
    if c.tm > params.maxTm:
        p += TM_ABOVE_MAX_WEIGHT * (c.tm - params.maxTm)
    if c.length > OPTIMAL_LENGTH_CAP:
        p += LENGTH_EXCESS_WEIGHT * (c.length - OPTIMAL_LENGTH_CAP)
    dev = c.gc - 0.5
    p += (GC_HIGH_WEIGHT if dev > 0 else GC_LOW_WEIGHT) * dev * dev
    return p


def back_to_back_penalty(fwd: PrimerCandidate, rev: PrimerCandidate, params: MutagenesisParameters) -> float:
    tm_diff = abs(fwd.tm - rev.tm)
    penalty = TM_DIFF_WEIGHT * max(0.0, tm_diff - TM_DIFF_DEAD_ZONE) ** 2
    penalty += _primer_terms(fwd, params)
    penalty += _primer_terms(rev, params)
    return penalty


def overlapping_penalty(fwd: PrimerCandidate, params: MutagenesisParameters) -> float:
    penalty = 0.0
    if fwd.tm < params.minTm:
        penalty += (params.minTm - fwd.tm) * OVL_TM_BELOW_WEIGHT
    if fwd.tm > params.maxTm:
        penalty += (fwd.tm - params.maxTm) * OVL_TM_ABOVE_WEIGHT
    if fwd.gc < params.minGC:
        penalty += (params.minGC - fwd.gc) * OVL_GC_WEIGHT
    if fwd.gc > params.maxGC:
        penalty += (fwd.gc - params.maxGC) * OVL_GC_WEIGHT
    penalty += max(0, fwd.length - params.minAnnealingLength) * OVL_LENGTH_WEIGHT
    if params.gcClampRequired and not fwd.has_gc_clamp:
        penalty += OVL_NO_CLAMP_PENALTY
    return penalty


# --- Stage 2 -----------------------------------------------------------------------------------

@dataclass
class EnrichmentContext:
    template: str
    mutated: str
    params: MutagenesisParameters
    fold_engine: Optional[FoldEngine] = None
    circular: bool = False


def _fold_dg(seq: str, ctx: EnrichmentContext) -> Optional[float]:
    if ctx.fold_engine is None:
        return None
    try:
        return ctx.fold_engine.dg(seq, ctx.params.foldTemperature)
    except (RuntimeError, ValueError) as ex:
        logger.warning("fold ΔG omitted for %s: %s", seq, ex)
        return None


def _enrich_primer(c: PrimerCandidate, subject: str, ctx: EnrichmentContext, pair: CandidatePair, label: str) -> PrimerCandidate:
    params = ctx.params
    values: Dict[str, object] = {}

    values["fold_dg"] = _fold_dg(c.sequence, ctx)

    term = terminal_3prime_dg(c.sequence)
    values["terminal_dg"] = term
    lo, hi = TERMINAL_DG_WINDOW
    if term.dg < lo or term.dg > hi:
        pair.add_penalty(TERMINAL_DG_PENALTY)

    g4 = analyze_g_quadruplex(c.sequence)
    values["g_quadruplex"] = g4
    if g4.has_g4_motif:
        pair.add_penalty(G4_MOTIF_PENALTY)
    elif g4.has_gggg:
        pair.add_penalty(GGGG_PENALTY)
    if g4.severity in ("critical", "warning"):
        pair.warnings.append(DesignWarning("g-quadruplex", g4.severity, f"{label} primer: {g4.message}"))

    if params.checkOffTargets:
        try:
            hits = count_off_target_sites(
                c.sequence, subject, OFF_TARGET_MAX_MISMATCHES, circular=ctx.circular, intended_start=c.start
            )
        except ValueError as ex:
            logger.warning("off-target scan omitted for %s: %s", c.sequence, ex)
        else:
            values["off_target_count"] = hits
            pair.add_penalty(OFF_TARGET_PENALTY * hits)
            if hits > params.maxOffTargets:
                pair.warnings.append(DesignWarning(
                    "off-target", "warning", f"{label} primer has {hits} off-target binding sites"
                ))

    if c.template_region:
        try:
            mm = calculate_mismatched_tm(
                c.sequence,
                c.template_region,
                primer_conc_nM=params.primerConc,
                na_mM=params.naConc,
                mg_mM=params.mgConc,
            )
        except ValueError as ex:
            logger.warning("mismatch Tm omitted for %s: %s", c.sequence, ex)
        else:
            values["mismatch_tm"] = mm
            if mm.will_not_bind:
                pair.add_penalty(WILL_NOT_BIND_PENALTY)
                pair.warnings.append(DesignWarning(
                    "mismatch-binding", "critical",
                    f"{label} primer is unlikely to bind the template ({mm.mismatch_fraction}% mismatched)",
                ))
            elif mm.has_critical_3prime_mismatch:
                pair.add_penalty(CRITICAL_3PRIME_MISMATCH_PENALTY)
                pair.warnings.append(DesignWarning(
                    "mismatch-binding", "warning", f"{label} primer has a mismatch near its 3' end",
                ))

    return c.with_enrichment(**{k: v for k, v in values.items() if v is not None})


def _features(pair: CandidatePair, params: MutagenesisParameters) -> Dict[str, float]:
    f, r = pair.forward, pair.reverse
    feats: Dict[str, float] = {
        "tmFwd": score_tm(f.tm),
        "tmRev": score_tm(r.tm),
        "gcFwd": score_gc(f.gc * 100.0),
        "gcRev": score_gc(r.gc * 100.0),
        "lengthFwd": score_length(f.length),
        "lengthRev": score_length(r.length),
        "gcClampFwd": score_gc_clamp(f.sequence),
        "gcClampRev": score_gc_clamp(r.sequence),
        "homopolymerFwd": score_homopolymer(f.sequence),
        "homopolymerRev": score_homopolymer(r.sequence),
        "selfDimerFwd": score_homodimer(estimate_self_dimer_dg(f.sequence)),
        "selfDimerRev": score_homodimer(estimate_self_dimer_dg(r.sequence)),
        "tmDiff": score_tm_diff(pair.tm_diff),
    }
    if f.fold_dg is not None:
        feats["hairpinFwd"] = score_hairpin(f.fold_dg)
    if r.fold_dg is not None:
        feats["hairpinRev"] = score_hairpin(r.fold_dg)
    if f.terminal_dg is not None and r.terminal_dg is not None:
        feats["terminal3DG"] = min(score_terminal_3dg(f.terminal_dg.dg), score_terminal_3dg(r.terminal_dg.dg))
    feats["threePrimeCompFwd"] = score_3prime_composition(f.sequence, f.terminal_dg.dg if f.terminal_dg else None)
    feats["threePrimeCompRev"] = score_3prime_composition(r.sequence, r.terminal_dg.dg if r.terminal_dg else None)
    if f.g_quadruplex is not None:
        feats["gQuadruplexFwd"] = f.g_quadruplex.score
    if r.g_quadruplex is not None:
        feats["gQuadruplexRev"] = r.g_quadruplex.score
    if f.off_target_count is not None and r.off_target_count is not None:
        feats["offTarget"] = score_off_target(f.off_target_count + r.off_target_count)
    if pair.strategy != OVERLAPPING:
        feats["heterodimer"] = score_heterodimer(check_heterodimer(f.sequence, r.sequence).dg)
    return feats


def enrich_pair(pair: CandidatePair, ctx: EnrichmentContext) -> CandidatePair:
    """
    Attach Stage 2 fields to both primers, add Stage 2 penalties and the composite score.

    Forward primers are scanned for off-targets against the mutated sequence, reverse
    primers against the template. Enriching the same pair twice is an error.
    """
    if pair.enriched:
        raise ValueError("pair already enriched")

    pair.forward = _enrich_primer(pair.forward, ctx.mutated, ctx, pair, "Forward")
    pair.reverse = _enrich_primer(pair.reverse, ctx.template, ctx, pair, "Reverse")

    if pair.strategy == OVERLAPPING and pair.forward.fold_dg is not None and pair.forward.fold_dg < ctx.params.minDg:
        pair.add_penalty(abs(pair.forward.fold_dg - ctx.params.minDg) * OVL_DG_WEIGHT)

    result = composite_score(_features(pair, ctx.params), ctx.params.weight_table())
    pair.composite_score = result.score
    pair.score_breakdown = result.breakdown
    pair.enriched = True
    return pair
