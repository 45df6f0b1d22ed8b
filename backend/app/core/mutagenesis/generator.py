# File: backend/app/core/mutagenesis/generator.py
# Version: v0.3.1
"""
Candidate primer generator for mutagenesis.

Back-to-back (Q5 SDM style)
- Forward primer: 5' flank + mutation + 3' annealing region, cut from the mutated sequence
  (or, with confineTo5Tails, 3' annealing cut from the original template).
- Reverse primer: reverse complement of the template immediately upstream; its 5' end sits
  at forward.start - 1, so reverse.end == forward.start (end exclusive).
- ALL forward lengths x ALL reverse lengths inside the Tm window are paired (Cartesian
  product), with a rescue retry (Tm ceiling relaxed to rescueMaxTm) for empty sides.

Overlapping (QuikChange style)
- Forward primer: left flank + mutation + right flank from the mutated sequence.
- Reverse primer: exact reverse complement of the forward primer (same coordinates).

Inputs here may be the doubled working sequences of a circular template; coordinates are
returned in those working frames and normalized by the search layer.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from backend.app.core.mutagenesis.constants import (
    FLANK_WINDOW_DELETION,
    FLANK_WINDOW_INSERTION,
    FLANK_WINDOW_SUBSTITUTION,
    MIN_DELETION_BINDING,
    MIN_REVERSE_REGION,
)
from backend.app.core.mutagenesis.diagnostics import SearchDiagnostics, TmExtreme
from backend.app.core.mutagenesis.models import BACK_TO_BACK, OVERLAPPING, CandidatePair, DesignWarning, PrimerCandidate
from backend.app.core.mutagenesis.pair_scorer import back_to_back_penalty, overlapping_penalty
from backend.app.core.mutagenesis.parameters import MutagenesisParameters
from backend.app.core.mutagenesis.sequence import gc_fraction, has_gc_clamp, reverse_complement
from backend.app.core.mutagenesis.thermodynamics import tm_q5

logger = logging.getLogger(__name__)

GC_EXTREME_LOW = 0.3
GC_EXTREME_HIGH = 0.7


@dataclass(frozen=True)
class TmCandidate:
    sequence: str
    tm: float
    gc: float
    is_rescue: bool

    @property
    def length(self) -> int:
        return len(self.sequence)


def _tm(seq: str, params: MutagenesisParameters) -> int:
    return tm_q5(seq, primer_conc_nM=params.primerConc, mg_mM=params.mgConc, na_mM=params.naConc)


def valid_primer_candidates(
    region: str,
    params: MutagenesisParameters,
    min_length: int,
    max_length: int,
    rescue_mode: bool = False,
) -> List[TmCandidate]:
    """
    Prefixes of `region` (5'->3') whose Tm is inside the window.

    Normal mode keeps [minTm, maxTm]; rescue mode keeps [minTm, rescueMaxTm] and flags
    anything above maxTm as rescue.
    """
    out: List[TmCandidate] = []
    for length in range(min_length, min(max_length, len(region)) + 1):
        seq = region[:length]
        tm = _tm(seq, params)
        if tm < params.minTm or tm > params.rescueMaxTm:
            continue
        if not rescue_mode and tm > params.maxTm:
            continue
        out.append(TmCandidate(seq, tm, gc_fraction(seq), tm > params.maxTm))
    return out


def flank_window(is_deletion: bool, is_insertion: bool) -> Tuple[int, int]:
    if is_deletion:
        return FLANK_WINDOW_DELETION
    if is_insertion:
        return FLANK_WINDOW_INSERTION
    return FLANK_WINDOW_SUBSTITUTION


def _reverse_failure(rc_region: str, params: MutagenesisParameters, max_len: int, diag: SearchDiagnostics) -> None:
    diag.no_rev_candidates_in_tm_window += 1
    for length in range(params.minAnnealingLength, max_len + 1):
        seq = rc_region[:length]
        tm = _tm(seq, params)
        gc = gc_fraction(seq)
        if tm < params.minTm:
            diag.rev_tm_too_low.record(tm, seq, gc, lowest=True)
        elif tm > params.rescueMaxTm:
            diag.rev_tm_too_high.record(tm, seq, gc, lowest=False)
        if gc < GC_EXTREME_LOW or gc > GC_EXTREME_HIGH:
            diag.rev_gc_extreme += 1


def _rescue_warning(fwd_rescue: bool, rev_rescue: bool, max_tm: float) -> DesignWarning:
    which = " and ".join(w for w, flag in (("forward", fwd_rescue), ("reverse", rev_rescue)) if flag)
    return DesignWarning(
        "rescue-mode",
        "info",
        f"GC-rich region: {which} primer Tm exceeds normal range (>{max_tm:.0f} °C). "
        f"Consider gradient PCR optimization.",
    )


def generate_back_to_back(
    template: str,
    mutated: str,
    position: int,
    insert_length: int,
    deletion_length: int,
    params: MutagenesisParameters,
    diag: SearchDiagnostics,
    shift: int = 0,
) -> List[CandidatePair]:
    """
    Enumerate back-to-back pairs for one split offset.

    `shift` moves the forward 5' flank window (clamped so the forward primer still starts
    at or before the mutation).
    """
    is_deletion = deletion_length > 0 and insert_length == 0
    is_insertion = insert_length > 0 and deletion_length == 0
    equal_length = insert_length == deletion_length
    min_flank, max_flank = flank_window(is_deletion, is_insertion)

    hi = min(position, max(0, position - min_flank + shift))
    lo = min(position, max(0, position - max_flank + shift))

    min_anneal = params.minAnnealingLength
    max_anneal = params.maxAnnealingLength
    annealing_start = position + insert_length
    original_start = position + deletion_length
    available = len(mutated) - annealing_start

    pairs: List[CandidatePair] = []
    for fwd5 in range(hi, lo - 1, -1):
        diag.positions_explored += 1

        if is_deletion and position - fwd5 < MIN_DELETION_BINDING:
            continue

        if available < min_anneal:
            diag.fwd_region_too_short += 1
            diag.note_downstream(available)
            continue

        rev5 = fwd5 - 1
        rev_region = template[: rev5 + 1] if rev5 >= 0 else ""
        if len(rev_region) < MIN_REVERSE_REGION:
            diag.rev_region_too_short += 1
            diag.note_upstream(len(rev_region))
            continue

        # --- reverse side --------------------------------------------------------------------
        rc_region = reverse_complement(rev_region)
        rev_min = max(MIN_REVERSE_REGION, min(min_anneal, len(rev_region)))
        rev_max = min(max_anneal, len(rev_region))
        rev_cands = valid_primer_candidates(rc_region, params, rev_min, rev_max)
        if not rev_cands:
            rev_cands = valid_primer_candidates(rc_region, params, rev_min, rev_max, rescue_mode=True)
            if rev_cands:
                diag.used_rescue_mode = True
        if not rev_cands:
            _reverse_failure(rc_region, params, rev_max, diag)
            continue

        # --- forward side --------------------------------------------------------------------
        fwd_cands: List[Tuple[TmCandidate, int]] = []
        too_low = TmExtreme()
        too_high = TmExtreme()
        gc_extreme = 0
        for anneal_len in range(min_anneal, min(max_anneal, available) + 1):
            fwd3 = annealing_start + anneal_len
            if params.confineTo5Tails:
                anneal = template[original_start : original_start + anneal_len]
                if len(anneal) < anneal_len:
                    continue
                seq = mutated[fwd5:annealing_start] + anneal
            else:
                seq = mutated[fwd5:fwd3]
            if len(seq) < params.minPrimerLength or len(seq) > params.maxPrimerLength:
                continue

            tm = _tm(seq, params)
            gc = gc_fraction(seq)
            if tm > params.rescueMaxTm:
                too_high.record(tm, seq, gc, lowest=False)
                continue
            if tm >= params.minTm:
                fwd_cands.append((TmCandidate(seq, tm, gc, tm > params.maxTm), fwd3))
            else:
                too_low.record(tm, seq, gc, lowest=True)
                if gc < GC_EXTREME_LOW or gc > GC_EXTREME_HIGH:
                    gc_extreme += 1

        if any(c.is_rescue for c, _ in fwd_cands):
            diag.used_rescue_mode = True

        if not fwd_cands:
            diag.no_fwd_candidates_in_tm_window += 1
            diag.fwd_gc_extreme += gc_extreme
            diag.fwd_tm_too_low.merge(too_low, lowest=True)
            diag.fwd_tm_too_high.merge(too_high, lowest=False)
            continue

        # --- Cartesian product ---------------------------------------------------------------
        rev_built = []
        for rc in rev_cands:
            rev3 = rev5 - rc.length + 1
            rev_built.append(PrimerCandidate(
                sequence=rc.sequence,
                start=rev3,
                end=rev5 + 1,
                tm=rc.tm,
                gc=rc.gc,
                has_gc_clamp=has_gc_clamp(rc.sequence),
                is_rescue=rc.is_rescue,
            ))

        for fc, fwd3 in fwd_cands:
            region = template[fwd5 : fwd5 + fc.length] if equal_length else None
            fwd = PrimerCandidate(
                sequence=fc.sequence,
                start=fwd5,
                end=fwd3,
                tm=fc.tm,
                gc=fc.gc,
                has_gc_clamp=has_gc_clamp(fc.sequence),
                is_rescue=fc.is_rescue,
                template_region=region if region and len(region) == fc.length else None,
            )
            for rev in rev_built:
                diag.pairs_evaluated += 1
                pair = CandidatePair(
                    forward=fwd,
                    reverse=rev,
                    strategy=BACK_TO_BACK,
                    tm_diff=abs(fwd.tm - rev.tm),
                    penalty=back_to_back_penalty(fwd, rev, params),
                )
                if pair.is_rescue:
                    pair.warnings.append(_rescue_warning(fwd.is_rescue, rev.is_rescue, params.maxTm))
                pairs.append(pair)

    logger.debug("back-to-back shift=%+d window=[%d..%d]: %d pairs", shift, lo, hi, len(pairs))
    return pairs


def generate_overlapping(
    template: str,
    mutated: str,
    position: int,
    insert_length: int,
    deletion_length: int,
    params: MutagenesisParameters,
    diag: SearchDiagnostics,
) -> List[CandidatePair]:
    """
    Enumerate left/right flank combinations; reverse is always revcomp(forward).

    Each flank must fit inside the sequence; flanks shorter than minFlankingLength are
    recorded as region-too-short instead of being clamped.
    """
    equal_length = insert_length == deletion_length
    pairs: List[CandidatePair] = []
    diag.positions_explored += 1

    room_left = position
    room_right = len(mutated) - (position + insert_length)
    if room_right < params.minFlankingLength:
        diag.fwd_region_too_short += 1
        diag.note_downstream(room_right)
        return pairs
    if room_left < params.minFlankingLength:
        diag.rev_region_too_short += 1
        diag.note_upstream(room_left)
        return pairs

    for left in range(params.minFlankingLength, min(params.maxFlankingLength, room_left) + 1):
        for right in range(params.minFlankingLength, min(params.maxFlankingLength, room_right) + 1):
            start = position - left
            end = position + insert_length + right
            fwd_seq = mutated[start:end]
            if len(fwd_seq) < params.minPrimerLength or len(fwd_seq) > params.maxPrimerLength:
                diag.overlapping_length_rejected += 1
                continue
            rev_seq = reverse_complement(fwd_seq)
            fwd_tm = _tm(fwd_seq, params)
            rev_tm = _tm(rev_seq, params)
            gc = gc_fraction(fwd_seq)

            region: Optional[str] = None
            if equal_length:
                region = template[start:end]
                if len(region) != len(fwd_seq):
                    region = None

            fwd = PrimerCandidate(fwd_seq, start, end, fwd_tm, gc, has_gc_clamp(fwd_seq), template_region=region)
            rev = PrimerCandidate(rev_seq, start, end, rev_tm, gc, has_gc_clamp(rev_seq))
            diag.pairs_evaluated += 1
            pairs.append(CandidatePair(
                forward=fwd,
                reverse=rev,
                strategy=OVERLAPPING,
                tm_diff=abs(fwd_tm - rev_tm),
                penalty=overlapping_penalty(fwd, params),
                left_flank=left,
                right_flank=right,
            ))

    logger.debug("overlapping: %d pairs", len(pairs))
    return pairs
