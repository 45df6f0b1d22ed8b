# File: backend/app/core/mutagenesis/designer.py
# Version: v0.3.0
"""
Top-level mutagenesis design entry points.

    design_mutagenesis_primers(template, mutation, params)
        parse/validate → run_search(strategy) → [fallback to overlapping] →
        structure + heterodimer checks → annealing temperature → protocol

Convenience wrappers build the `Mutation` for each mutation type; positions are
0-based here (notation parsing handles the 1-based user form).

Fold engine: when none is passed, a process-wide ViennaRNA engine is used if the
bindings import; otherwise folding-derived fields and structure checks are omitted
and a warning is logged.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import List, Optional

from backend.app.core.mutagenesis.constants import MAX_ALTERNATES, MAX_CROSS_STRATEGY_ALTERNATES
from backend.app.core.mutagenesis.diagnostics import NoCandidateFoundError, SearchDiagnostics, build_failure_message
from backend.app.core.mutagenesis.fold import FoldEngine, ViennaFoldEngine
from backend.app.core.mutagenesis.models import (
    BACK_TO_BACK,
    CODON_CHANGE,
    DELETION,
    INSERTION,
    OVERLAPPING,
    REGION_SUBSTITUTION,
    SUBSTITUTION,
    DesignWarning,
    Mutation,
    MutagenesisResult,
    StructureCheck,
)
from backend.app.core.mutagenesis.mutations import build_plan, parse_mutation_notation
from backend.app.core.mutagenesis.parameters import MutagenesisParameters
from backend.app.core.mutagenesis.protocol import generate_protocol
from backend.app.core.mutagenesis.search import run_search
from backend.app.core.mutagenesis.structure import check_heterodimer, check_mutant_secondary_structure
from backend.app.core.mutagenesis.thermodynamics import annealing_temperature_q5

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def default_fold_engine() -> Optional[FoldEngine]:
    try:
        return ViennaFoldEngine()
    except RuntimeError as ex:
        logger.warning("Folding disabled: %s", ex)
        return None


def _structure(
    seq: str,
    engine: Optional[FoldEngine],
    original: Optional[str],
    temperature: float,
) -> Optional[StructureCheck]:
    if engine is None:
        return None
    try:
        return check_mutant_secondary_structure(seq, engine, original_primer=original, temperature=temperature)
    except RuntimeError as ex:
        logger.warning("Structure check omitted for %s: %s", seq, ex)
        return None


def _merge_warnings(*groups: List[DesignWarning]) -> List[DesignWarning]:
    seen = set()
    out: List[DesignWarning] = []
    for group in groups:
        for w in group:
            key = (w.kind, w.severity, w.message)
            if key not in seen:
                seen.add(key)
                out.append(w)
    return out


def design_mutagenesis_primers(
    template: str,
    mutation: Mutation,
    params: Optional[MutagenesisParameters] = None,
    fold_engine: Optional[FoldEngine] = None,
) -> MutagenesisResult:
    """
    Design the best primer pair for `mutation` on `template`.

    Raises:
        MutationInputError: the mutation does not apply to the template.
        NoCandidateFoundError: the requested strategy and the overlapping fallback
            both produced no candidates; the message explains why.
    """
    params = params or MutagenesisParameters()
    engine = fold_engine if fold_engine is not None else default_fold_engine()
    plan = build_plan(template, mutation, params.organism)
    logger.info(
        "Designing %s at %d (template %d nt, strategy=%s, circular=%s)",
        plan.mutation.kind, plan.position, len(plan.template), params.strategy, params.circular,
    )

    diag = SearchDiagnostics()
    outcome = run_search(plan, params, params.strategy, diag, engine)
    used_fallback = False
    if outcome.best is None and params.strategy == BACK_TO_BACK:
        logger.warning("No back-to-back candidates; retrying with overlapping primers")
        outcome = run_search(plan, params, OVERLAPPING, diag, engine)
        used_fallback = outcome.best is not None

    best = outcome.best
    if best is None:
        message = build_failure_message(
            diag, params.minTm, params.maxTm, params.minAnnealingLength, params.minPrimerLength, params.circular
        )
        logger.info("Design failed: %s", message.splitlines()[0])
        raise NoCandidateFoundError(message, diag)

    alternates = outcome.ranked[1 : 1 + MAX_ALTERNATES]
    cross = []
    if not used_fallback:
        other = OVERLAPPING if outcome.strategy == BACK_TO_BACK else BACK_TO_BACK
        cross = run_search(plan, params, other, SearchDiagnostics(), engine).ranked[:MAX_CROSS_STRATEGY_ALTERNATES]

    s_fwd = _structure(best.forward.sequence, engine, best.forward.template_region, params.foldTemperature)
    s_rev = _structure(best.reverse.sequence, engine, None, params.foldTemperature)
    hetero = check_heterodimer(best.forward.sequence, best.reverse.sequence, design_type=outcome.strategy)

    warnings = _merge_warnings(
        best.warnings,
        s_fwd.warnings if s_fwd else [],
        s_rev.warnings if s_rev else [],
        hetero.warnings,
    )
    if used_fallback:
        warnings.append(DesignWarning(
            "strategy-fallback", "info", "Back-to-back design found no candidates; overlapping primers were used"
        ))

    annealing = annealing_temperature_q5(
        best.forward.sequence,
        best.reverse.sequence,
        primer_conc_nM=params.primerConc,
        mg_mM=params.mgConc,
        na_mM=params.naConc,
    )
    protocol = generate_protocol(plan, best, annealing, outcome.strategy)

    logger.info(
        "Best pair: %s / %s (tier=%s, score=%s, Ta=%.1f)",
        best.forward.sequence, best.reverse.sequence, best.quality_tier, best.composite_score, annealing.annealing_temp,
    )
    return MutagenesisResult(
        plan=plan,
        best=best,
        strategy=outcome.strategy,
        annealing=annealing,
        structure_forward=s_fwd,
        structure_reverse=s_rev,
        heterodimer=hetero,
        protocol=protocol,
        alternates=alternates,
        cross_strategy_alternates=cross,
        warnings=warnings,
        circular_wrapped=outcome.wrapped,
        used_fallback_strategy=used_fallback,
        positions_explored=diag.positions_explored,
        pairs_evaluated=diag.pairs_evaluated,
    )


# --- Convenience wrappers --------------------------------------------------------------------

def design_substitution(template: str, position: int, new_bases: str, params=None, fold_engine=None) -> MutagenesisResult:
    mutation = Mutation(SUBSTITUTION, position, replacement=new_bases)
    return design_mutagenesis_primers(template, mutation, params, fold_engine)


def design_insertion(template: str, position: int, insertion: str, params=None, fold_engine=None) -> MutagenesisResult:
    mutation = Mutation(INSERTION, position, replacement=insertion)
    return design_mutagenesis_primers(template, mutation, params, fold_engine)


def design_deletion(template: str, start: int, length: int, params=None, fold_engine=None) -> MutagenesisResult:
    mutation = Mutation(DELETION, start, deletion_length=length)
    return design_mutagenesis_primers(template, mutation, params, fold_engine)


def design_codon_change(template: str, codon_position: int, target_aa: str, params=None, fold_engine=None) -> MutagenesisResult:
    mutation = Mutation(CODON_CHANGE, codon_position, target_aa=target_aa.upper())
    return design_mutagenesis_primers(template, mutation, params, fold_engine)


def design_region_substitution(
    template: str, start: int, length: int, replacement: str, params=None, fold_engine=None
) -> MutagenesisResult:
    mutation = Mutation(REGION_SUBSTITUTION, start, replacement=replacement, deletion_length=length)
    return design_mutagenesis_primers(template, mutation, params, fold_engine)


def design_from_notation(template: str, notation: str, params=None, fold_engine=None) -> MutagenesisResult:
    return design_mutagenesis_primers(template, parse_mutation_notation(notation), params, fold_engine)
