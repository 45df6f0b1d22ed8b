# File: backend/tests/test_mutagenesis_generator.py
# Version: v0.2.0
"""
Candidate generation and the two-stage search:
- back-to-back geometry (forward from the mutated sequence, reverse abutting it)
- overlapping geometry (reverse = revcomp(forward))
- circular wrapping and coordinate normalization
- determinism of the ranked output
- rescue mode, 5'-tail confinement, exhaustive enrichment
- failure messages for Tm window problems
"""

from __future__ import annotations

from backend.app.core.mutagenesis.diagnostics import SearchDiagnostics, build_failure_message
from backend.app.core.mutagenesis.generator import (
    generate_back_to_back,
    generate_overlapping,
    valid_primer_candidates,
)
from backend.app.core.mutagenesis.models import BACK_TO_BACK, INSERTION, OVERLAPPING, SUBSTITUTION, Mutation
from backend.app.core.mutagenesis.mutations import build_plan
from backend.app.core.mutagenesis.parameters import MutagenesisParameters, merge_parameters
from backend.app.core.mutagenesis.search import WorkingTemplate, run_search, split_offsets
from backend.app.core.mutagenesis.sequence import reverse_complement

POS = 120


def _swap(base: str) -> str:
    return "C" if base != "C" else "G"


def _plan(template: str, pos: int):
    return build_plan(template, Mutation(SUBSTITUTION, pos, replacement=_swap(template[pos])))


def test_valid_candidates_respect_tm_window(gfp):
    params = MutagenesisParameters()
    cands = valid_primer_candidates(gfp[POS:], params, 15, 35)
    assert cands
    for c in cands:
        assert params.minTm <= c.tm <= params.maxTm
        assert not c.is_rescue
        assert gfp[POS:].startswith(c.sequence)


def test_back_to_back_geometry(gfp):
    plan = _plan(gfp, POS)
    params = MutagenesisParameters()
    diag = SearchDiagnostics()
    pairs = generate_back_to_back(plan.template, plan.mutated, POS, 1, 1, params, diag)
    assert pairs
    assert diag.pairs_evaluated == len(pairs)
    for p in pairs:
        f, r = p.forward, p.reverse
        assert p.strategy == BACK_TO_BACK
        assert f.sequence == plan.mutated[f.start:f.end]
        assert f.start <= POS < f.end
        assert 3 <= POS - f.start <= 10
        assert r.sequence == reverse_complement(plan.template[r.start:r.end])
        assert r.end == f.start
        assert p.tm_diff == abs(f.tm - r.tm)
        assert p.penalty >= 0


def test_overlapping_geometry(gfp):
    plan = _plan(gfp, POS)
    params = MutagenesisParameters()
    pairs = generate_overlapping(plan.template, plan.mutated, POS, 1, 1, params, SearchDiagnostics())
    assert pairs
    for p in pairs:
        f, r = p.forward, p.reverse
        assert r.sequence == reverse_complement(f.sequence)
        assert (r.start, r.end) == (f.start, f.end)
        assert p.left_flank >= params.minFlankingLength
        assert p.right_flank >= params.minFlankingLength
        assert f.sequence[p.left_flank] == plan.mutated[POS]


def test_overlapping_records_short_flank(gfp):
    plan = _plan(gfp, 4)
    diag = SearchDiagnostics()
    pairs = generate_overlapping(plan.template, plan.mutated, 4, 1, 1, MutagenesisParameters(), diag)
    assert pairs == []
    assert diag.rev_region_too_short == 1
    assert diag.shortest_upstream == 4


def test_split_offsets():
    plan = build_plan("ACGT" * 20, Mutation(SUBSTITUTION, 40, replacement="T"))
    assert split_offsets(plan, BACK_TO_BACK) == (0, -1, 1, -2, 2)
    assert split_offsets(plan, OVERLAPPING) == (0,)


def test_working_template_wraps_near_edges(short_circular):
    plan = _plan(short_circular, 2)
    work = WorkingTemplate.build(plan, circular=True, margin=60)
    assert work.wrapped
    assert work.prefix_copies == work.suffix_copies == 1
    assert work.position == 52
    assert len(work.template) == 150

    linear = WorkingTemplate.build(plan, circular=False, margin=60)
    assert not linear.wrapped
    assert linear.position == 2


def test_search_normalizes_wrapped_coordinates(short_circular, flat_engine):
    plan = _plan(short_circular, 2)
    outcome = run_search(plan, MutagenesisParameters(), BACK_TO_BACK, SearchDiagnostics(), flat_engine)
    assert outcome.wrapped
    assert outcome.ranked
    n = len(short_circular)
    for p in outcome.ranked:
        assert 0 <= p.forward.start < n and 0 < p.forward.end <= n
        assert 0 <= p.reverse.start < n and 0 < p.reverse.end <= n
        assert p.reverse.end % n == p.forward.start
        assert p.forward.sequence[(2 - p.forward.start) % n] == plan.mutated[2]


def test_search_ranks_and_enriches_top_pairs(gfp, flat_engine):
    plan = _plan(gfp, POS)
    params = merge_parameters(None, {"circular": False})
    outcome = run_search(plan, params, BACK_TO_BACK, SearchDiagnostics(), flat_engine)
    assert not outcome.wrapped
    assert 0 < len(outcome.ranked) <= 10
    assert outcome.pooled >= len(outcome.ranked)
    for p in outcome.ranked:
        assert p.enriched
        assert p.quality_tier in ("excellent", "good", "acceptable", "poor")
        assert p.composite_score is not None
        assert p.forward.terminal_dg is not None
        assert p.forward.g_quadruplex is not None


def test_search_is_deterministic(gfp, flat_engine):
    plan = _plan(gfp, POS)
    params = merge_parameters(None, {"circular": False})
    a = run_search(plan, params, BACK_TO_BACK, SearchDiagnostics(), flat_engine)
    b = run_search(plan, params, BACK_TO_BACK, SearchDiagnostics(), flat_engine)
    assert [p.key() for p in a.ranked] == [p.key() for p in b.ranked]
    assert [p.composite_score for p in a.ranked] == [p.composite_score for p in b.ranked]


# GC-rich (64% GC) stretch
GC_RICH = (
    "ATGACCGCTGCAGACGGTCAGCCTGATCGCAGCTTGCCGACGATCGCAGTCGCCATGCGACCGTGACGCTGCAATCG"
    "CCGTCAGGCTGACGCAGTCGATGC"
)


def test_rescue_mode_flags_gc_rich_pairs():
    # a narrow normal window pushes the GC-rich forward primers into the rescue band
    params = merge_parameters(None, {"minTm": 55, "maxTm": 60, "rescueMaxTm": 76})
    plan = _plan(GC_RICH, 50)
    diag = SearchDiagnostics()
    pairs = generate_back_to_back(plan.template, plan.mutated, 50, 1, 1, params, diag)

    rescue = [p for p in pairs if p.is_rescue]
    assert rescue
    assert diag.used_rescue_mode
    for p in rescue:
        assert max(p.forward.tm, p.reverse.tm) > params.maxTm
        assert max(p.forward.tm, p.reverse.tm) <= params.rescueMaxTm
        kinds = [w.kind for w in p.warnings]
        assert kinds == ["rescue-mode"]
        assert "GC-rich region" in p.warnings[0].message
    for p in pairs:
        if not p.is_rescue:
            assert p.warnings == []


def test_confine_to_5prime_tails_keeps_template_annealing(gfp):
    plan = build_plan(gfp, Mutation(INSERTION, POS, replacement="CATCAT"))
    params = merge_parameters(None, {"confineTo5Tails": True})
    pairs = generate_back_to_back(
        plan.template, plan.mutated, POS, plan.insert_length, plan.deletion_length, params, SearchDiagnostics()
    )
    assert pairs
    for p in pairs:
        f = p.forward
        tail = POS + plan.insert_length - f.start
        assert f.sequence[:tail] == plan.mutated[f.start:POS + plan.insert_length]
        anneal = f.sequence[tail:]
        assert params.minAnnealingLength <= len(anneal) <= params.maxAnnealingLength
        assert anneal == gfp[POS:POS + len(anneal)]


def test_exhaustive_search_enriches_up_to_100(gfp, flat_engine):
    plan = _plan(gfp, POS)
    default = run_search(plan, merge_parameters(None, {"circular": False}), BACK_TO_BACK,
                         SearchDiagnostics(), flat_engine)
    exhaustive = run_search(plan, merge_parameters(None, {"circular": False, "exhaustiveSearch": True}),
                            BACK_TO_BACK, SearchDiagnostics(), flat_engine)
    assert default.pooled == exhaustive.pooled > 10
    assert len(default.ranked) == 10
    assert len(exhaustive.ranked) == min(100, exhaustive.pooled)
    assert all(p.enriched for p in exhaustive.ranked)


# --- failure diagnostics ---

def test_failure_message_reports_tm_window():
    diag = SearchDiagnostics(no_fwd_candidates_in_tm_window=3, no_rev_candidates_in_tm_window=2, fwd_gc_extreme=2)
    diag.strategies_tried.append(BACK_TO_BACK)
    diag.fwd_tm_too_low.record(48.0, "ATATTAATATTTAAT", 0.0, lowest=True)
    diag.fwd_tm_too_low.record(51.0, "ATATTAATATTTAATG", 0.06, lowest=True)
    diag.rev_tm_too_high.record(80.0, "GCGGCCGCGGCGCCG", 1.0, lowest=False)

    msg = build_failure_message(diag, 55, 72, 15, 15, circular=True)
    assert "Tm window issue:" in msg
    assert "Length issue:" not in msg
    assert "No forward primer within 55-72 °C at 3 positions" in msg
    assert "No reverse primer within 55-72 °C at 2 positions" in msg
    assert "forward too cold: 2 lengths (extreme Tm 48 °C, GC 0%, ATATTAATATTTAAT)" in msg
    assert "reverse too hot: 1 lengths (extreme Tm 80 °C, GC 100%, GCGGCCGCGGCGCCG)" in msg
    assert "Lower minTm toward 47 °C" in msg
    assert "Raise maxTm toward 80 °C" in msg
    assert "Local GC content is extreme" in msg
    assert "Strategies tried: back-to-back" in msg


def test_failure_message_without_any_mode_suggests_widening():
    msg = build_failure_message(SearchDiagnostics(), 55, 72, 15, 15, circular=False)
    assert "Widen the Tm window or the primer length range" in msg
    assert "Strategies tried: none" in msg
