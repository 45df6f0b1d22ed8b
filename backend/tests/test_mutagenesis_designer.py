# File: backend/tests/test_mutagenesis_designer.py
# Version: v0.2.0
"""
End-to-end design scenarios on a GFP template (no ViennaRNA needed):
- point substitution on a circular plasmid
- failure diagnostics when the 3' side is too short on a linear template
- origin-spanning primers on a short circular template
- fallback to overlapping primers, codon change by notation, protocol
- reaction conditions (no Mg2+, custom primer concentration) reaching Tm and Ta
"""

from __future__ import annotations

import pytest

from backend.app.core.mutagenesis.designer import (
    design_codon_change,
    design_deletion,
    design_from_notation,
    design_insertion,
    design_mutagenesis_primers,
    design_region_substitution,
    design_substitution,
)
from backend.app.core.mutagenesis.diagnostics import NoCandidateFoundError
from backend.app.core.mutagenesis.errors import MutationInputError
from backend.app.core.mutagenesis.models import BACK_TO_BACK, OVERLAPPING, SUBSTITUTION, Mutation
from backend.app.core.mutagenesis.parameters import merge_parameters
from backend.app.core.mutagenesis.sequence import reverse_complement
from backend.app.core.mutagenesis.thermodynamics import tm_q5

LINEAR = merge_parameters(None, {"circular": False})


def _swap(base: str) -> str:
    return "C" if base != "C" else "G"


def test_gfp_point_substitution(gfp, flat_engine):
    res = design_mutagenesis_primers(gfp, Mutation(SUBSTITUTION, 10, replacement="G"), fold_engine=flat_engine)
    n = len(gfp)
    fwd, rev = res.forward, res.reverse

    assert res.strategy == BACK_TO_BACK
    assert not res.used_fallback_strategy
    assert fwd.sequence[(10 - fwd.start) % n] == "G"
    assert rev.end % n == fwd.start
    assert abs(fwd.tm - rev.tm) <= 8
    assert res.quality_tier in ("excellent", "good", "acceptable")
    assert res.composite_score is not None
    assert res.annealing.annealing_temp <= 72
    assert res.heterodimer.dimer_type != "expected_overlap"
    assert res.structure_forward is not None and res.structure_forward.fold_dg == 0.0
    assert len(res.alternates) <= 10
    assert len(res.cross_strategy_alternates) <= 3
    assert all(p.strategy == OVERLAPPING for p in res.cross_strategy_alternates)
    assert res.pairs_evaluated > 0


def test_linear_length_issue_message(gfp, flat_engine):
    pos = len(gfp) - 5
    with pytest.raises(NoCandidateFoundError) as exc:
        design_substitution(gfp, pos, _swap(gfp[pos]), params=LINEAR, fold_engine=flat_engine)
    msg = str(exc.value)
    assert "Length issue" in msg
    assert "Reduce the minimum primer length" in msg
    assert "circular=true" in msg
    diag = exc.value.diagnostics
    assert diag.fwd_region_too_short > 0
    assert diag.strategies_tried == [BACK_TO_BACK, OVERLAPPING]


def test_circular_wrap_on_short_template(short_circular, flat_engine):
    res = design_substitution(short_circular, 2, "A", fold_engine=flat_engine)
    n = len(short_circular)
    fwd, rev = res.forward, res.reverse
    assert res.circular_wrapped
    assert 0 <= fwd.start < n and 0 < fwd.end <= n
    assert 0 <= rev.start < n and 0 < rev.end <= n
    assert fwd.sequence[(2 - fwd.start) % n] == "A"
    assert rev.end % n == fwd.start


def test_falls_back_to_overlapping(gfp, flat_engine):
    # 11 nt downstream: too short for a 15 nt annealing region, enough for a 10 nt flank
    pos = len(gfp) - 12
    res = design_substitution(gfp, pos, _swap(gfp[pos]), params=LINEAR, fold_engine=flat_engine)
    assert res.strategy == OVERLAPPING
    assert res.used_fallback_strategy
    assert res.cross_strategy_alternates == []
    assert res.reverse.sequence == reverse_complement(res.forward.sequence)
    assert any(w.kind == "strategy-fallback" for w in res.warnings)
    assert res.protocol.name.endswith("(QuikChange)")


def test_overlapping_strategy_requested(gfp, flat_engine):
    params = merge_parameters(None, {"strategy": "overlapping", "circular": False})
    res = design_substitution(gfp, 150, _swap(gfp[150]), params=params, fold_engine=flat_engine)
    assert res.strategy == OVERLAPPING
    assert not res.used_fallback_strategy
    assert res.heterodimer.dimer_type == "expected_overlap"
    assert all(p.strategy == BACK_TO_BACK for p in res.cross_strategy_alternates)


def test_codon_change_by_notation(gfp, flat_engine):
    # codon 4 is AAA (Lys)
    res = design_from_notation(gfp, "K4R", fold_engine=flat_engine)
    assert res.plan.original_codon == "AAA"
    assert res.plan.new_codon == "AGA"
    n = len(gfp)
    off = (9 - res.forward.start) % n
    assert res.forward.sequence[off:off + 3] == "AGA"
    assert res.protocol.name == "Codon Change Mutagenesis Protocol"
    assert "Codon: AAA -> AGA" in res.protocol.notes


def test_codon_change_wrapper_matches_notation(gfp, flat_engine):
    a = design_codon_change(gfp, 9, "r", fold_engine=flat_engine)
    b = design_from_notation(gfp, "K4R", fold_engine=flat_engine)
    assert a.forward.sequence == b.forward.sequence
    assert a.reverse.sequence == b.reverse.sequence


def test_insertion_and_deletion(gfp, flat_engine):
    ins = design_insertion(gfp, 150, "CATCAT", params=LINEAR, fold_engine=flat_engine)
    assert "CATCAT" in ins.forward.sequence
    assert ins.reverse.end == ins.forward.start

    dele = design_deletion(gfp, 150, 6, params=LINEAR, fold_engine=flat_engine)
    mutated = gfp[:150] + gfp[156:]
    assert dele.forward.sequence == mutated[dele.forward.start:dele.forward.end]
    assert 150 - dele.forward.start >= 5


def test_protocol_steps_back_to_back(gfp, flat_engine):
    res = design_substitution(gfp, 150, _swap(gfp[150]), params=LINEAR, fold_engine=flat_engine)
    names = [s.name for s in res.protocol.steps]
    assert names[0] == "Prepare PCR master mix"
    assert any("Kinase and ligase" in s for s in names)
    assert "DpnI digest template" in names
    assert names[-1] == "Transform competent cells"
    assert res.protocol.annealing_temp == res.annealing.annealing_temp


def test_broken_fold_engine_omits_structure(gfp, broken_engine):
    res = design_substitution(gfp, 150, _swap(gfp[150]), params=LINEAR, fold_engine=broken_engine)
    assert res.structure_forward is None
    assert res.structure_reverse is None
    assert res.forward.fold_dg is None


def test_invalid_input_raises(gfp, flat_engine):
    with pytest.raises(MutationInputError):
        design_substitution(gfp, len(gfp) + 5, "G", fold_engine=flat_engine)
    with pytest.raises(MutationInputError):
        design_from_notation(gfp, "T11G", fold_engine=flat_engine)


def test_region_substitution(gfp, flat_engine):
    res = design_region_substitution(gfp, 150, 3, "GGATCCAT", params=LINEAR, fold_engine=flat_engine)
    assert res.plan.mutated == gfp[:150] + "GGATCCAT" + gfp[153:]
    assert "GGATCCAT" in res.forward.sequence
    assert res.reverse.sequence == reverse_complement(gfp[res.reverse.start:res.reverse.end])


def test_design_without_magnesium(gfp, flat_engine):
    params = merge_parameters(None, {"mgConc": 0.0, "circular": False})
    res = design_substitution(gfp, 150, _swap(gfp[150]), params=params, fold_engine=flat_engine)
    assert params.minTm <= res.forward.tm <= params.rescueMaxTm
    assert res.forward.mismatch_tm is None or res.forward.mismatch_tm.salt_correction == 0.0


def test_annealing_follows_reaction_conditions(gfp, flat_engine):
    params = merge_parameters(None, {"primerConc": 250.0, "mgConc": 3.0, "circular": False})
    res = design_substitution(gfp, 150, _swap(gfp[150]), params=params, fold_engine=flat_engine)
    assert res.annealing.tm_forward == res.forward.tm
    assert res.annealing.tm_reverse == res.reverse.tm
    assert res.annealing.tm_forward == tm_q5(res.forward.sequence, primer_conc_nM=250.0, mg_mM=3.0, na_mM=50.0)
