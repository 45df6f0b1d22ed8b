# File: backend/tests/test_mutagenesis_structure.py
# Version: v0.2.0
"""
Primer structure checks with deterministic fold engines:
- hairpin bands (3' vs internal), 3' severity, comparison with the original primer
- heterodimer scan for back-to-back and overlapping designs
"""

from __future__ import annotations

from typing import List

import pytest

from backend.app.core.mutagenesis.constants import classify_dimer_severity
from backend.app.core.mutagenesis.fold import FoldEngine, FoldStructure, pairs_from_dotbracket
from backend.app.core.mutagenesis.models import BACK_TO_BACK, OVERLAPPING
from backend.app.core.mutagenesis.sequence import reverse_complement
from backend.app.core.mutagenesis.structure import (
    check_heterodimer,
    check_mutant_secondary_structure,
    classify_3prime_severity,
    estimate_self_dimer_dg,
)

# only A/C: no Watson-Crick pair with itself, so self-dimer ΔG is 0
NO_SELF = "AACCAACCAACCAACCAACC"


class GGGFoldEngine(FoldEngine):
    """Stable structure only when the sequence holds a GGG run."""

    def fold(self, seq: str, temp_c: float = 37.0) -> List[FoldStructure]:
        if "GGG" in seq:
            return [FoldStructure(energy=-5.0, base_pairs=((2, 9),))]
        return []


def test_pairs_from_dotbracket():
    assert pairs_from_dotbracket("((..))") == [(0, 5), (1, 4)]
    with pytest.raises(ValueError):
        pairs_from_dotbracket("(()")


def test_self_dimer_zero_without_complement():
    assert estimate_self_dimer_dg(NO_SELF) == 0.0
    assert estimate_self_dimer_dg("GAATTCGAATTCGAATTC") < 0


def test_flat_engine_gives_clean_report(flat_engine):
    check = check_mutant_secondary_structure(NO_SELF, flat_engine)
    assert check.fold_dg == 0.0
    assert check.warnings == []
    assert check.three_prime_severity == "none"
    assert check.is_acceptable


def test_3prime_hairpin_is_critical(fixed_engine):
    engine = fixed_engine(-5.0, [(0, 6), (1, 5)])
    check = check_mutant_secondary_structure(NO_SELF, engine)
    assert check.involves_3prime
    assert check.three_prime_severity == "critical"
    kinds = {w.kind: w.severity for w in check.warnings}
    assert kinds["hairpin"] == "critical"
    assert kinds["3prime-structure"] == "critical"
    assert not check.is_acceptable


def test_internal_hairpin_uses_internal_bands(fixed_engine):
    engine = fixed_engine(-4.0, [(10, 15)])
    check = check_mutant_secondary_structure(NO_SELF, engine)
    assert not check.involves_3prime
    assert check.three_prime_severity == "none"
    assert [(w.kind, w.severity) for w in check.warnings] == [("hairpin", "warning")]
    assert "Stable hairpin detected" in check.warnings[0].message


def test_comparison_with_original_flags_stabilisation():
    check = check_mutant_secondary_structure("ACGGGTACCAATCG", GGGFoldEngine(), original_primer="ACGAGTACCAATCG")
    assert check.change_from_original["fold_change"] == -5.0
    assert any(w.kind == "stability-change" for w in check.warnings)


def test_broken_engine_propagates(broken_engine):
    with pytest.raises(RuntimeError):
        check_mutant_secondary_structure(NO_SELF, broken_engine)


@pytest.mark.parametrize(
    "energy, pairs, level",
    [
        (-1.0, [(0, 1)], "none"),
        (-5.0, [(18, 19)], "critical"),
        (-3.5, [(10, 16)], "warning"),
        (-1.5, [(2, 11)], "info"),
        (-3.5, [(2, 11)], "moderate"),
        (-2.5, [(2, 11)], "low"),
    ],
)
def test_classify_3prime_severity(energy, pairs, level):
    assert classify_3prime_severity(energy, pairs, 20)[0] == level


# --- heterodimers ---

def test_heterodimer_3prime_extensible():
    res = check_heterodimer("AAAAAAAAAAAAGGATCC", "CCCCCCCCCCCCGGATCC", design_type=BACK_TO_BACK)
    assert res.severity == "critical"
    assert res.dimer_type == "3prime_extensible"
    assert res.max_consecutive == 6
    assert res.involves_3prime_forward and res.involves_3prime_reverse
    assert not res.is_acceptable


def test_heterodimer_none_for_unrelated_primers():
    res = check_heterodimer("AAAAAAAAAAAAAAAAAA", "CCCCCCCCCCCCCCCCCC")
    assert res.severity == "safe"
    assert res.dimer_type == "none"
    assert res.dg == 0.0


def test_internal_heterodimer_warns_by_dimer_threshold_band():
    core = "CATCATCA"
    res = check_heterodimer(core + "CCCCCC", reverse_complement(core) + "CCCCCC", design_type=BACK_TO_BACK)
    assert res.dimer_type == "internal"
    assert res.max_consecutive == len(core)
    assert not res.involves_3prime_forward and not res.involves_3prime_reverse
    assert res.dg < 0
    assert bool(res.warnings) == (classify_dimer_severity(res.dg, "heterodimer") != "pass")


def test_overlapping_exact_complement_is_expected():
    fwd = "ACGTTGCAAGCTTGCATGCC"
    res = check_heterodimer(fwd, reverse_complement(fwd), design_type=OVERLAPPING)
    assert res.dimer_type == "expected_overlap"
    assert res.overlap_percent == 100.0
    assert res.warnings == []


def test_overlapping_without_pairing_warns():
    res = check_heterodimer("AAAAAAAAAAAAAAAAAA", "AAAAAAAAAAAAAAAAAA", design_type=OVERLAPPING)
    assert res.dimer_type == "ligation_junction"
    assert res.overlap_percent == 0.0
    assert [w.kind for w in res.warnings] == ["incomplete-overlap"]
