# File: backend/tests/test_mutagenesis_mutations.py
# Version: v0.1.0
"""
Mutation input handling:
- sequence helpers and codon selection
- notation parsing (1-based in, 0-based out)
- plan building and input validation errors
"""

from __future__ import annotations

import pytest

from backend.app.core.mutagenesis.codons import CODON_TABLE, select_optimal_codon
from backend.app.core.mutagenesis.errors import MutationInputError
from backend.app.core.mutagenesis.models import (
    CODON_CHANGE,
    DELETION,
    INSERTION,
    REGION_SUBSTITUTION,
    SUBSTITUTION,
    Mutation,
)
from backend.app.core.mutagenesis.mutations import build_plan, parse_mutation_notation
from backend.app.core.mutagenesis.sequence import (
    gc_fraction,
    invalid_bases,
    longest_homopolymer,
    normalize,
    reverse_complement,
    translate,
)

TEMPLATE = "ATGAAACTGGCTAGCAAAGGAGAAGAACTTTTCACTGGAGTTGTCCCAATT"


# --- sequence helpers ---

def test_sequence_helpers():
    assert normalize(" acg t\n") == "ACGT"
    assert invalid_bases("ACGNXT") == "NX"
    assert reverse_complement("ATGC") == "GCAT"
    assert gc_fraction("GGCCAATT") == 0.5
    assert longest_homopolymer("ATTTTGC") == 4
    assert translate("ATGAAACTG") == "MKL"


# --- codons ---

def test_codon_table_covers_all_64():
    assert sum(len(v) for v in CODON_TABLE.values()) == 64
    assert set(CODON_TABLE["*"]) == {"TAA", "TAG", "TGA"}


def test_select_optimal_codon_min_changes_first():
    sel = select_optimal_codon("AAA", "R", "ecoli")
    assert sel.selected_codon == "AGA"
    assert sel.nucleotide_changes == 1
    assert sel.changed_positions == (2,)
    assert sel.candidates[0].codon == "AGA"


def test_select_optimal_codon_usage_breaks_ties():
    # Phe TTT -> Leu: TTA, TTG and CTT are one change each; TTA has the highest E. coli usage
    sel = select_optimal_codon("TTT", "L", "ecoli")
    assert sel.selected_codon == "TTA"
    assert sel.nucleotide_changes == 1


def test_select_optimal_codon_without_organism():
    sel = select_optimal_codon("AAA", "R", None)
    assert sel.codon_usage == 0.5
    assert sel.nucleotide_changes == 1


def test_select_optimal_codon_rejects_unknown_aa():
    with pytest.raises(MutationInputError):
        select_optimal_codon("AAA", "B")


# --- notation ---

@pytest.mark.parametrize(
    "notation, kind, position, extra",
    [
        ("A123G", SUBSTITUTION, 122, {"replacement": "G", "original": "A"}),
        ("c.T5C", SUBSTITUTION, 4, {"replacement": "C"}),
        ("K45R", CODON_CHANGE, 132, {"target_aa": "R", "original": "K"}),
        ("p.A2G", CODON_CHANGE, 3, {"target_aa": "G", "original": "A"}),
        ("W10*", CODON_CHANGE, 27, {"target_aa": "*"}),
        ("del100-110", DELETION, 99, {"deletion_length": 11}),
        ("Δ7", DELETION, 6, {"deletion_length": 1}),
        ("ins100_ACGT", INSERTION, 99, {"replacement": "ACGT"}),
        ("sub100-102_GGCA", REGION_SUBSTITUTION, 99, {"replacement": "GGCA", "deletion_length": 3}),
    ],
)
def test_parse_mutation_notation(notation, kind, position, extra):
    m = parse_mutation_notation(notation)
    assert m.kind == kind
    assert m.position == position
    for key, value in extra.items():
        assert getattr(m, key) == value


@pytest.mark.parametrize("bad", ["", "A0G", "XYZ", "del10-5", "ins5_", "c.K45R", "B12Z"])
def test_parse_mutation_notation_rejects(bad):
    with pytest.raises(MutationInputError):
        parse_mutation_notation(bad)


# --- plans ---

def test_build_plan_substitution():
    plan = build_plan(TEMPLATE, Mutation(SUBSTITUTION, 3, replacement="G"))
    assert plan.mutated == TEMPLATE[:3] + "G" + TEMPLATE[4:]
    assert plan.insert_length == plan.deletion_length == 1
    assert plan.is_equal_length


def test_build_plan_insertion_and_deletion():
    ins = build_plan(TEMPLATE, Mutation(INSERTION, 6, replacement="CAT"))
    assert ins.mutated == TEMPLATE[:6] + "CAT" + TEMPLATE[6:]
    assert ins.is_insertion

    dele = build_plan(TEMPLATE, Mutation(DELETION, 6, deletion_length=3))
    assert dele.mutated == TEMPLATE[:6] + TEMPLATE[9:]
    assert dele.is_deletion


def test_build_plan_codon_change_uses_optimal_codon():
    # codon 2 is AAA (Lys)
    plan = build_plan(TEMPLATE, parse_mutation_notation("K2R"))
    assert plan.original_codon == "AAA"
    assert plan.new_codon == "AGA"
    assert plan.mutated[3:6] == "AGA"
    assert plan.codon_changes == (2,)


def test_build_plan_region_substitution():
    plan = build_plan(TEMPLATE, Mutation(REGION_SUBSTITUTION, 9, replacement="TTTTT", deletion_length=3))
    assert plan.mutated == TEMPLATE[:9] + "TTTTT" + TEMPLATE[12:]
    assert not plan.is_equal_length


def test_build_plan_rejects_identity():
    with pytest.raises(MutationInputError, match="identical"):
        build_plan(TEMPLATE, Mutation(SUBSTITUTION, 0, replacement="A"))


def test_build_plan_rejects_synonymous_codon_change():
    with pytest.raises(MutationInputError):
        build_plan(TEMPLATE, parse_mutation_notation("K2K"))


def test_build_plan_rejects_wrong_original_base():
    with pytest.raises(MutationInputError, match="not C"):
        build_plan(TEMPLATE, parse_mutation_notation("C1G"))


def test_build_plan_rejects_invalid_bases_and_range():
    with pytest.raises(MutationInputError, match="Invalid base"):
        build_plan("ACGTNNACGT", Mutation(SUBSTITUTION, 0, replacement="G"))
    with pytest.raises(MutationInputError, match="outside"):
        build_plan(TEMPLATE, Mutation(SUBSTITUTION, len(TEMPLATE), replacement="G"))
    with pytest.raises(MutationInputError):
        build_plan("", Mutation(SUBSTITUTION, 0, replacement="G"))
