# File: backend/app/core/mutagenesis/mutations.py
# Version: v0.2.0
"""
Mutation descriptors: notation parsing, validation and the mutated sequence.

Notation (1-based positions in, 0-based out):
    A123G          nucleotide substitution (both letters A/C/G/T)
    K45R, K45*     amino-acid change at codon 45 (codon change on frame 0)
    p.A45G         force amino-acid reading;  c.A123G forces nucleotide reading
    del100-110     deletion of 100..110 inclusive;  del100 / Δ100 single base
    ins100_ACGT    insertion before base 100
    sub100-102_GGC replace 100..102 with an arbitrary sequence

Every error here is a `MutationInputError` and no search is attempted after one.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from backend.app.core.mutagenesis.codons import AA_NAMES, select_optimal_codon
from backend.app.core.mutagenesis.errors import MutationInputError
from backend.app.core.mutagenesis.models import (
    CODON_CHANGE,
    DELETION,
    INSERTION,
    REGION_SUBSTITUTION,
    SUBSTITUTION,
    Mutation,
    MutationPlan,
)
from backend.app.core.mutagenesis.sequence import invalid_bases, normalize, translate_codon

logger = logging.getLogger(__name__)

_POINT = re.compile(r"^(?P<prefix>[PC]\.)?(?P<orig>[A-Z])(?P<pos>\d+)(?P<new>[A-Z*])$")
_DELETION = re.compile(r"^(?:DEL|Δ)(?P<start>\d+)(?:-(?P<end>\d+))?$")
_INSERTION = re.compile(r"^INS(?P<pos>\d+)_(?P<seq>[ACGT]+)$")
_REGION = re.compile(r"^SUB(?P<start>\d+)(?:-(?P<end>\d+))?_(?P<seq>[ACGT]+)$")
_NUCLEOTIDES = set("ACGT")


def _one_based(value: str, notation: str) -> int:
    pos = int(value)
    if pos < 1:
        raise MutationInputError(f"Positions are 1-based: {notation}")
    return pos - 1


def parse_mutation_notation(notation: str) -> Mutation:
    text = (notation or "").strip()
    upper = text.upper()
    if not upper:
        raise MutationInputError("Empty mutation notation")

    m = _POINT.match(upper)
    if m:
        orig, new, prefix = m.group("orig"), m.group("new"), m.group("prefix")
        nucleotide = orig in _NUCLEOTIDES and new in _NUCLEOTIDES
        if prefix == "P.":
            nucleotide = False
        elif prefix == "C.":
            if not nucleotide:
                raise MutationInputError(f"Not a nucleotide change: {notation}")
        pos = _one_based(m.group("pos"), notation)
        if nucleotide:
            return Mutation(SUBSTITUTION, pos, replacement=new, original=orig, notation=upper)
        if orig not in AA_NAMES or new not in AA_NAMES:
            raise MutationInputError(f"Unknown amino acid in {notation}")
        return Mutation(CODON_CHANGE, pos * 3, target_aa=new, original=orig, notation=upper)

    m = _DELETION.match(upper)
    if m:
        start = _one_based(m.group("start"), notation)
        end = _one_based(m.group("end"), notation) if m.group("end") else start
        if end < start:
            raise MutationInputError(f"Deletion end precedes start: {notation}")
        return Mutation(DELETION, start, deletion_length=end - start + 1, notation=upper)

    m = _INSERTION.match(upper)
    if m:
        return Mutation(INSERTION, _one_based(m.group("pos"), notation), replacement=m.group("seq"), notation=upper)

    m = _REGION.match(upper)
    if m:
        start = _one_based(m.group("start"), notation)
        end = _one_based(m.group("end"), notation) if m.group("end") else start
        if end < start:
            raise MutationInputError(f"Region end precedes start: {notation}")
        return Mutation(
            REGION_SUBSTITUTION, start, replacement=m.group("seq"), deletion_length=end - start + 1, notation=upper
        )

    raise MutationInputError(f"Unrecognized mutation notation: {notation}")


def _check_bases(seq: str, what: str) -> None:
    bad = invalid_bases(seq)
    if bad:
        raise MutationInputError(f"Invalid base(s) in {what}: {bad}")


def _check_span(template: str, start: int, length: int) -> None:
    if start < 0 or start + length > len(template):
        raise MutationInputError(
            f"Position {start + 1}..{start + length} is outside the template (length {len(template)})"
        )


def build_plan(template: str, mutation: Mutation, organism: Optional[str] = "ecoli") -> MutationPlan:
    """
    Validate `mutation` against `template` and derive the mutated sequence.

    Raises:
        MutationInputError: invalid bases, out-of-range position, or a no-op mutation.
    """
    seq = normalize(template)
    if not seq:
        raise MutationInputError("Template sequence is empty")
    _check_bases(seq, "template")
    p = mutation.position
    kind = mutation.kind

    if kind == SUBSTITUTION:
        new = normalize(mutation.replacement)
        if not new:
            raise MutationInputError("Substitution needs replacement bases")
        _check_bases(new, "replacement")
        _check_span(seq, p, len(new))
        old = seq[p : p + len(new)]
        if mutation.original and old[0] != mutation.original:
            raise MutationInputError(f"Template has {old[0]} at position {p + 1}, not {mutation.original}")
        if old == new:
            raise MutationInputError(f"Mutation is identical to the original sequence ({old})")
        return MutationPlan(mutation, seq, seq[:p] + new + seq[p + len(new):], p, len(new), len(new))

    if kind == INSERTION:
        ins = normalize(mutation.replacement)
        if not ins:
            raise MutationInputError("Insertion needs a sequence")
        _check_bases(ins, "insertion")
        if p < 0 or p > len(seq):
            raise MutationInputError(f"Insertion position {p + 1} is outside the template (length {len(seq)})")
        return MutationPlan(mutation, seq, seq[:p] + ins + seq[p:], p, len(ins), 0)

    if kind == DELETION:
        length = mutation.deletion_length
        if length < 1:
            raise MutationInputError("Deletion length must be >= 1")
        _check_span(seq, p, length)
        if length >= len(seq):
            raise MutationInputError("Cannot delete the whole template")
        return MutationPlan(mutation, seq, seq[:p] + seq[p + length:], p, 0, length)

    if kind == CODON_CHANGE:
        if not mutation.target_aa:
            raise MutationInputError("Codon change needs a target amino acid")
        _check_span(seq, p, 3)
        codon = seq[p : p + 3]
        current = translate_codon(codon)
        if mutation.original and current != mutation.original:
            raise MutationInputError(
                f"Codon {p // 3 + 1} ({codon}) encodes {current}, not {mutation.original}"
            )
        if current == mutation.target_aa.upper():
            raise MutationInputError(f"Codon {codon} already encodes {current}")
        choice = select_optimal_codon(codon, mutation.target_aa, organism)
        logger.info(
            "Codon %s -> %s (%s, %d change(s), usage %.2f)",
            codon, choice.selected_codon, mutation.target_aa.upper(), choice.nucleotide_changes, choice.codon_usage,
        )
        return MutationPlan(
            mutation, seq, seq[:p] + choice.selected_codon + seq[p + 3:], p, 3, 3,
            original_codon=codon, new_codon=choice.selected_codon, codon_changes=choice.changed_positions,
        )

    if kind == REGION_SUBSTITUTION:
        length = mutation.deletion_length
        new = normalize(mutation.replacement)
        if length < 1 or not new:
            raise MutationInputError("Region substitution needs a region length and a replacement sequence")
        _check_bases(new, "replacement")
        _check_span(seq, p, length)
        if seq[p : p + length] == new:
            raise MutationInputError("Replacement is identical to the original region")
        return MutationPlan(mutation, seq, seq[:p] + new + seq[p + length:], p, len(new), length)

    raise MutationInputError(f"Unknown mutation type: {kind}")
