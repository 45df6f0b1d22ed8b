# File: backend/app/core/mutagenesis/sequence.py
# Version: v0.1.0
"""
Sequence helpers shared by the mutagenesis engine (reverse complement,
GC fraction, translation, normalization, simple composition checks).

Biopython does the strand and translation work; the rest are small string
utilities kept here so every module agrees on conventions:

- Sequences are uppercase A/C/G/T.
- GC is a *fraction* in [0, 1] inside the engine (percent only at the edges).
"""

from __future__ import annotations

import re
from typing import Optional

from Bio.Seq import Seq, reverse_complement as _bio_reverse_complement

VALID_BASES = frozenset("ACGT")
_WHITESPACE = re.compile(r"\s+")


def normalize(seq: str) -> str:
    """Uppercase and strip whitespace/newlines."""
    return _WHITESPACE.sub("", seq or "").upper()


def invalid_bases(seq: str) -> str:
    """Return the sorted set of characters outside A/C/G/T (empty when clean)."""
    return "".join(sorted(set(seq) - VALID_BASES))


def reverse_complement(seq: str) -> str:
    return _bio_reverse_complement(seq)


def complement_base(base: str) -> str:
    return {"A": "T", "T": "A", "G": "C", "C": "G"}.get(base, base)


def complement(seq: str) -> str:
    """Base-wise complement without reversal (the strand read 3'->5')."""
    return "".join(complement_base(b) for b in seq)


def is_watson_crick(a: str, b: str) -> bool:
    return complement_base(a) == b and a in VALID_BASES


def gc_fraction(seq: str) -> float:
    """GC fraction over valid bases; 0.0 for empty input."""
    s = seq.upper()
    valid = sum(1 for c in s if c in VALID_BASES)
    if not valid:
        return 0.0
    return (s.count("G") + s.count("C")) / valid


def has_gc_clamp(seq: str) -> bool:
    return bool(seq) and seq[-1] in "GC"


def longest_homopolymer(seq: str) -> int:
    if not seq:
        return 0
    best = run = 1
    for prev, cur in zip(seq, seq[1:]):
        run = run + 1 if cur == prev else 1
        best = max(best, run)
    return best


def translate_codon(codon: str) -> Optional[str]:
    """One-letter amino acid for a full codon ('*' for stop); None when not translatable."""
    if len(codon) != 3 or invalid_bases(codon):
        return None
    return str(Seq(codon).translate())


def translate(seq: str) -> str:
    """Translate the in-frame portion of `seq` (trailing partial codon ignored)."""
    usable = len(seq) - len(seq) % 3
    return str(Seq(seq[:usable]).translate())
