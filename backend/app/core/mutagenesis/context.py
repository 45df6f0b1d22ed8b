# File: backend/app/core/mutagenesis/context.py
# Version: v0.2.0
"""
Local sequence-context screen around a split point (±6 nt).

Flags homopolymer runs (>= maxPolyN), dinucleotide repeats (>= 3 copies), local
GC above 80% and short palindromes. Any flagged issue counts as a problem and
costs the pair the context penalty.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import List, Optional

from backend.app.core.mutagenesis.sequence import gc_fraction, reverse_complement

CONTEXT_WINDOW = 6
DEFAULT_MAX_POLY_N = 4
LOCAL_GC_LIMIT = 0.8

_DINUC_REPEAT = re.compile(r"(..)\1{2,}")


@dataclass(frozen=True)
class ContextIssue:
    kind: str           # homopolymer | dinuc_repeat | high_gc | palindrome
    severity: str       # warning
    pattern: Optional[str] = None


@dataclass
class ContextCheck:
    issues: List[ContextIssue] = field(default_factory=list)

    @property
    def has_problems(self) -> bool:
        return bool(self.issues)

    def describe(self) -> str:
        return ", ".join(i.kind if not i.pattern else f"{i.kind} ({i.pattern})" for i in self.issues)


def _homopolymer_pattern(max_poly_n: int) -> "re.Pattern[str]":
    return re.compile(r"(.)\1{%d,}" % max(0, max_poly_n - 1))


def check_sequence_context(seq: str, pos: int, max_poly_n: int = DEFAULT_MAX_POLY_N) -> ContextCheck:
    start = max(0, pos - CONTEXT_WINDOW)
    end = min(len(seq), pos + CONTEXT_WINDOW)
    context = seq[start:end].upper()
    out = ContextCheck()
    if not context:
        return out

    m = _homopolymer_pattern(max_poly_n).search(context)
    if m:
        out.issues.append(ContextIssue("homopolymer", "warning", m.group(0)))

    m = _DINUC_REPEAT.search(context)
    if m:
        out.issues.append(ContextIssue("dinuc_repeat", "warning", m.group(0)))

    if gc_fraction(context) > LOCAL_GC_LIMIT:
        out.issues.append(ContextIssue("high_gc", "warning"))

    rc = reverse_complement(context)
    if len(context) >= 6 and (rc[2:6] in context or context[2:6] in rc):
        out.issues.append(ContextIssue("palindrome", "warning"))

    return out
