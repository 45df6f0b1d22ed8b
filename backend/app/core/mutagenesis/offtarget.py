# File: backend/app/core/mutagenesis/offtarget.py
# Version: v0.3.0
"""
Off-target binding counters for mutagenic primers.

Approaches:
- `off_targets`: 10-mer index of the template (plus every single-mismatch
  variant); for each primer 3' end position, count hits on both strands minus
  the intended site. Cheap, used for per-position profiles.
- `count_off_target_sites`: ungapped sliding comparison of the whole primer
  against the template and its RC, counting windows with at most N mismatches,
  minus the intended site. Used by Stage 2 enrichment.
- `check_primer_specificity`: per-site report (strand, mismatches, window).

Circular templates are scanned with the first (len(primer) - 1) bases appended so
primers spanning the origin are seen once.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from backend.app.core.mutagenesis.sequence import reverse_complement

KMER = 10
_SUBSTITUTIONS = {"A": "TGC", "T": "AGC", "G": "ATC", "C": "ATG"}


def _scan_subject(template: str, primer_len: int, circular: bool) -> str:
    t = template.upper()
    if circular and primer_len > 1 and len(t) >= primer_len:
        return t + t[: primer_len - 1]
    return t


def _ungapped_hits(primer: str, subject: str, max_mismatches: int) -> List[Tuple[int, int]]:
    """(start, mismatches) for every window of `subject` within the mismatch budget."""
    p = primer.upper()
    n = len(p)
    hits: List[Tuple[int, int]] = []
    if n == 0 or len(subject) < n:
        return hits
    for start in range(0, len(subject) - n + 1):
        window = subject[start : start + n]
        mism = 0
        for i in range(n):
            if p[i] != window[i]:
                mism += 1
                if mism > max_mismatches:
                    break
        if mism <= max_mismatches:
            hits.append((start, mism))
    return hits


def _binding_spans(primer: str, subject: str, max_mismatches: int) -> Dict[int, int]:
    """
    Physical binding sites on either strand as {start on subject: fewest mismatches}.

    A hit on the reverse strand is mapped back to plus-strand coordinates, so a
    palindromic primer landing on one site from both strands counts once.
    """
    n = len(primer)
    spans: Dict[int, int] = {}
    for start, mism in _ungapped_hits(primer, subject, max_mismatches):
        spans[start] = min(mism, spans.get(start, mism))
    rc_subject = reverse_complement(subject)
    for rc_start, mism in _ungapped_hits(primer, rc_subject, max_mismatches):
        start = len(subject) - rc_start - n
        spans[start] = min(mism, spans.get(start, mism))
    return spans


def count_off_target_sites(
    primer: str,
    template: str,
    max_mismatches: int = 2,
    circular: bool = False,
    intended_start: Optional[int] = None,
) -> int:
    """
    Binding sites on either strand with <= `max_mismatches`, excluding the intended one.

    The intended site is the span starting at `intended_start` when given, otherwise the
    first perfect match. It is discounted only when the primer actually binds there, so a
    primer that carries an insertion absent from `template` keeps every hit as off-target.

    Returns:
        Non-negative off-target count.
    """
    subject = _scan_subject(template, len(primer), circular)
    spans = _binding_spans(primer.upper(), subject, max_mismatches)
    if intended_start is not None:
        length = len(template)
        key = intended_start % length if circular and length else intended_start
        spans.pop(key, None)
    else:
        exact = sorted(s for s, mism in spans.items() if mism == 0)
        if exact:
            spans.pop(exact[0])
    return len(spans)


def _variants(kmer: str) -> List[str]:
    out = [kmer]
    for i, c in enumerate(kmer):
        for alt in _SUBSTITUTIONS.get(c, ""):
            out.append(kmer[:i] + alt + kmer[i + 1 :])
    return out


def off_targets(primer: str, template: str) -> List[int]:
    """
    Per-position off-target hit counts.

    Entry i (for i >= 9) counts template sites matching the primer 10-mer that
    ends at i with <= 1 mismatch, on either strand, minus the intended site.
    Positions before the first full 10-mer are 0.
    """
    p = primer.upper()
    t = template.upper()
    index: Dict[str, int] = {}
    for s in range(0, len(t) - KMER + 1):
        for v in _variants(t[s : s + KMER]):
            index[v] = index.get(v, 0) + 1

    counts = [0] * len(p)
    for end in range(KMER, len(p) + 1):
        kmer = p[end - KMER : end]
        hits = index.get(kmer, 0) + index.get(reverse_complement(kmer), 0) - 1
        counts[end - 1] = max(0, hits)
    return counts


@dataclass(frozen=True)
class BindingSite:
    position: int
    strand: str        # 'forward' | 'reverse'
    mismatches: int
    sequence: str


@dataclass(frozen=True)
class SpecificityResult:
    off_target_count: int
    forward_sites: int
    reverse_sites: int
    binding_sites: Tuple[BindingSite, ...]
    is_specific: bool


def check_primer_specificity(primer: str, template: str, max_mismatches: int = 3) -> SpecificityResult:
    """Report near-matching sites (1..max_mismatches) for the primer and its RC; report capped at 10."""
    p = primer.upper()
    t = template.upper()
    rc = reverse_complement(p)

    profile_fwd = off_targets(p, t)
    profile_rev = off_targets(rc, t)

    sites: List[BindingSite] = []
    fwd_hits = dict(_ungapped_hits(p, t, max_mismatches))
    rev_hits = dict(_ungapped_hits(rc, t, max_mismatches))
    for start in range(0, max(0, len(t) - len(p) + 1)):
        region = t[start : start + len(p)]
        mm = fwd_hits.get(start)
        if mm:
            sites.append(BindingSite(start, "forward", mm, region))
        mm = rev_hits.get(start)
        if mm:
            sites.append(BindingSite(start, "reverse", mm, region))

    return SpecificityResult(
        off_target_count=len(sites),
        forward_sites=sum(1 for c in profile_fwd if c > 0),
        reverse_sites=sum(1 for c in profile_rev if c > 0),
        binding_sites=tuple(sites[:10]),
        is_specific=len(sites) <= 2,
    )
