# File: backend/app/core/mutagenesis/diagnostics.py
# Version: v0.1.0
"""
Search failure accounting and the error raised when no pair survives.

`SearchDiagnostics` is filled by the generators across every split offset and
strategy attempt. It is only read once the search has concluded, to build the
structured message carried by `NoCandidateFoundError`.

Message layout (sections present only when relevant):
    Length issue / Tm window issue / Search summary / Suggested adjustments
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class TmExtreme:
    count: int = 0
    tm: Optional[float] = None
    sequence: Optional[str] = None
    gc: Optional[float] = None

    def record(self, tm: float, seq: str, gc: float, lowest: bool) -> None:
        self.count += 1
        if self.tm is None or (tm < self.tm if lowest else tm > self.tm):
            self.tm, self.sequence, self.gc = tm, seq, gc

    def merge(self, other: "TmExtreme", lowest: bool) -> None:
        if not other.count or other.tm is None:
            return
        self.count += other.count
        if self.tm is None or (other.tm < self.tm if lowest else other.tm > self.tm):
            self.tm, self.sequence, self.gc = other.tm, other.sequence, other.gc


@dataclass
class SearchDiagnostics:
    fwd_region_too_short: int = 0
    rev_region_too_short: int = 0
    no_fwd_candidates_in_tm_window: int = 0
    no_rev_candidates_in_tm_window: int = 0
    fwd_tm_too_low: TmExtreme = field(default_factory=TmExtreme)
    fwd_tm_too_high: TmExtreme = field(default_factory=TmExtreme)
    rev_tm_too_low: TmExtreme = field(default_factory=TmExtreme)
    rev_tm_too_high: TmExtreme = field(default_factory=TmExtreme)
    fwd_gc_extreme: int = 0
    rev_gc_extreme: int = 0
    overlapping_length_rejected: int = 0
    positions_explored: int = 0
    pairs_evaluated: int = 0
    used_rescue_mode: bool = False
    strategies_tried: List[str] = field(default_factory=list)
    shortest_downstream: Optional[int] = None
    shortest_upstream: Optional[int] = None

    @property
    def length_failures(self) -> int:
        return self.fwd_region_too_short + self.rev_region_too_short

    @property
    def tm_failures(self) -> int:
        return self.no_fwd_candidates_in_tm_window + self.no_rev_candidates_in_tm_window

    def note_downstream(self, available: int) -> None:
        if self.shortest_downstream is None or available < self.shortest_downstream:
            self.shortest_downstream = available

    def note_upstream(self, available: int) -> None:
        if self.shortest_upstream is None or available < self.shortest_upstream:
            self.shortest_upstream = available


def _fmt_extreme(label: str, ext: TmExtreme) -> str:
    gc = f", GC {ext.gc * 100:.0f}%" if ext.gc is not None else ""
    return f"  - {label}: {ext.count} lengths (extreme Tm {ext.tm:.0f} °C{gc}, {ext.sequence})"


def build_failure_message(
    diag: SearchDiagnostics,
    min_tm: float,
    max_tm: float,
    min_annealing_length: int,
    min_primer_length: int,
    circular: bool,
) -> str:
    """Compose the multi-section failure text from whichever modes actually fired."""
    lines: List[str] = ["No suitable mutagenesis primers found."]
    hints: List[str] = []

    if diag.length_failures:
        lines.append("")
        lines.append("Length issue:")
        if diag.fwd_region_too_short:
            avail = f" (only {diag.shortest_downstream} nt available)" if diag.shortest_downstream is not None else ""
            lines.append(
                f"  - Region downstream of the mutation is shorter than minAnnealingLength "
                f"({min_annealing_length} nt){avail} at {diag.fwd_region_too_short} positions"
            )
        if diag.rev_region_too_short:
            avail = f" (only {diag.shortest_upstream} nt available)" if diag.shortest_upstream is not None else ""
            lines.append(f"  - Region upstream of the mutation is too short for a reverse primer{avail} "
                         f"at {diag.rev_region_too_short} positions")
        hints.append(
            f"Reduce the minimum primer length (minPrimerLength={min_primer_length}, "
            f"minAnnealingLength={min_annealing_length}) to fit the available sequence"
        )
        if not circular:
            hints.append("If the template is a plasmid, set circular=true so primers can wrap the origin")
        else:
            hints.append("Extend the template sequence around the mutation site")

    if diag.tm_failures or diag.overlapping_length_rejected:
        lines.append("")
        lines.append("Tm window issue:")
        if diag.no_fwd_candidates_in_tm_window:
            lines.append(f"  - No forward primer within {min_tm:.0f}-{max_tm:.0f} °C at "
                         f"{diag.no_fwd_candidates_in_tm_window} positions")
        if diag.no_rev_candidates_in_tm_window:
            lines.append(f"  - No reverse primer within {min_tm:.0f}-{max_tm:.0f} °C at "
                         f"{diag.no_rev_candidates_in_tm_window} positions")
        for label, ext in (
            ("forward too cold", diag.fwd_tm_too_low),
            ("reverse too cold", diag.rev_tm_too_low),
            ("forward too hot", diag.fwd_tm_too_high),
            ("reverse too hot", diag.rev_tm_too_high),
        ):
            if ext.count and ext.tm is not None:
                lines.append(_fmt_extreme(label, ext))
        if diag.overlapping_length_rejected:
            lines.append(f"  - {diag.overlapping_length_rejected} overlapping designs fell outside the primer length bounds")

        coldest = [e.tm for e in (diag.fwd_tm_too_low, diag.rev_tm_too_low) if e.tm is not None]
        hottest = [e.tm for e in (diag.fwd_tm_too_high, diag.rev_tm_too_high) if e.tm is not None]
        if coldest:
            hints.append(f"Lower minTm toward {max(0.0, max(coldest) - 1):.0f} °C or increase maxAnnealingLength (AT-rich region)")
        if hottest:
            hints.append(f"Raise maxTm toward {min(hottest):.0f} °C or shorten primers (GC-rich region)")
        if diag.fwd_gc_extreme or diag.rev_gc_extreme:
            hints.append("Local GC content is extreme; consider moving the mutation or using a GC enhancer")

    lines.append("")
    lines.append("Search summary:")
    lines.append(f"  - Strategies tried: {', '.join(diag.strategies_tried) or 'none'}")
    lines.append(f"  - Positions explored: {diag.positions_explored}")
    lines.append(f"  - Pairs evaluated: {diag.pairs_evaluated}")
    if diag.used_rescue_mode:
        lines.append("  - Rescue mode (relaxed Tm ceiling) was used")

    if not hints:
        hints.append("Widen the Tm window or the primer length range")
    lines.append("")
    lines.append("Suggested adjustments:")
    lines.extend(f"  - {h}" for h in hints)
    return "\n".join(lines)


class NoCandidateFoundError(ValueError):
    """Raised when every candidate violated a hard constraint; carries the diagnostics."""

    def __init__(self, message: str, diagnostics: SearchDiagnostics):
        super().__init__(message)
        self.diagnostics = diagnostics
