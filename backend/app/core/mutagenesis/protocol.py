# File: backend/app/core/mutagenesis/protocol.py
# Version: v0.1.0
"""
Bench protocol for a chosen primer pair.

Back-to-back designs follow the exponential KLD-style workflow (linear product,
phosphorylated and ligated before the DpnI digest); overlapping designs use the
QuikChange linear-amplification cycling (fewer cycles, long extension).
"""

from __future__ import annotations

from typing import List

from backend.app.core.mutagenesis.models import (
    OVERLAPPING,
    AnnealingResult,
    CandidatePair,
    MutationPlan,
    Protocol,
    ProtocolStep,
)

_TITLES = {
    "substitution": "Substitution",
    "insertion": "Insertion",
    "deletion": "Deletion",
    "codon_change": "Codon Change",
    "region_substitution": "Region Substitution",
}


def generate_protocol(
    plan: MutationPlan,
    pair: CandidatePair,
    annealing: AnnealingResult,
    strategy: str,
) -> Protocol:
    kind = plan.mutation.kind
    ta = annealing.annealing_temp
    overlapping = strategy == OVERLAPPING

    steps: List[ProtocolStep] = [
        ProtocolStep("Prepare PCR master mix", "RT", "10 min"),
        ProtocolStep("Set up PCR reaction", "RT", "5 min"),
    ]
    if overlapping:
        steps.append(ProtocolStep(
            "Run PCR cycling (18 cycles, 1 min/kb extension at 68°C)", f"{ta:.1f}°C annealing", "2-3 hours"
        ))
    else:
        steps.append(ProtocolStep(
            "Run PCR cycling (25 cycles, 30 s/kb extension at 72°C)", f"{ta:.1f}°C annealing", "2-3 hours"
        ))
        steps.append(ProtocolStep("Kinase and ligase treatment (circularize product)", "RT", "5 min"))
    steps.append(ProtocolStep("DpnI digest template", "37°C", "1 hour"))
    steps.append(ProtocolStep("Transform competent cells", "37°C", "overnight"))

    notes: List[str] = [
        f"Mutation type: {kind}",
        f"Strategy: {strategy}",
        f"Tm difference: {abs(pair.forward.tm - pair.reverse.tm):.1f}°C",
        f"Forward primer: {pair.forward.sequence}",
        f"Reverse primer: {pair.reverse.sequence}",
    ]
    if annealing.is_capped:
        notes.append(f"Annealing temperature capped at {ta:.0f}°C; consider a two-step protocol")
    if plan.original_codon and plan.new_codon:
        notes.append(f"Codon: {plan.original_codon} -> {plan.new_codon}")
    if pair.is_rescue:
        notes.append("Rescue-mode primer (Tm above the normal ceiling); verify by sequencing")

    title = _TITLES.get(kind, kind)
    name = f"{title} Mutagenesis Protocol" + (" (QuikChange)" if overlapping else "")
    return Protocol(name=name, annealing_temp=ta, steps=tuple(steps), notes=tuple(notes))
