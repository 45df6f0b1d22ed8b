# File: backend/app/core/mutagenesis/codons.py
# Version: v0.1.0
"""
Codon table and codon choice for amino-acid changes.

The genetic code comes from Biopython's NCBI standard table (id 1). Usage
fractions are per amino acid (Kazusa) for E. coli K-12 and H. sapiens.

Selection rule: fewest nucleotide changes first, then the most used codon for
the organism (0.5 flat when no organism is set).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from Bio.Data import CodonTable

from backend.app.core.mutagenesis.errors import MutationInputError

_STANDARD = CodonTable.unambiguous_dna_by_id[1]


def _build_codon_table() -> Dict[str, List[str]]:
    table: Dict[str, List[str]] = {}
    for codon, aa in _STANDARD.forward_table.items():
        table.setdefault(aa, []).append(codon)
    table["*"] = list(_STANDARD.stop_codons)
    return table


CODON_TABLE: Dict[str, List[str]] = _build_codon_table()
CODON_TO_AA: Dict[str, str] = {c: aa for aa, codons in CODON_TABLE.items() for c in codons}

AA_NAMES: Dict[str, str] = {
    "A": "Ala", "R": "Arg", "N": "Asn", "D": "Asp", "C": "Cys",
    "E": "Glu", "Q": "Gln", "G": "Gly", "H": "His", "I": "Ile",
    "L": "Leu", "K": "Lys", "M": "Met", "F": "Phe", "P": "Pro",
    "S": "Ser", "T": "Thr", "W": "Trp", "Y": "Tyr", "V": "Val",
    "*": "Stop",
}

CODON_USAGE_ECOLI: Dict[str, float] = {
    "TTT": 0.58, "TTC": 0.42, "TTA": 0.14, "TTG": 0.13,
    "CTT": 0.12, "CTC": 0.10, "CTA": 0.04, "CTG": 0.47,
    "ATT": 0.49, "ATC": 0.39, "ATA": 0.11, "ATG": 1.00,
    "GTT": 0.28, "GTC": 0.20, "GTA": 0.17, "GTG": 0.35,
    "TCT": 0.17, "TCC": 0.15, "TCA": 0.14, "TCG": 0.14,
    "AGT": 0.16, "AGC": 0.25, "CCT": 0.18, "CCC": 0.13,
    "CCA": 0.20, "CCG": 0.49, "ACT": 0.19, "ACC": 0.40,
    "ACA": 0.17, "ACG": 0.25, "GCT": 0.18, "GCC": 0.26,
    "GCA": 0.23, "GCG": 0.33, "TAT": 0.59, "TAC": 0.41,
    "CAT": 0.57, "CAC": 0.43, "CAA": 0.34, "CAG": 0.66,
    "AAT": 0.49, "AAC": 0.51, "AAA": 0.74, "AAG": 0.26,
    "GAT": 0.63, "GAC": 0.37, "GAA": 0.68, "GAG": 0.32,
    "TGT": 0.46, "TGC": 0.54, "TGG": 1.00, "CGT": 0.36,
    "CGC": 0.36, "CGA": 0.07, "CGG": 0.11, "AGA": 0.07,
    "AGG": 0.04, "GGT": 0.35, "GGC": 0.37, "GGA": 0.13,
    "GGG": 0.15, "TAA": 0.61, "TAG": 0.09, "TGA": 0.30,
}

CODON_USAGE_HUMAN: Dict[str, float] = {
    "TTT": 0.45, "TTC": 0.55, "TTA": 0.07, "TTG": 0.13,
    "CTT": 0.13, "CTC": 0.20, "CTA": 0.07, "CTG": 0.41,
    "ATT": 0.36, "ATC": 0.48, "ATA": 0.16, "ATG": 1.00,
    "GTT": 0.18, "GTC": 0.24, "GTA": 0.11, "GTG": 0.47,
    "TCT": 0.18, "TCC": 0.22, "TCA": 0.15, "TCG": 0.06,
    "AGT": 0.15, "AGC": 0.24, "CCT": 0.28, "CCC": 0.33,
    "CCA": 0.27, "CCG": 0.11, "ACT": 0.24, "ACC": 0.36,
    "ACA": 0.28, "ACG": 0.12, "GCT": 0.26, "GCC": 0.40,
    "GCA": 0.23, "GCG": 0.11, "TAT": 0.43, "TAC": 0.57,
    "CAT": 0.41, "CAC": 0.59, "CAA": 0.25, "CAG": 0.75,
    "AAT": 0.46, "AAC": 0.54, "AAA": 0.42, "AAG": 0.58,
    "GAT": 0.46, "GAC": 0.54, "GAA": 0.42, "GAG": 0.58,
    "TGT": 0.45, "TGC": 0.55, "TGG": 1.00, "CGT": 0.08,
    "CGC": 0.19, "CGA": 0.11, "CGG": 0.21, "AGA": 0.20,
    "AGG": 0.20, "GGT": 0.16, "GGC": 0.34, "GGA": 0.25,
    "GGG": 0.25, "TAA": 0.28, "TAG": 0.20, "TGA": 0.52,
}

USAGE_TABLES: Dict[str, Dict[str, float]] = {
    "ecoli": CODON_USAGE_ECOLI,
    "human": CODON_USAGE_HUMAN,
}


@dataclass(frozen=True)
class CodonCandidate:
    codon: str
    changes: int
    positions: Tuple[int, ...]   # 1-based positions within the codon
    usage: float
    score: float                 # changes*10 - usage*5, lower is better


@dataclass(frozen=True)
class CodonSelection:
    selected_codon: str
    nucleotide_changes: int
    codon_usage: float
    changed_positions: Tuple[int, ...]
    candidates: Tuple[CodonCandidate, ...]


def select_optimal_codon(original_codon: str, target_aa: str, organism: Optional[str] = "ecoli") -> CodonSelection:
    aa = target_aa.strip().upper()
    codons = CODON_TABLE.get(aa)
    if not codons:
        raise MutationInputError(f"Invalid amino acid: {target_aa}")
    usage_table = USAGE_TABLES.get(organism) if organism else None
    original = original_codon.upper()

    candidates: List[CodonCandidate] = []
    best: Optional[CodonCandidate] = None
    for codon in codons:
        positions = tuple(i + 1 for i in range(3) if i >= len(original) or codon[i] != original[i])
        usage = usage_table.get(codon, 0.0) if usage_table is not None else 0.5
        cand = CodonCandidate(
            codon=codon,
            changes=len(positions),
            positions=positions,
            usage=usage,
            score=len(positions) * 10 - usage * 5,
        )
        candidates.append(cand)
        if best is None or cand.changes < best.changes or (cand.changes == best.changes and usage > best.usage):
            best = cand

    assert best is not None
    candidates.sort(key=lambda c: c.score)
    return CodonSelection(
        selected_codon=best.codon,
        nucleotide_changes=best.changes,
        codon_usage=best.usage,
        changed_positions=best.positions,
        candidates=tuple(candidates),
    )
