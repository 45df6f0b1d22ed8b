# File: backend/app/core/mutagenesis/nn_tables.py
# Version: v0.1.0
"""
Nearest-neighbor thermodynamic tables used by the mutagenesis Tm model.

Units: ΔH in kcal/mol, ΔS in cal/(mol·K).

- NN_MATCHED: Watson-Crick stacks (SantaLucia 1998 unified set), keyed by the
  primer dinucleotide 5'->3'.
- NN_MISMATCH: single-mismatch stacks (Allawi & SantaLucia 1997/1998, Peyret 1999),
  keyed 'primer/template' where the template dinucleotide is the complement strand
  read 3'->5' under the primer.
- INTERNAL_MISMATCH / TERMINAL_MISMATCH: the broader Biopython tables (same key
  convention) consulted when NN_MISMATCH has no entry.
- TERMINAL_MISMATCH_CORRECTION, DANGLING_END: Bommarito 2000 end effects.
- CONSECUTIVE_MISMATCH_STEP / _CAP: tandem mismatch penalty (Peyret 1999).
- OWCZARZY: Mg2+ salt correction coefficients (Owczarzy 2008).
"""

from __future__ import annotations

from typing import Dict, Tuple

from Bio.SeqUtils import MeltingTemp as mt

Pair = Tuple[float, float]

R_GAS = 1.987  # cal/(mol·K)
T_37C = 310.15

INIT: Pair = (0.2, -5.7)
TERMINAL_AT: Pair = (2.2, 6.9)

NN_MATCHED: Dict[str, Pair] = {
    "AA": (-7.6, -21.3), "TT": (-7.6, -21.3),
    "AT": (-7.2, -20.4),
    "TA": (-7.2, -21.3),
    "CA": (-8.5, -22.7), "TG": (-8.5, -22.7),
    "GT": (-8.4, -22.4), "AC": (-8.4, -22.4),
    "CT": (-7.8, -21.0), "AG": (-7.8, -21.0),
    "GA": (-8.2, -22.2), "TC": (-8.2, -22.2),
    "CG": (-10.6, -27.2),
    "GC": (-9.8, -24.4),
    "GG": (-8.0, -19.9), "CC": (-8.0, -19.9),
}

NN_MISMATCH: Dict[str, Pair] = {
    # G·T
    "GT/CA": (-0.8, -1.4), "TG/AC": (-1.0, -2.3),
    "GT/TA": (-1.6, -4.0), "TG/AT": (-1.6, -4.0),
    "GT/GA": (-2.8, -7.0), "TG/AG": (-2.8, -7.0),
    "GT/GG": (-3.2, -8.4), "GG/TG": (-3.2, -8.4),
    "GT/CG": (-4.0, -10.4), "CG/GT": (-4.0, -10.4),
    # G·A
    "GA/CA": (-0.7, -0.8), "AG/AC": (-0.7, -0.8),
    "GA/TA": (-0.5, 0.0), "AG/AT": (-0.5, 0.0),
    "GA/GA": (0.5, 3.0),
    "AA/GA": (0.7, 3.0), "GA/AA": (0.7, 3.0),
    # C·T
    "CT/GA": (0.2, 0.7), "TC/AG": (0.2, 0.7),
    "CT/CA": (0.7, 1.0), "TC/AC": (0.7, 1.0),
    "CT/TA": (1.2, 2.0), "TC/AT": (1.2, 2.0),
    # A·C
    "AC/CA": (2.3, 4.6), "CA/AC": (2.3, 4.6),
    "AC/TA": (5.3, 14.6), "CA/AT": (5.3, 14.6),
    # A·A
    "AA/TA": (1.2, 1.7), "AA/AA": (4.7, 12.9),
    "AA/CA": (0.6, -0.6), "AA/GA": (-0.9, -4.2),
    # T·T
    "TT/AT": (-0.2, -1.5), "TT/TT": (-1.0, -4.4),
    # C·C
    "CC/GC": (0.6, -0.6), "CC/CC": (3.6, 8.9),
    # G·G
    "GG/CG": (-3.1, -9.5), "GG/GG": (-1.4, -6.2),
}

# Biopython ships the complete Allawi/Peyret internal set and the Bommarito
# terminal set with the same 'top/bottom' key convention.
INTERNAL_MISMATCH: Dict[str, Pair] = dict(mt.DNA_IMM1)
TERMINAL_MISMATCH: Dict[str, Pair] = dict(mt.DNA_TMM1)

# Applied on top of the stack terms when the first/last base is mismatched.
TERMINAL_MISMATCH_CORRECTION: Dict[str, Pair] = {
    "5prime": (0.4, 0.5),
    "3prime": (-0.6, -1.0),
}

DANGLING_END: Dict[str, Pair] = {
    "5_A": (0.2, 2.3),
    "5_T": (-6.9, -20.0),
    "5_G": (-3.9, -10.9),
    "5_C": (-4.4, -12.6),
    "3_A": (-0.7, -0.8),
    "3_T": (-0.5, -1.1),
    "3_G": (-5.9, -16.5),
    "3_C": (-2.1, -3.9),
}

# Used when a dinucleotide with a mismatch has no entry in any table.
MISMATCH_FALLBACK: Pair = (1.0, 2.5)

CONSECUTIVE_MISMATCH_STEP: Pair = (0.5, 1.5)
CONSECUTIVE_MISMATCH_CAP: Pair = (5.0, 15.0)

OWCZARZY: Dict[str, float] = {
    "a": 3.92e-5,
    "b": -9.11e-6,
    "c": 6.26e-5,
    "d": 1.42e-5,
    "e": -4.82e-4,
    "f": 5.25e-4,
    "g": 8.31e-5,
}


def stack_dg(dinuc: str, temperature_k: float = T_37C) -> float:
    """ΔG (kcal/mol) of a matched stack at the given temperature; 0.0 for unknown keys."""
    params = NN_MATCHED.get(dinuc)
    if params is None:
        return 0.0
    dh, ds = params
    return dh - temperature_k * (ds / 1000.0)
