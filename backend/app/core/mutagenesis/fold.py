# File: backend/app/core/mutagenesis/fold.py
# Version: v0.1.0
"""
Fold oracle for primer self-structure (ViennaRNA).

The engine only consumes two operations:
  fold(seq, temp_c) -> List[FoldStructure]   (energy + base pairs)
  dg(seq, temp_c)   -> float                 (total ΔG, kcal/mol)

`ViennaFoldEngine` computes the MFE structure with ViennaRNA's DNA parameter
set and converts the dot-bracket string into (i, j) base pairs. Any other
object implementing `FoldEngine` can be passed to the designer instead.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Tuple

try:
    # ViennaRNA Python bindings
    import RNA  # type: ignore
except ImportError as exc:  # pragma: no cover - import guard
    RNA = None
    _IMPORT_ERROR = exc
else:
    _IMPORT_ERROR = None

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FoldStructure:
    energy: float
    base_pairs: Tuple[Tuple[int, int], ...]
    dot_bracket: str = ""


def pairs_from_dotbracket(db: str) -> List[Tuple[int, int]]:
    """
    Convert dot-bracket notation into 0-based (i, j) pairs with i < j.

    Raises:
        ValueError: unbalanced brackets.
    """
    stack: List[int] = []
    pairs: List[Tuple[int, int]] = []
    for idx, ch in enumerate(db):
        if ch == "(":
            stack.append(idx)
        elif ch == ")":
            if not stack:
                raise ValueError(f"Unbalanced dot-bracket at {idx}: {db}")
            pairs.append((stack.pop(), idx))
    if stack:
        raise ValueError(f"Unbalanced dot-bracket (unclosed {len(stack)}): {db}")
    pairs.sort()
    return pairs


class FoldEngine:
    """Interface for secondary-structure oracles."""

    def fold(self, seq: str, temp_c: float = 37.0) -> List[FoldStructure]:
        raise NotImplementedError

    def dg(self, seq: str, temp_c: float = 37.0) -> float:
        return round(sum(s.energy for s in self.fold(seq, temp_c)), 2)


class ViennaFoldEngine(FoldEngine):
    """MFE folding via ViennaRNA (DNA parameters, results cached per (seq, temp))."""

    def __init__(self, dna_parameters: bool = True) -> None:
        if RNA is None:
            raise RuntimeError(
                "ViennaRNA Python bindings are not available. Install 'ViennaRNA' (pip) to enable folding."
            ) from _IMPORT_ERROR
        if dna_parameters:
            RNA.params_load_DNA_Mathews2004()
        self._cache: Dict[Tuple[str, float], List[FoldStructure]] = {}

    def fold(self, seq: str, temp_c: float = 37.0) -> List[FoldStructure]:
        key = (seq.upper(), float(temp_c))
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        md = RNA.md()
        md.temperature = float(temp_c)
        fc = RNA.fold_compound(key[0], md)
        structure, mfe = fc.mfe()
        pairs = pairs_from_dotbracket(structure)
        result = [FoldStructure(energy=round(float(mfe), 2), base_pairs=tuple(pairs), dot_bracket=structure)] if pairs else []
        logger.debug("fold %s @%.1fC -> %s (%.2f)", key[0], temp_c, structure, mfe)
        self._cache[key] = result
        return result
