# File: backend/tests/conftest.py
# Version: v0.2.0
"""
Test bootstrap: ensure project root is on sys.path so 'backend.*' imports work.

Also provides deterministic fold engines so engine tests do not depend on
ViennaRNA being installed, and a GFP coding sequence used as a realistic template.
"""
import sys
from pathlib import Path
from typing import List, Tuple

import pytest

ROOT = Path(__file__).resolve().parents[2]  # repo root (../.. from this file)
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from backend.app.core.mutagenesis.fold import FoldEngine, FoldStructure  # noqa: E402

GFP = (
    "ATGGCTAGCAAAGGAGAAGAACTTTTCACTGGAGTTGTCCCAATTCTTGTTGAATTAGATGGTGATGTTAATGGGCACAAATTTTCTG"
    "TCAGTGGAGAGGGTGAAGGTGATGCAACATACGGAAAACTTACCCTTAAATTTATTTGCACTACTGGAAAACTACCTGTTCCATGGCC"
    "AACACTTGTCACTACTTTCGGTTATGGTGTTCAATGCTTTGCGAGATACCCAGATCATATGAAACAGCATGACTTTTTCAAGAGTGCC"
    "ATGCCCGAAGGTTATGTACAGGAAAGAACTATATTTTTCAAAGATGACGGGAACTACAAGACACGTGCTGAAGTCAAGTTTGAAGGTG"
)

# pUC19 MCS-like 50-mer, balanced GC
SHORT_CIRCULAR = "GACTGCATCGATCGGCTAAGCTTGCATGCCTGCAGGTCGACTCTAGAGGA"


class FlatFoldEngine(FoldEngine):
    """No structure for any sequence (ΔG = 0)."""

    def fold(self, seq: str, temp_c: float = 37.0) -> List[FoldStructure]:
        return []


class FixedFoldEngine(FoldEngine):
    """One structure with a fixed energy; pairs given relative to the 3' end."""

    def __init__(self, energy: float, tail_pairs: List[Tuple[int, int]]):
        self.energy = energy
        self.tail_pairs = tail_pairs
        self.calls = 0

    def fold(self, seq: str, temp_c: float = 37.0) -> List[FoldStructure]:
        self.calls += 1
        n = len(seq)
        pairs = tuple((n - 1 - a, n - 1 - b) for a, b in self.tail_pairs)
        return [FoldStructure(energy=self.energy, base_pairs=pairs)]


class BrokenFoldEngine(FoldEngine):
    def fold(self, seq: str, temp_c: float = 37.0) -> List[FoldStructure]:
        raise RuntimeError("fold backend unavailable")


@pytest.fixture
def flat_engine() -> FoldEngine:
    return FlatFoldEngine()


@pytest.fixture
def gfp() -> str:
    return GFP


@pytest.fixture
def short_circular() -> str:
    return SHORT_CIRCULAR


@pytest.fixture
def fixed_engine():
    """Factory: fixed_engine(energy, tail_pairs) -> FixedFoldEngine."""
    return FixedFoldEngine


@pytest.fixture
def broken_engine() -> FoldEngine:
    return BrokenFoldEngine()
