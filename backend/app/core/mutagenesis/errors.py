# File: backend/app/core/mutagenesis/errors.py
# Version: v0.1.0
"""
Input-validation error for mutagenesis requests.

Raised before any search starts (invalid base, position out of range, mutation
identical to the original, unknown amino acid, unparseable notation).
Search failures use `NoCandidateFoundError` from diagnostics.py.
"""

from __future__ import annotations


class MutationInputError(ValueError):
    """Raised when a template/mutation pair cannot be designed against at all."""
