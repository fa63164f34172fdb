"""Preconditioners for single-patch tensor-product discretizations.

Provides:
- SinglePatchPreconditioners: factory for mass/stiffness matrices and
  operators and the fast diagonalization inverse.
- FastDiagonalizationOp: separable inverse from generalized eigenproblems.
"""

from .fast_diagonalization import FastDiagonalizationOp, generalized_eigh
from .single_patch import SinglePatchPreconditioners

__all__ = [
    "FastDiagonalizationOp",
    "SinglePatchPreconditioners",
    "generalized_eigh",
]
