"""Sparse matrix helpers."""

from .sparse import (
    sparse_add,
    sparse_kron,
    sparse_kron_all,
    sparse_matvec,
    sparse_scale,
    sparse_select,
)

__all__ = [
    "sparse_add",
    "sparse_kron",
    "sparse_kron_all",
    "sparse_matvec",
    "sparse_scale",
    "sparse_select",
]
