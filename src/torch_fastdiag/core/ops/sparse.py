"""Sparse matrix helpers on top of torch_sparse.

Kronecker products, principal sub-matrix selection and matrix-vector
products for SparseTensor. Kronecker products follow the usual convention

    (A ⊗ B)[i * m_B + k, j * n_B + l] = A[i, j] * B[k, l]

so the index of the last factor runs fastest.
"""
# pylint: disable=invalid-name

from __future__ import annotations

from typing import Sequence

import torch
from torch import Tensor
from torch_sparse import SparseTensor


def sparse_matvec(A: SparseTensor, x: Tensor) -> Tensor:
    """Multiply a sparse matrix with a vector or a block of vectors.

    Args:
        A (SparseTensor): (m, n) sparse matrix.
        x (Tensor): (n,) or (n, k) dense tensor.

    Returns:
        A @ x with shape (m,) or (m, k).
    """
    if x.ndim == 1:
        return (A @ x.unsqueeze(-1).contiguous()).squeeze(-1)
    return A @ x.contiguous()


def sparse_kron(A: SparseTensor, B: SparseTensor) -> SparseTensor:
    """Kronecker product A ⊗ B of two sparse matrices.

    Args:
        A (SparseTensor): (m_A, n_A) sparse matrix.
        B (SparseTensor): (m_B, n_B) sparse matrix.

    Returns:
        SparseTensor (m_A * m_B, n_A * n_B).
    """
    m_A, n_A = A.sparse_sizes()
    m_B, n_B = B.sparse_sizes()

    row_A, col_A, val_A = A.coo()
    row_B, col_B, val_B = B.coo()
    if val_A is None:
        val_A = torch.ones_like(row_A, dtype=torch.get_default_dtype())
    if val_B is None:
        val_B = torch.ones_like(row_B, dtype=val_A.dtype)

    # (nnz_A, 1) against (1, nnz_B) → (nnz_A, nnz_B)
    row = (row_A.unsqueeze(1) * m_B + row_B.unsqueeze(0)).reshape(-1)
    col = (col_A.unsqueeze(1) * n_B + col_B.unsqueeze(0)).reshape(-1)
    value = (val_A.unsqueeze(1) * val_B.unsqueeze(0)).reshape(-1)

    return SparseTensor(
        row=row,
        col=col,
        value=value,
        sparse_sizes=(m_A * m_B, n_A * n_B),
    ).coalesce()


def sparse_kron_all(factors: Sequence[SparseTensor]) -> SparseTensor:
    """Kronecker product factors[0] ⊗ ... ⊗ factors[-1].

    Raises:
        ValueError: if no factor is given.
    """
    if len(factors) == 0:
        raise ValueError("sparse_kron_all needs at least one factor")
    result = factors[0]
    for factor in factors[1:]:
        result = sparse_kron(result, factor)
    return result


def sparse_add(A: SparseTensor, B: SparseTensor) -> SparseTensor:
    """Sum of two sparse matrices of equal size (duplicates are summed)."""
    if A.sparse_sizes() != B.sparse_sizes():
        raise ValueError(
            f"Cannot add sparse matrices of sizes {A.sparse_sizes()} "
            f"and {B.sparse_sizes()}"
        )
    row_A, col_A, val_A = A.coo()
    row_B, col_B, val_B = B.coo()
    return SparseTensor(
        row=torch.cat([row_A, row_B]),
        col=torch.cat([col_A, col_B]),
        value=torch.cat([val_A, val_B]),
        sparse_sizes=A.sparse_sizes(),
    ).coalesce()


def sparse_scale(A: SparseTensor, alpha: float) -> SparseTensor:
    """Return alpha * A."""
    row, col, value = A.coo()
    return SparseTensor(
        row=row,
        col=col,
        value=alpha * value,
        sparse_sizes=A.sparse_sizes(),
    )


def sparse_select(A: SparseTensor, keep: Tensor) -> SparseTensor:
    """Principal sub-matrix A[keep][:, keep].

    Args:
        A (SparseTensor): (n, n) sparse matrix.
        keep (Tensor): (k,) sorted long tensor of retained indices.

    Returns:
        SparseTensor (k, k), renumbered to 0..k-1 in the order of `keep`.
    """
    n = A.sparse_sizes()[0]
    device = keep.device

    # Old index → new index, -1 for dropped
    new_index = torch.full((n,), -1, dtype=torch.long, device=device)
    new_index[keep] = torch.arange(keep.numel(), dtype=torch.long, device=device)

    row, col, value = A.coo()
    row_new = new_index[row]
    col_new = new_index[col]
    mask = (row_new >= 0) & (col_new >= 0)

    return SparseTensor(
        row=row_new[mask],
        col=col_new[mask],
        value=value[mask],
        sparse_sizes=(keep.numel(), keep.numel()),
    ).coalesce()
