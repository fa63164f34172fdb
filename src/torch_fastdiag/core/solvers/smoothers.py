"""Basic smoothers for explicit matrices.

- RichardsonOp: x ← x + tau (f - A x)
- JacobiOp: x ← x + tau D^{-1} (f - A x)
- GaussSeidelOp: forward sweep x ← x + (D + L)^{-1} (f - A x) in step,
  transposed sweep x ← x + (D + L)^{-T} (f - A x) in step_t, which is the
  backward sweep when A is symmetric.
"""
# pylint: disable=invalid-name

from __future__ import annotations

from typing import Union

import torch
from torch import Tensor
from torch_sparse import SparseTensor

from .linear_operator import LinearOperator, Matrix, MatrixOp, as_linear_operator
from .preconditioner import PreconditionerOp


def _as_columns(r: Tensor) -> Tensor:
    return r.unsqueeze(-1) if r.ndim == 1 else r


class RichardsonOp(PreconditionerOp):
    """Damped Richardson iteration.

    Args:
        A (LinearOperator | Tensor | SparseTensor): operator.
        tau (float): damping parameter.
    """

    def __init__(self, A: Union[LinearOperator, Matrix], tau: float = 1.0):
        self._A = as_linear_operator(A)
        self.tau = float(tau)

    def step(self, f: Tensor, x: Tensor) -> None:
        x.add_(f - self._A.apply(x), alpha=self.tau)

    def underlying_op(self) -> LinearOperator:
        return self._A


class JacobiOp(PreconditionerOp):
    """Damped Jacobi iteration.

    Args:
        A (Tensor | SparseTensor): square matrix with nonzero diagonal.
        tau (float): damping parameter.

    Raises:
        ValueError: if the diagonal has a zero entry.
    """

    def __init__(self, A: Matrix, tau: float = 1.0):
        self._A = MatrixOp(A)
        if isinstance(A, SparseTensor):
            diag = A.get_diag()
        else:
            diag = torch.diagonal(A)
        if bool((diag == 0).any()):
            raise ValueError("Jacobi smoother needs a nonzero diagonal")
        self._diag = diag
        self.tau = float(tau)

    def step(self, f: Tensor, x: Tensor) -> None:
        r = f - self._A.apply(x)
        if r.ndim == 1:
            x.add_(r / self._diag, alpha=self.tau)
        else:
            x.add_(r / self._diag.unsqueeze(-1), alpha=self.tau)

    def underlying_op(self) -> LinearOperator:
        return self._A


class GaussSeidelOp(PreconditionerOp):
    """Gauss-Seidel iteration with a lower triangular (D + L) sweep.

    The triangular part is kept as a dense matrix, so this is meant for
    moderate sizes.

    Args:
        A (Tensor | SparseTensor): square matrix with nonzero diagonal.

    Raises:
        ValueError: if the diagonal has a zero entry.
    """

    def __init__(self, A: Matrix):
        self._A = MatrixOp(A)
        dense = A.to_dense() if isinstance(A, SparseTensor) else A
        if bool((torch.diagonal(dense) == 0).any()):
            raise ValueError("Gauss-Seidel smoother needs a nonzero diagonal")
        self._lower = torch.tril(dense)

    def step(self, f: Tensor, x: Tensor) -> None:
        r = _as_columns(f - self._A.apply(x))
        dx = torch.linalg.solve_triangular(self._lower, r, upper=False)
        x.add_(dx.reshape(x.shape))

    def step_t(self, f: Tensor, x: Tensor) -> None:
        r = _as_columns(f - self._A.apply(x))
        dx = torch.linalg.solve_triangular(self._lower.mT, r, upper=True)
        x.add_(dx.reshape(x.shape))

    def underlying_op(self) -> LinearOperator:
        return self._A
