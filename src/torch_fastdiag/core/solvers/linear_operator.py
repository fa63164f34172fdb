"""Matrix-free linear operators.

A LinearOperator represents a linear map R^cols → R^rows. It only needs to
know how to apply itself to a vector (or a block of column vectors); it
never has to exist as an explicit matrix. Concrete variants wrap explicit
matrices (MatrixOp) or combine other operators (ScaledOp, SumOp,
KroneckerOp) without materialising the result.

Shapes:
    apply(x) accepts x of shape (cols,) or (cols, k) and returns (rows,)
    or (rows, k) respectively. apply_transposed swaps rows and cols.
"""
# pylint: disable=invalid-name

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from typing import Optional, Sequence, Union

import torch
from torch import Tensor
from torch_sparse import SparseTensor

from ..ops.sparse import sparse_matvec
from ..utils import DEFAULT_DTYPE

Matrix = Union[Tensor, SparseTensor]


class LinearOperator(ABC):
    """Abstract base class for linear operators.

    Implementations must provide:
    - apply(x): y = A x
    - rows(), cols(): output and input dimension

    Optionally may provide:
    - apply_transposed(x): y = A^T x
    """

    @abstractmethod
    def apply(self, x: Tensor) -> Tensor:
        """Apply the operator.

        Args:
            x (Tensor): (cols,) or (cols, k) input.

        Returns:
            A x as (rows,) or (rows, k) tensor.
        """

    @abstractmethod
    def rows(self) -> int:
        """Output dimension."""

    @abstractmethod
    def cols(self) -> int:
        """Input dimension."""

    def apply_transposed(self, x: Tensor) -> Tensor:
        """Apply the transposed operator A^T.

        Raises:
            NotImplementedError: if the operator has no transposed action.
        """
        raise NotImplementedError(
            f"{type(self).__name__} does not provide a transposed application"
        )

    @property
    def shape(self) -> tuple[int, int]:
        return self.rows(), self.cols()

    def to_matrix(
        self,
        dtype: torch.dtype = DEFAULT_DTYPE,
        device: Optional[torch.device] = None,
    ) -> Tensor:
        """Dense (rows, cols) matrix of the operator, for small operators."""
        return self.apply(torch.eye(self.cols(), dtype=dtype, device=device))

    def __matmul__(self, x: Tensor) -> Tensor:
        return self.apply(x)


class MatrixOp(LinearOperator):
    """Operator wrapping an explicit dense or sparse matrix.

    Args:
        matrix (Tensor | SparseTensor): (rows, cols) matrix.
        symmetric (bool): if True, apply_transposed reuses apply.
    """

    def __init__(self, matrix: Matrix, symmetric: bool = False):
        if isinstance(matrix, Tensor) and matrix.ndim != 2:
            raise ValueError(f"MatrixOp needs a 2-D matrix, got ndim={matrix.ndim}")
        if not isinstance(matrix, (Tensor, SparseTensor)):
            raise TypeError(f"Expected Tensor or SparseTensor, got {type(matrix)}")
        self._matrix = matrix
        self._symmetric = symmetric
        self._transposed: Optional[Matrix] = None

    @property
    def matrix(self) -> Matrix:
        return self._matrix

    def apply(self, x: Tensor) -> Tensor:
        if isinstance(self._matrix, SparseTensor):
            return sparse_matvec(self._matrix, x)
        return self._matrix @ x

    def apply_transposed(self, x: Tensor) -> Tensor:
        if self._symmetric:
            return self.apply(x)
        if isinstance(self._matrix, SparseTensor):
            if self._transposed is None:
                self._transposed = self._matrix.t()
            return sparse_matvec(self._transposed, x)
        return self._matrix.mT @ x

    def rows(self) -> int:
        return int(self._matrix.size(0))

    def cols(self) -> int:
        return int(self._matrix.size(1))


class IdentityOp(LinearOperator):
    """Identity on R^n."""

    def __init__(self, n: int):
        self._n = int(n)

    def apply(self, x: Tensor) -> Tensor:
        return x.clone()

    def apply_transposed(self, x: Tensor) -> Tensor:
        return x.clone()

    def rows(self) -> int:
        return self._n

    def cols(self) -> int:
        return self._n


class ScaledOp(LinearOperator):
    """Scalar multiple alpha * A of an operator."""

    def __init__(self, op: LinearOperator, alpha: float):
        self._op = op
        self._alpha = float(alpha)

    def apply(self, x: Tensor) -> Tensor:
        return self._alpha * self._op.apply(x)

    def apply_transposed(self, x: Tensor) -> Tensor:
        return self._alpha * self._op.apply_transposed(x)

    def rows(self) -> int:
        return self._op.rows()

    def cols(self) -> int:
        return self._op.cols()


class SumOp(LinearOperator):
    """Sum A_0 + ... + A_{m-1} of operators of equal shape.

    Args:
        ops (Sequence[LinearOperator]): summands, at least one.

    Raises:
        ValueError: if ops is empty or the shapes differ.
    """

    def __init__(self, ops: Sequence[LinearOperator]):
        ops = list(ops)
        if len(ops) == 0:
            raise ValueError("SumOp needs at least one operator")
        shape = ops[0].shape
        for op in ops[1:]:
            if op.shape != shape:
                raise ValueError(
                    f"SumOp operands must share a shape, got {shape} and {op.shape}"
                )
        self._ops = ops

    @property
    def operators(self) -> tuple[LinearOperator, ...]:
        return tuple(self._ops)

    def add_operator(self, op: LinearOperator) -> None:
        if op.shape != self.shape:
            raise ValueError(
                f"SumOp operands must share a shape, got {self.shape} and {op.shape}"
            )
        self._ops.append(op)

    def apply(self, x: Tensor) -> Tensor:
        y = self._ops[0].apply(x)
        for op in self._ops[1:]:
            y = y + op.apply(x)
        return y

    def apply_transposed(self, x: Tensor) -> Tensor:
        y = self._ops[0].apply_transposed(x)
        for op in self._ops[1:]:
            y = y + op.apply_transposed(x)
        return y

    def rows(self) -> int:
        return self._ops[0].rows()

    def cols(self) -> int:
        return self._ops[0].cols()


class KroneckerOp(LinearOperator):
    """Kronecker product A_0 ⊗ A_1 ⊗ ... ⊗ A_{d-1} applied matrix-free.

    The input vector is viewed as a tensor of shape (c_0, ..., c_{d-1})
    with c_i = A_i.cols() (last axis fastest), and every factor is applied
    along its own axis. Cost is Σ_i (cost of A_i) * N / c_i instead of
    forming the full product.

    Args:
        ops (Sequence[LinearOperator]): factors, at least one.
    """

    def __init__(self, ops: Sequence[LinearOperator]):
        ops = list(ops)
        if len(ops) == 0:
            raise ValueError("KroneckerOp needs at least one factor")
        self._ops = ops

    @property
    def factors(self) -> tuple[LinearOperator, ...]:
        return tuple(self._ops)

    def _apply_factors(self, x: Tensor, transposed: bool) -> Tensor:
        vector = x.ndim == 1
        in_sizes = [op.rows() if transposed else op.cols() for op in self._ops]

        # (c_0, ..., c_{d-1}, k)
        X = x.reshape(*in_sizes, -1)
        for axis, op in enumerate(self._ops):
            X = X.movedim(axis, 0)
            rest = X.shape[1:]
            flat = X.reshape(X.shape[0], -1)
            Y = op.apply_transposed(flat) if transposed else op.apply(flat)
            X = Y.reshape(Y.shape[0], *rest).movedim(0, axis)

        out = X.reshape(-1, X.shape[-1])
        return out.squeeze(-1) if vector else out

    def apply(self, x: Tensor) -> Tensor:
        return self._apply_factors(x, transposed=False)

    def apply_transposed(self, x: Tensor) -> Tensor:
        return self._apply_factors(x, transposed=True)

    def rows(self) -> int:
        return math.prod(op.rows() for op in self._ops)

    def cols(self) -> int:
        return math.prod(op.cols() for op in self._ops)


class CholeskySolveOp(LinearOperator):
    """Inverse of a small SPD matrix via a dense Cholesky factor.

    Args:
        matrix (Tensor | SparseTensor): (n, n) symmetric positive definite.

    Raises:
        ValueError: if the matrix is not square or the factorization fails.
    """

    def __init__(self, matrix: Matrix):
        dense = matrix.to_dense() if isinstance(matrix, SparseTensor) else matrix
        if dense.ndim != 2 or dense.shape[0] != dense.shape[1]:
            raise ValueError(f"Expected a square matrix, got shape {tuple(dense.shape)}")

        L, info = torch.linalg.cholesky_ex(dense)
        if int(info) != 0:
            raise ValueError(
                f"Cholesky factorization failed: leading minor {int(info)} "
                "is not positive definite"
            )
        self._factor = L

    def apply(self, x: Tensor) -> Tensor:
        if x.ndim == 1:
            return torch.cholesky_solve(x.unsqueeze(-1), self._factor).squeeze(-1)
        return torch.cholesky_solve(x, self._factor)

    def apply_transposed(self, x: Tensor) -> Tensor:
        return self.apply(x)

    def rows(self) -> int:
        return int(self._factor.shape[0])

    def cols(self) -> int:
        return int(self._factor.shape[0])


def as_linear_operator(A: Union[LinearOperator, Matrix], symmetric: bool = False) -> LinearOperator:
    """Wrap explicit matrices into MatrixOp; pass operators through."""
    if isinstance(A, LinearOperator):
        return A
    return MatrixOp(A, symmetric=symmetric)
