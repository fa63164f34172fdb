"""Fast diagonalization inverse for tensor-product discretizations.

For a separable operator

    A = Σ_k M_{d-1} ⊗ ⋯ ⊗ K_k ⊗ ⋯ ⊗ M_0  +  a M_{d-1} ⊗ ⋯ ⊗ M_0

the generalized eigenproblems K_k u = λ M_k u give U_k with

    U_k^T M_k U_k = I,    U_k^T K_k U_k = Λ_k,

so that A^{-1} = (U_{d-1} ⊗ ⋯ ⊗ U_0) (Σ_k Λ_k + a)^{-1} (U_{d-1} ⊗ ⋯ ⊗ U_0)^T.
Applying it costs d forward and d backward per-axis transforms of size
n_k each, far cheaper than a sparse direct solve.

Reference: Sangalli, Tani, "Isogeometric preconditioners based on fast
solvers for the Sylvester equation", SIAM J. Sci. Comput. 38 (6), 2016.
"""
# pylint: disable=invalid-name

from __future__ import annotations

import math
from typing import Sequence

import torch
from torch import Tensor
from torch_sparse import SparseTensor

from ..solvers.linear_operator import KroneckerOp, LinearOperator, Matrix, MatrixOp
from ..utils import logger

# Combined eigenvalues below this multiple of eps * max|λ| count as zero
_SINGULAR_FACTOR = 1e3


def _dense(A: Matrix) -> Tensor:
    return A.to_dense() if isinstance(A, SparseTensor) else A


def generalized_eigh(K: Matrix, M: Matrix) -> tuple[Tensor, Tensor]:
    """Solve K u = λ M u for symmetric K and SPD M.

    Uses the Cholesky reduction M = L L^T and the standard symmetric
    eigenproblem for L^{-1} K L^{-T}.

    Args:
        K (Tensor | SparseTensor): (n, n) symmetric matrix.
        M (Tensor | SparseTensor): (n, n) symmetric positive definite matrix.

    Returns:
        eigenvalues (n,) in ascending order and eigenvectors U (n, n) with
        U^T M U = I and U^T K U = diag(eigenvalues).

    Raises:
        ValueError: if M is not positive definite or eigh does not converge.
    """
    K = _dense(K)
    M = _dense(M)

    L, info = torch.linalg.cholesky_ex(M)
    if int(info) != 0:
        raise ValueError(
            "Fast diagonalization failed: mass matrix is not positive definite "
            f"(leading minor {int(info)})"
        )

    # C = L^{-1} K L^{-T}
    X = torch.linalg.solve_triangular(L, K, upper=False)
    C = torch.linalg.solve_triangular(L, X.mT, upper=False).mT
    C = 0.5 * (C + C.mT)

    try:
        eigenvalues, W = torch.linalg.eigh(C)
    except torch.linalg.LinAlgError as err:
        raise ValueError("Fast diagonalization failed: eigh did not converge") from err

    U = torch.linalg.solve_triangular(L.mT, W, upper=True)
    return eigenvalues, U


class FastDiagonalizationOp(LinearOperator):
    """Exact inverse of a separable stiffness operator by fast diagonalization.

    Args:
        masses (Sequence[Tensor | SparseTensor]): univariate mass matrices,
            direction 0 first.
        stiffnesses (Sequence[Tensor | SparseTensor]): univariate stiffness
            matrices, same order.
        a (float): weight of the reaction term.

    Raises:
        ValueError: on mismatched inputs, a failed decomposition or a
            singular combined spectrum (e.g. pure Neumann with a = 0).
    """

    def __init__(
        self,
        masses: Sequence[Matrix],
        stiffnesses: Sequence[Matrix],
        a: float = 0.0,
    ):
        if len(masses) == 0 or len(masses) != len(stiffnesses):
            raise ValueError(
                f"Need one mass and one stiffness matrix per direction, got "
                f"{len(masses)} and {len(stiffnesses)}"
            )
        self._a = float(a)

        self._eigenvalues: list[Tensor] = []
        self._eigenvectors: list[Tensor] = []
        for k, (M, K) in enumerate(zip(masses, stiffnesses)):
            lam, U = generalized_eigh(K, M)
            logger.debug(
                "Direction %d: %d eigenpairs, λ in [%.3e, %.3e]",
                k, lam.numel(), float(lam[0]), float(lam[-1]),
            )
            self._eigenvalues.append(lam)
            self._eigenvectors.append(U)

        # Kronecker factors and the combined spectrum, last direction slowest
        self._transform = KroneckerOp(
            [MatrixOp(U) for U in reversed(self._eigenvectors)]
        )
        self._diagonal = self._combined_eigenvalues()

        scale = float(self._diagonal.abs().max())
        tol = _SINGULAR_FACTOR * torch.finfo(self._diagonal.dtype).eps * scale
        if scale == 0.0 or bool((self._diagonal.abs() <= tol).any()):
            raise ValueError(
                f"Fast diagonalization operator is singular for a={self._a} "
                "(the stiffness operator has a null space)"
            )

    def _combined_eigenvalues(self) -> Tensor:
        d = len(self._eigenvalues)
        sizes = [lam.numel() for lam in reversed(self._eigenvalues)]
        total = torch.full(sizes, self._a, dtype=self._eigenvalues[0].dtype)
        for k, lam in enumerate(self._eigenvalues):
            axis = d - 1 - k
            shape = [1] * d
            shape[axis] = lam.numel()
            total = total + lam.reshape(shape)
        return total.reshape(-1)

    def eigenvalues(self) -> list[Tensor]:
        """Generalized eigenvalues per direction, direction 0 first."""
        return list(self._eigenvalues)

    def eigenvectors(self) -> list[Tensor]:
        """M-orthonormal eigenvectors per direction, direction 0 first."""
        return list(self._eigenvectors)

    @property
    def a(self) -> float:
        return self._a

    def apply(self, x: Tensor) -> Tensor:
        y = self._transform.apply_transposed(x)
        if y.ndim == 1:
            y = y / self._diagonal
        else:
            y = y / self._diagonal.unsqueeze(-1)
        return self._transform.apply(y)

    def apply_transposed(self, x: Tensor) -> Tensor:
        return self.apply(x)

    def rows(self) -> int:
        return math.prod(lam.numel() for lam in self._eigenvalues)

    def cols(self) -> int:
        return self.rows()
