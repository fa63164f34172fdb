"""Preconditioners for single-patch tensor-product discretizations.

The geometry transformation is approximated by the identity map on the
parametric domain. The mass and stiffness matrices of a tensor basis are
then exact Kronecker (sums of) products of univariate matrices:

    M = M_{d-1} ⊗ ⋯ ⊗ M_0
    K = Σ_k M_{d-1} ⊗ ⋯ ⊗ K_k ⊗ ⋯ ⊗ M_0 + a M

which gives matrix-free operators and the fast diagonalization inverse.
Direction 0 runs fastest in the global numbering.
"""
# pylint: disable=invalid-name

from __future__ import annotations

import copy
from typing import Union

from torch_sparse import SparseTensor

from ..basis.bspline import BSplineBasis
from ..basis.tensor import TensorBSplineBasis
from ..iga.assembly import apply_dirichlet_1d, assemble_1d
from ..iga.boundary import BoundaryConditions
from ..iga.options import AssemblerOptions, DirichletStrategy, default_options
from ..ops.sparse import sparse_add, sparse_kron_all, sparse_scale
from ..solvers.linear_operator import (
    CholeskySolveOp,
    KroneckerOp,
    LinearOperator,
    MatrixOp,
    ScaledOp,
    SumOp,
)
from ..utils import logger
from .fast_diagonalization import FastDiagonalizationOp

Basis = Union[TensorBSplineBasis, BSplineBasis]


def _as_tensor_basis(basis: Basis) -> TensorBSplineBasis:
    if isinstance(basis, TensorBSplineBasis):
        return basis
    if isinstance(basis, BSplineBasis):
        return TensorBSplineBasis([basis])
    raise TypeError(
        "SinglePatchPreconditioners requires a tensor-product B-spline basis, "
        f"got {type(basis).__name__}"
    )


class SinglePatchPreconditioners:
    """Mass, stiffness and fast diagonalization operators for one patch.

    The basis is held by reference and never modified; the caller must keep
    it alive as long as this object is used. Boundary conditions and
    options are copied. Every getter assembles from scratch.

    Args:
        basis (TensorBSplineBasis | BSplineBasis): tensor-product basis.
        bc (BoundaryConditions): boundary conditions of the patch.
        options (DirichletStrategy | AssemblerOptions): either the Dirichlet
            strategy (other options default) or a full option record.

    Raises:
        TypeError: if the basis is not a tensor-product B-spline basis.
    """

    def __init__(
        self,
        basis: Basis,
        bc: BoundaryConditions,
        options: Union[DirichletStrategy, AssemblerOptions] = DirichletStrategy.ELIMINATION,
    ):
        self._basis = basis
        self._tensor_basis = _as_tensor_basis(basis)
        self._bc = copy.deepcopy(bc)
        if isinstance(options, AssemblerOptions):
            self._options = options.copy()
        else:
            self._options = default_options().with_strategy(options)

    @property
    def basis(self) -> Basis:
        return self._basis

    @property
    def boundary_conditions(self) -> BoundaryConditions:
        return self._bc

    @property
    def options(self) -> AssemblerOptions:
        return self._options

    @property
    def dim(self) -> int:
        return self._tensor_basis.dim

    def _univariate_matrices(self) -> tuple[list[SparseTensor], list[SparseTensor]]:
        """Univariate (masses, stiffnesses) with boundary treatment, direction 0 first."""
        masses, stiffnesses = [], []
        for direction in range(self.dim):
            component = self._tensor_basis.component(direction)
            M, K = assemble_1d(
                component, self._options.num_quad_points(component.degree)
            )
            M, K = apply_dirichlet_1d(
                M, K, component, self._bc, self._options, direction
            )
            masses.append(M)
            stiffnesses.append(K)
        return masses, stiffnesses

    def _factors(self, masses: list, stiffnesses: list, k: int) -> list:
        """Kronecker factors (slowest first) with the stiffness in direction k."""
        factors = [
            stiffnesses[j] if j == k else masses[j] for j in range(self.dim)
        ]
        return factors[::-1]

    def get_mass_matrix(self) -> SparseTensor:
        """Sparse mass matrix of the (constrained) tensor basis."""
        masses, _ = self._univariate_matrices()
        M = sparse_kron_all(masses[::-1])
        logger.debug("Mass matrix: %d x %d, nnz=%d", M.size(0), M.size(1), M.nnz())
        return M

    def get_mass_matrix_op(self) -> LinearOperator:
        """Matrix-free mass operator (Kronecker product of univariate masses)."""
        masses, _ = self._univariate_matrices()
        return KroneckerOp([MatrixOp(M, symmetric=True) for M in masses[::-1]])

    def get_mass_matrix_inv_op(self) -> LinearOperator:
        """Matrix-free inverse mass operator (Kronecker product of univariate solves)."""
        masses, _ = self._univariate_matrices()
        return KroneckerOp([CholeskySolveOp(M) for M in masses[::-1]])

    def get_stiffness_matrix(self, a: float = 0.0) -> SparseTensor:
        """Sparse matrix of -Δu + a u.

        Args:
            a (float): weight of the reaction term.
        """
        masses, stiffnesses = self._univariate_matrices()

        K = sparse_kron_all(self._factors(masses, stiffnesses, 0))
        for k in range(1, self.dim):
            K = sparse_add(K, sparse_kron_all(self._factors(masses, stiffnesses, k)))
        if a != 0:
            K = sparse_add(K, sparse_scale(sparse_kron_all(masses[::-1]), a))

        logger.debug("Stiffness matrix (a=%g): %d x %d, nnz=%d", a, K.size(0), K.size(1), K.nnz())
        return K

    def get_stiffness_matrix_op(self, a: float = 0.0) -> LinearOperator:
        """Matrix-free operator of -Δu + a u.

        Args:
            a (float): weight of the reaction term.
        """
        masses, stiffnesses = self._univariate_matrices()

        terms: list[LinearOperator] = [
            KroneckerOp([
                MatrixOp(A, symmetric=True)
                for A in self._factors(masses, stiffnesses, k)
            ])
            for k in range(self.dim)
        ]
        if a != 0:
            mass_op = KroneckerOp([MatrixOp(M, symmetric=True) for M in masses[::-1]])
            terms.append(ScaledOp(mass_op, a))
        return SumOp(terms)

    def get_fast_diagonalization_op(self, a: float = 0.0) -> FastDiagonalizationOp:
        """Inverse of the -Δu + a u operator by fast diagonalization.

        Args:
            a (float): weight of the reaction term.

        Raises:
            ValueError: if a decomposition fails or the operator is singular.
        """
        masses, stiffnesses = self._univariate_matrices()
        logger.debug("Building fast diagonalization operator (a=%g)", a)
        return FastDiagonalizationOp(masses, stiffnesses, a)

    def __repr__(self) -> str:
        return (
            f"SinglePatchPreconditioners(basis={self._tensor_basis!r}, "
            f"strategy={self._options.dirichlet_strategy.name})"
        )
