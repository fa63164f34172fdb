"""Univariate mass and stiffness assembly for B-spline bases.

Assembles global sparse matrices

    M[i, j] = ∫ N_i N_j du,        K[i, j] = ∫ N_i' N_j' du

on the parametric domain of a BSplineBasis with element-wise Gauss
quadrature. The geometry map is the identity, so the multivariate
matrices of a tensor basis are Kronecker products of these (see
preconditioners/single_patch.py).

Dirichlet sides are handled per direction by `apply_dirichlet_1d`:
    - ELIMINATION drops the single B-spline that is nonzero on the side
      (open knot vectors are interpolatory at the ends).
    - PENALTY adds γ/h N_i N_j at the end point.
    - NITSCHE adds -n (N_i' N_j + N_i N_j') + γ/h N_i N_j at the end point,
      n = ±1 being the outward normal.
with γ = penalty * (p+1)^2 and h the size of the boundary element.

PENALTY is a weak symmetric boundary term without the Nitsche consistency
terms, so boundary values are only approximated (the error decays with
γ/h). It does not overwrite the diagonal of the boundary dofs with a large
constant; use ELIMINATION for strongly imposed values.
"""
# pylint: disable=invalid-name

from __future__ import annotations

from typing import Optional

import torch
from torch import Tensor
from torch_sparse import SparseTensor

from ..basis.bspline import BSplineBasis
from ..ops.sparse import sparse_add, sparse_select
from ..utils import logger
from .boundary import BoundaryConditions, BoxSide
from .options import AssemblerOptions, DirichletStrategy
from .quadrature import element_quadrature


def assemble_local_1d(
    basis: BSplineBasis,
    num_points: Optional[int] = None,
) -> tuple[Tensor, Tensor, Tensor]:
    """Assemble local mass and stiffness matrices for all elements.

    Args:
        basis (BSplineBasis): univariate basis.
        num_points (int | None): Gauss points per element, default degree+1.

    Returns:
        mass (E, p+1, p+1): local mass matrices.
        stiffness (E, p+1, p+1): local stiffness matrices.
        dofs (E, p+1): global indices of the active functions.
    """
    p = basis.degree
    Q = num_points if num_points is not None else p + 1

    intervals = basis.element_intervals()  # (E, 2)
    spans = basis.element_spans()  # (E,)
    points, weights = element_quadrature(intervals, Q)  # (E, Q)

    N, dN = basis.eval_with_derivs(spans, points)  # (E, Q, p+1)

    mass = torch.einsum("eq,eqi,eqj->eij", weights, N, N)
    stiffness = torch.einsum("eq,eqi,eqj->eij", weights, dN, dN)

    offsets = torch.arange(p + 1, dtype=torch.long, device=spans.device)
    dofs = basis.first_active(spans).unsqueeze(1) + offsets.unsqueeze(0)

    return mass, stiffness, dofs


def _scatter(local: Tensor, dofs: Tensor, n: int) -> SparseTensor:
    """Sum local (E, k, k) blocks into an (n, n) SparseTensor."""
    E, k, _ = local.shape

    # row: (E, k, 1) → (E, k, k), col: (E, 1, k) → (E, k, k)
    rows_2d = dofs.unsqueeze(2).expand(E, k, k)
    cols_2d = dofs.unsqueeze(1).expand(E, k, k)

    row_idx = rows_2d.reshape(-1)
    col_idx = cols_2d.reshape(-1)
    values = local.reshape(-1)

    # Structural zeros (e.g. p = 0 stiffness)
    mask = values != 0
    return SparseTensor(
        row=row_idx[mask],
        col=col_idx[mask],
        value=values[mask],
        sparse_sizes=(n, n),
    ).coalesce()


def assemble_1d(
    basis: BSplineBasis,
    num_points: Optional[int] = None,
) -> tuple[SparseTensor, SparseTensor]:
    """Assemble global mass and stiffness matrices in one pass.

    Args:
        basis (BSplineBasis): univariate basis.
        num_points (int | None): Gauss points per element, default degree+1.

    Returns:
        mass (n, n) and stiffness (n, n) SparseTensors.
    """
    n = basis.size()
    mass_local, stiffness_local, dofs = assemble_local_1d(basis, num_points)
    logger.debug(
        "Assembled %d elements of degree %d (%d dofs)",
        mass_local.shape[0], basis.degree, n,
    )
    return _scatter(mass_local, dofs, n), _scatter(stiffness_local, dofs, n)


def assemble_mass_1d(
    basis: BSplineBasis,
    num_points: Optional[int] = None,
) -> SparseTensor:
    """Global (n, n) mass matrix of a univariate basis."""
    mass_local, _, dofs = assemble_local_1d(basis, num_points)
    return _scatter(mass_local, dofs, basis.size())


def assemble_stiffness_1d(
    basis: BSplineBasis,
    num_points: Optional[int] = None,
) -> SparseTensor:
    """Global (n, n) stiffness matrix of a univariate basis."""
    _, stiffness_local, dofs = assemble_local_1d(basis, num_points)
    return _scatter(stiffness_local, dofs, basis.size())


def boundary_values_1d(
    basis: BSplineBasis,
    parameter: int,
) -> tuple[Tensor, Tensor, Tensor, float]:
    """Active functions at one end of the parametric domain.

    Args:
        basis (BSplineBasis): univariate basis.
        parameter (int): 0 for the left end, 1 for the right end.

    Returns:
        dofs (p+1,): global indices of the active functions.
        values (p+1,): function values at the end point.
        derivs (p+1,): first derivatives at the end point.
        h (float): size of the boundary element.
    """
    intervals = basis.element_intervals()
    spans = basis.element_spans()
    e = 0 if parameter == 0 else spans.numel() - 1

    span = spans[e:e + 1]
    u = intervals[e, parameter].reshape(1, 1)
    values, derivs = basis.eval_with_derivs(span, u)

    offsets = torch.arange(basis.degree + 1, dtype=torch.long)
    dofs = basis.first_active(span) + offsets
    h = float(intervals[e, 1] - intervals[e, 0])
    return dofs, values[0, 0], derivs[0, 0], h


def apply_dirichlet_1d(
    mass: SparseTensor,
    stiffness: SparseTensor,
    basis: BSplineBasis,
    bc: BoundaryConditions,
    options: AssemblerOptions,
    direction: int,
) -> tuple[SparseTensor, SparseTensor]:
    """Apply the Dirichlet strategy to the univariate matrices of a direction.

    Args:
        mass (SparseTensor): (n, n) mass matrix of `basis`.
        stiffness (SparseTensor): (n, n) stiffness matrix of `basis`.
        basis (BSplineBasis): univariate basis of `direction`.
        bc (BoundaryConditions): conditions of the whole box.
        options (AssemblerOptions): selects the Dirichlet strategy.
        direction (int): parametric direction of `basis`.

    Returns:
        (mass, stiffness) with the boundary treatment applied.

    Raises:
        ValueError: if elimination leaves no degree of freedom.
    """
    sides = [BoxSide.first(direction), BoxSide.last(direction)]
    dirichlet = [s for s in sides if bc.is_dirichlet(s)]
    if not dirichlet:
        return mass, stiffness

    strategy = options.dirichlet_strategy
    n = basis.size()

    if strategy is DirichletStrategy.ELIMINATION:
        keep_mask = torch.ones(n, dtype=torch.bool)
        for side in dirichlet:
            keep_mask[0 if side.parameter == 0 else n - 1] = False
        keep = torch.nonzero(keep_mask).squeeze(-1)
        if keep.numel() == 0:
            raise ValueError(
                f"Dirichlet elimination leaves no degrees of freedom in direction {direction}"
            )
        logger.debug(
            "Direction %d: eliminated %d Dirichlet dofs", direction, n - keep.numel()
        )
        return sparse_select(mass, keep), sparse_select(stiffness, keep)

    p = basis.degree
    for side in dirichlet:
        dofs, N, dN, h = boundary_values_1d(basis, side.parameter)
        gamma = options.penalty * (p + 1) ** 2 / h

        local = gamma * torch.outer(N, N)
        if strategy is DirichletStrategy.NITSCHE:
            normal = -1.0 if side.parameter == 0 else 1.0
            local = local - normal * (torch.outer(N, dN) + torch.outer(dN, N))

        stiffness = sparse_add(stiffness, _scatter(local.unsqueeze(0), dofs.unsqueeze(0), n))
        logger.debug(
            "Direction %d: added %s boundary term on %s",
            direction, strategy.name.lower(), side.name,
        )

    return mass, stiffness
