"""Preconditioned Conjugate Gradient on linear operators.

Used to check the quality of preconditioners: with the fast
diagonalization inverse of the exact stiffness operator, PCG converges in
a single iteration up to rounding.
"""
# pylint: disable=invalid-name

from __future__ import annotations

from typing import Callable, Optional, Union

import torch
from torch import Tensor
from torch_sparse import SparseTensor

from ..utils import logger
from .linear_operator import LinearOperator, as_linear_operator

Operand = Union[LinearOperator, Tensor, SparseTensor, Callable[[Tensor], Tensor]]


class _CallableOp(LinearOperator):
    """Square operator given by a function x ↦ A x."""

    def __init__(self, fn: Callable[[Tensor], Tensor], n: int):
        self._fn = fn
        self._n = n

    def apply(self, x: Tensor) -> Tensor:
        return self._fn(x)

    def rows(self) -> int:
        return self._n

    def cols(self) -> int:
        return self._n


def _to_operator(A: Operand, n: int) -> LinearOperator:
    if isinstance(A, (LinearOperator, Tensor, SparseTensor)):
        return as_linear_operator(A, symmetric=True)
    if callable(A):
        return _CallableOp(A, n)
    raise TypeError(f"Cannot use {type(A).__name__} as a linear operator")


def _safe_divide(num: Tensor, den: Tensor) -> Tensor:
    """num / den, with 0 for columns whose denominator vanishes.

    Such columns are already solved, so their iterate must stay unchanged.
    """
    zero = torch.zeros_like(den)
    return torch.where(den != 0, num / torch.where(den != 0, den, torch.ones_like(den)), zero)


def cg_solve(
    A: Operand,
    b: Tensor,
    x0: Optional[Tensor] = None,
    preconditioner: Optional[LinearOperator] = None,
    tol: float = 1e-8,
    maxiter: Optional[int] = None,
) -> tuple[Tensor, dict]:
    """Solve the SPD system A x = b by Preconditioned Conjugate Gradient.

    Each column of a block right-hand side (n, k) is an independent
    system; all columns share the iteration and stop together.

    Args:
        A (Operand): symmetric positive definite operator, matrix or callable.
        b (Tensor): right-hand side, shape (n,) or (n, k).
        x0 (Tensor | None): initial guess, defaults to zero.
        preconditioner (LinearOperator | None): SPD approximation of A^{-1}.
        tol (float): absolute tolerance on the largest column residual norm.
        maxiter (int | None): iteration limit, defaults to n.

    Returns:
        x (Tensor): approximate solution, same shape as b.
        info (dict): "converged" (bool), "iterations" (int),
            "residual_norm" (float) and "history" (list of float, one
            entry per iteration including the initial residual).

    Raises:
        ValueError: if the sizes of A, b or the preconditioner disagree.
    """
    n = b.shape[0]
    op = _to_operator(A, n)
    if op.shape != (n, n):
        raise ValueError(f"Operator of shape {op.shape} does not fit b with {n} rows")
    if preconditioner is not None and preconditioner.shape != (n, n):
        raise ValueError(
            f"Preconditioner of shape {preconditioner.shape} does not fit b with {n} rows"
        )
    limit = maxiter if maxiter is not None else n

    def precondition(r: Tensor) -> Tensor:
        if preconditioner is None:
            return r.clone()
        return preconditioner.apply(r)

    x = torch.zeros_like(b) if x0 is None else x0.clone()
    r = b - op.apply(x)
    history = [float(r.norm(dim=0).max())]

    iterations = 0
    if history[-1] >= tol:
        z = precondition(r)
        p = z.clone()
        rz = (r * z).sum(dim=0)

        while iterations < limit:
            iterations += 1
            Ap = op.apply(p)
            alpha = _safe_divide(rz, (p * Ap).sum(dim=0))
            x = x + alpha * p
            r = r - alpha * Ap

            history.append(float(r.norm(dim=0).max()))
            if history[-1] < tol:
                break

            z = precondition(r)
            rz_next = (r * z).sum(dim=0)
            p = z + _safe_divide(rz_next, rz) * p
            rz = rz_next

    info = {
        "converged": history[-1] < tol,
        "iterations": iterations,
        "residual_norm": history[-1],
        "history": history,
    }
    logger.debug(
        "CG: converged=%s after %d iterations (residual %.3e)",
        info["converged"], iterations, history[-1],
    )
    return x, info
