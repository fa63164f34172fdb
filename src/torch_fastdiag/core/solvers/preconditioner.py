"""Preconditioner operators with smoothing-step semantics.

A PreconditionerOp approximates the inverse of an underlying operator A.
Besides acting as a LinearOperator it can perform relaxation sweeps
in place:

    step(f, x):    x ← x + P (f - A x)      iteration matrix I - P A
    step_t(f, x):  x ← x + P^T (f - A x)    iteration matrix I - P^T A

As a LinearOperator, apply(f) starts from x = 0 and runs `num_of_sweeps`
steps, so a single sweep returns P f.
"""
# pylint: disable=invalid-name

from __future__ import annotations

from abc import abstractmethod
from typing import Optional

import torch
from torch import Tensor

from .linear_operator import LinearOperator


class ContractViolation(AssertionError):
    """Raised when an operator is used outside its contract.

    This denotes a bug in the calling code (e.g. querying the size of an
    empty composition), not bad input data.
    """


class PreconditionerOp(LinearOperator):
    """Abstract base class for preconditioners and smoothers.

    Implementations must provide:
    - step(f, x): one in-place sweep for A x = f
    - underlying_op(): the operator A

    step_t defaults to step, which is right for symmetric smoothers.
    """

    _num_of_sweeps: int = 1

    @abstractmethod
    def step(self, f: Tensor, x: Tensor) -> None:
        """Apply one smoothing sweep for A x = f, updating x in place.

        Args:
            f (Tensor): (n,) or (n, k) right-hand side, not modified.
            x (Tensor): current iterate, same shape as f, modified in place.
        """

    def step_t(self, f: Tensor, x: Tensor) -> None:
        """Apply the transposed sweep, updating x in place."""
        self.step(f, x)

    @abstractmethod
    def underlying_op(self) -> LinearOperator:
        """Operator A approximated by this preconditioner."""

    @property
    def num_of_sweeps(self) -> int:
        """Number of steps performed by apply."""
        return self._num_of_sweeps

    @num_of_sweeps.setter
    def num_of_sweeps(self, value: int) -> None:
        if not isinstance(value, int) or isinstance(value, bool) or value < 1:
            raise ValueError(f"num_of_sweeps must be a positive int, got {value!r}")
        self._num_of_sweeps = value

    def rows(self) -> int:
        return self.underlying_op().rows()

    def cols(self) -> int:
        return self.underlying_op().cols()

    def _zero_iterate(self, f: Tensor) -> Tensor:
        return torch.zeros(
            (self.rows(),) + tuple(f.shape[1:]), dtype=f.dtype, device=f.device
        )

    def apply(self, x: Tensor) -> Tensor:
        y = self._zero_iterate(x)
        for _ in range(self.num_of_sweeps):
            self.step(x, y)
        return y

    def apply_transposed(self, x: Tensor) -> Tensor:
        y = self._zero_iterate(x)
        for _ in range(self.num_of_sweeps):
            self.step_t(x, y)
        return y

    def estimate_largest_eigenvalue(
        self,
        steps: int = 10,
        generator: Optional[torch.Generator] = None,
    ) -> float:
        """Estimate the largest eigenvalue of P A by power iteration.

        Args:
            steps (int): number of power iterations.
            generator (torch.Generator | None): source of the random start.

        Returns:
            Estimate of the spectral radius of P A.
        """
        A = self.underlying_op()
        x = torch.randn(A.cols(), dtype=torch.float64, generator=generator)
        x = x / x.norm()

        lam = 0.0
        for _ in range(steps):
            y = self.apply(A.apply(x))
            norm = y.norm()
            lam = float(norm)
            if lam == 0.0:
                break
            x = y / norm
        return lam


class PreconditionerFromOp(PreconditionerOp):
    """Smoother built from an approximate inverse P of A.

        step:   x ← x + tau P (f - A x)
        step_t: x ← x + tau P^T (f - A x)

    Args:
        underlying (LinearOperator): operator A.
        preconditioner (LinearOperator): approximate inverse P.
        tau (float): damping parameter (default 1).

    Raises:
        ValueError: if the shapes of A and P are not compatible.
    """

    def __init__(
        self,
        underlying: LinearOperator,
        preconditioner: LinearOperator,
        tau: float = 1.0,
    ):
        if preconditioner.shape != (underlying.cols(), underlying.rows()):
            raise ValueError(
                f"Preconditioner of shape {preconditioner.shape} does not fit "
                f"an operator of shape {underlying.shape}"
            )
        self._underlying = underlying
        self._preconditioner = preconditioner
        self.tau = tau

    @property
    def tau(self) -> float:
        return self._tau

    @tau.setter
    def tau(self, value: float) -> None:
        self._tau = float(value)

    def step(self, f: Tensor, x: Tensor) -> None:
        residual = f - self._underlying.apply(x)
        x.add_(self._preconditioner.apply(residual), alpha=self._tau)

    def step_t(self, f: Tensor, x: Tensor) -> None:
        residual = f - self._underlying.apply(x)
        x.add_(self._preconditioner.apply_transposed(residual), alpha=self._tau)

    def underlying_op(self) -> LinearOperator:
        return self._underlying
