"""Univariate B-spline basis with Cox-de Boor evaluation.

On every knot span [t_s, t_{s+1}) exactly p+1 B-splines of degree p are
active, namely N_{s-p}, ..., N_s. Evaluation returns these local values in
that order, batched over elements and points:

    values[e, q, k] = N_{s_e - p + k}(u[e, q])

First derivatives use the recurrence

    N'_{i,p} = p * ( N_{i,p-1} / (t_{i+p} - t_i)
                   - N_{i+1,p-1} / (t_{i+p+1} - t_{i+1}) )

evaluated from the degree p-1 values on the same span.
"""
# pylint: disable=invalid-name

from __future__ import annotations

import torch
from torch import Tensor

from .knots import KnotVector


def _basis_funs(t: Tensor, spans: Tensor, u: Tensor, p: int) -> Tensor:
    """Non-vanishing degree-p B-splines on the given spans.

    Args:
        t (Tensor): (K,) knot values.
        spans (Tensor): (E,) span index per row of u.
        u (Tensor): (E, Q) parameter values.
        p (int): degree.

    Returns:
        (E, Q, p+1) values of N_{s-p}, ..., N_s.
    """
    N = [torch.ones_like(u)]
    left = [torch.zeros_like(u)]
    right = [torch.zeros_like(u)]

    for j in range(1, p + 1):
        left.append(u - t[spans + 1 - j].unsqueeze(-1))
        right.append(t[spans + j].unsqueeze(-1) - u)

        saved = torch.zeros_like(u)
        N_next = []
        for r in range(j):
            temp = N[r] / (right[r + 1] + left[j - r])
            N_next.append(saved + right[r + 1] * temp)
            saved = left[j - r] * temp
        N_next.append(saved)
        N = N_next

    return torch.stack(N, dim=-1)


class BSplineBasis:
    """B-spline basis of degree p on a knot vector.

    Args:
        knots (KnotVector): knot vector carrying the degree.
    """

    dim = 1

    def __init__(self, knots: KnotVector):
        if not isinstance(knots, KnotVector):
            raise TypeError(f"Expected a KnotVector, got {type(knots)}")
        self._knots = knots

    @classmethod
    def uniform(
        cls,
        num_elements: int,
        degree: int,
        start: float = 0.0,
        end: float = 1.0,
    ) -> BSplineBasis:
        """Basis on an open uniform knot vector (see KnotVector.uniform)."""
        return cls(KnotVector.uniform(num_elements, degree, start, end))

    @property
    def knots(self) -> KnotVector:
        return self._knots

    @property
    def degree(self) -> int:
        return self._knots.degree

    def size(self) -> int:
        """Number of basis functions."""
        return self._knots.size

    @property
    def num_elements(self) -> int:
        return self._knots.num_elements

    @property
    def domain(self) -> tuple[float, float]:
        return self._knots.domain

    def element_intervals(self) -> Tensor:
        """(E, 2) left and right end of every non-empty knot span."""
        breaks = self._knots.unique()
        return torch.stack([breaks[:-1], breaks[1:]], dim=-1)

    def element_spans(self) -> Tensor:
        """(E,) knot span index of every element."""
        return self._knots.find_span(self.element_intervals()[:, 0])

    def first_active(self, spans: Tensor) -> Tensor:
        """Global index of the first active function on each span."""
        return spans - self.degree

    def eval_with_derivs(self, spans: Tensor, u: Tensor) -> tuple[Tensor, Tensor]:
        """Values and first derivatives of the active functions.

        Args:
            spans (Tensor): (E,) span indices.
            u (Tensor): (E, Q) points, u[e] inside span spans[e].

        Returns:
            values (E, Q, p+1) and derivatives (E, Q, p+1).
        """
        t = self._knots.knots
        p = self.degree
        values = _basis_funs(t, spans, u, p)

        if p == 0:
            return values, torch.zeros_like(values)

        lower = _basis_funs(t, spans, u, p - 1)  # N_{s-p+1}, ..., N_s
        derivs = torch.zeros_like(values)
        for k in range(p + 1):
            i = spans - p + k
            if k >= 1:
                derivs[..., k] += lower[..., k - 1] / (t[i + p] - t[i]).unsqueeze(-1)
            if k <= p - 1:
                derivs[..., k] -= lower[..., k] / (t[i + p + 1] - t[i + 1]).unsqueeze(-1)
        return values, p * derivs

    def __repr__(self) -> str:
        return f"BSplineBasis(degree={self.degree}, size={self.size()})"
