"""Knot vectors for univariate B-spline bases."""
# pylint: disable=invalid-name

from __future__ import annotations

from typing import Sequence, Union

import torch
from torch import Tensor

from ..utils import DEFAULT_DTYPE


class KnotVector:
    """Non-decreasing knot sequence t_0 ≤ t_1 ≤ ... ≤ t_{n+p} of degree p.

    The parametric domain is [t_p, t_n], where n is the number of basis
    functions. Open (clamped) knot vectors repeat the end knots p+1 times.

    Args:
        knots (Tensor | Sequence[float]): knot values.
        degree (int): polynomial degree p ≥ 0.
    """

    def __init__(self, knots: Union[Tensor, Sequence[float]], degree: int):
        if degree < 0:
            raise ValueError(f"Degree must be >= 0, got {degree}")

        t = torch.as_tensor(knots, dtype=DEFAULT_DTYPE)
        if t.ndim != 1:
            raise ValueError(f"Knots must be a 1-D sequence, got ndim={t.ndim}")
        if t.numel() < 2 * (degree + 1):
            raise ValueError(
                f"Need at least {2 * (degree + 1)} knots for degree {degree}, "
                f"got {t.numel()}"
            )
        if bool((t[1:] < t[:-1]).any()):
            raise ValueError("Knots must be non-decreasing")
        if not t[degree] < t[-degree - 1]:
            raise ValueError("Knot vector has an empty parametric domain")

        self._knots = t
        self._degree = int(degree)

    @classmethod
    def uniform(
        cls,
        num_elements: int,
        degree: int,
        start: float = 0.0,
        end: float = 1.0,
    ) -> KnotVector:
        """Open knot vector with `num_elements` equal elements on [start, end].

        Args:
            num_elements (int): number of knot spans (≥ 1).
            degree (int): polynomial degree.
            start (float): left end of the domain.
            end (float): right end of the domain.

        Returns:
            KnotVector with end knots of multiplicity degree+1.
        """
        if num_elements < 1:
            raise ValueError(f"num_elements must be >= 1, got {num_elements}")
        breaks = torch.linspace(start, end, num_elements + 1, dtype=DEFAULT_DTYPE)
        knots = torch.cat([
            breaks[:1].repeat(degree),
            breaks,
            breaks[-1:].repeat(degree),
        ])
        return cls(knots, degree)

    @property
    def knots(self) -> Tensor:
        """(n+p+1,) knot values."""
        return self._knots

    @property
    def degree(self) -> int:
        return self._degree

    @property
    def size(self) -> int:
        """Number of B-spline functions n on this knot vector."""
        return self._knots.numel() - self._degree - 1

    @property
    def domain(self) -> tuple[float, float]:
        p = self._degree
        return float(self._knots[p]), float(self._knots[-p - 1])

    def unique(self) -> Tensor:
        """Distinct breakpoints inside the parametric domain."""
        p = self._degree
        return torch.unique_consecutive(self._knots[p:self._knots.numel() - p])

    @property
    def num_elements(self) -> int:
        return self.unique().numel() - 1

    def find_span(self, u: Tensor) -> Tensor:
        """Knot span index s with t_s ≤ u < t_{s+1}.

        The right end of the domain is assigned to the last non-empty span.

        Args:
            u (Tensor): parameter values, any shape.

        Returns:
            Long tensor of span indices, same shape as u.
        """
        u = torch.as_tensor(u, dtype=self._knots.dtype)
        spans = torch.searchsorted(self._knots, u.contiguous(), right=True) - 1
        return spans.clamp(self._degree, self.size - 1)

    def __len__(self) -> int:
        return self._knots.numel()

    def __repr__(self) -> str:
        return (
            f"KnotVector(degree={self._degree}, "
            f"num_elements={self.num_elements}, size={self.size})"
        )
