"""Gauss-Legendre quadrature on intervals.

Nodes and weights on the reference interval [-1, 1] come from
numpy.polynomial.legendre.leggauss and are converted to CPU float64
tensors. A rule with Q points integrates polynomials of degree ≤ 2Q - 1
exactly, so Q = p + 1 points suffice for products of degree-p B-splines.
"""
# pylint: disable=invalid-name

from __future__ import annotations

import numpy as np
import torch
from torch import Tensor


def gauss_legendre(num_points: int) -> tuple[Tensor, Tensor]:
    """Gauss-Legendre rule on [-1, 1].

    Args:
        num_points (int): number of nodes Q ≥ 1.

    Returns:
        points (Q,): nodes in ascending order.
        weights (Q,): weights (sum = 2).

    Raises:
        ValueError: if num_points < 1.
    """
    if num_points < 1:
        raise ValueError(f"Need at least one quadrature point, got {num_points}")
    points, weights = np.polynomial.legendre.leggauss(num_points)
    return (
        torch.from_numpy(points).to(torch.float64),
        torch.from_numpy(weights).to(torch.float64),
    )


def element_quadrature(intervals: Tensor, num_points: int) -> tuple[Tensor, Tensor]:
    """Map a Gauss-Legendre rule onto every element.

    Args:
        intervals (Tensor): (E, 2) element end points [a_e, b_e].
        num_points (int): nodes per element.

    Returns:
        points (E, Q): physical nodes.
        weights (E, Q): physical weights (row e sums to b_e - a_e).
    """
    ref_points, ref_weights = gauss_legendre(num_points)
    ref_points = ref_points.to(device=intervals.device, dtype=intervals.dtype)
    ref_weights = ref_weights.to(device=intervals.device, dtype=intervals.dtype)

    a = intervals[:, 0:1]  # (E, 1)
    h = intervals[:, 1:2] - a  # (E, 1)

    points = a + 0.5 * h * (ref_points.unsqueeze(0) + 1.0)
    weights = 0.5 * h * ref_weights.unsqueeze(0)
    return points, weights
