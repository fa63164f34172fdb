"""Tensor-product B-spline bases.

A d-variate tensor basis is the outer product of d univariate bases. The
global index of the function N_{i_0}(u_0) ⋯ N_{i_{d-1}}(u_{d-1}) is

    i_0 + n_0 * (i_1 + n_1 * (i_2 + ...))

i.e. direction 0 runs fastest.
"""

from __future__ import annotations

import math
from typing import Sequence

from .bspline import BSplineBasis


class TensorBSplineBasis:
    """Tensor product of univariate B-spline bases.

    Args:
        components (Sequence[BSplineBasis]): one basis per parametric
            direction, direction 0 first.
    """

    def __init__(self, components: Sequence[BSplineBasis]):
        components = list(components)
        if len(components) == 0:
            raise ValueError("Tensor basis needs at least one component")
        for c in components:
            if not isinstance(c, BSplineBasis):
                raise TypeError(
                    f"Tensor basis components must be BSplineBasis, got {type(c)}"
                )
        self._components = components

    @classmethod
    def uniform(
        cls,
        num_elements: Sequence[int],
        degree: int | Sequence[int],
    ) -> TensorBSplineBasis:
        """Uniform open bases on [0, 1]^d.

        Args:
            num_elements (Sequence[int]): elements per direction.
            degree (int | Sequence[int]): degree, shared or per direction.

        Raises:
            ValueError: if per-direction degrees do not match num_elements.
        """
        if isinstance(degree, int):
            degree = [degree] * len(num_elements)
        if len(degree) != len(num_elements):
            raise ValueError(
                f"Got {len(num_elements)} element counts but {len(degree)} degrees"
            )
        return cls([
            BSplineBasis.uniform(n, p) for n, p in zip(num_elements, degree)
        ])

    @property
    def dim(self) -> int:
        """Number of parametric directions."""
        return len(self._components)

    def component(self, direction: int) -> BSplineBasis:
        """Univariate basis in the given direction."""
        return self._components[direction]

    def size_cwise(self) -> list[int]:
        """Number of functions per direction."""
        return [c.size() for c in self._components]

    def size(self) -> int:
        """Total number of basis functions."""
        return math.prod(self.size_cwise())

    def __repr__(self) -> str:
        return f"TensorBSplineBasis(dim={self.dim}, sizes={self.size_cwise()})"
