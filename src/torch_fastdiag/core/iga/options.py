"""Assembler options.

The option record is a plain dataclass. `default_options()` builds a fresh
record on every call so callers never share mutable defaults.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any


class DirichletStrategy(IntEnum):
    """How essential boundary conditions enter the discrete system."""

    ELIMINATION = 11
    NITSCHE = 12
    PENALTY = 13


@dataclass
class AssemblerOptions:
    """Options consumed by the single-patch assembly.

    Attributes:
        dirichlet_strategy (DirichletStrategy): treatment of Dirichlet sides.
        quad_a (int): Gauss points per element are quad_a * degree + quad_b.
        quad_b (int): see quad_a.
        penalty (float): Nitsche/penalty parameter. The boundary term is
            scaled by penalty * (p+1)^2 / h with h the boundary element size.
        extra (dict): further assembler options, stored but not validated.
    """

    dirichlet_strategy: DirichletStrategy = DirichletStrategy.ELIMINATION
    quad_a: int = 1
    quad_b: int = 1
    penalty: float = 2.0
    extra: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self.dirichlet_strategy = DirichletStrategy(self.dirichlet_strategy)
        if self.quad_a < 0 or self.quad_b < 0 or self.quad_a + self.quad_b == 0:
            raise ValueError(
                f"Invalid quadrature setting quad_a={self.quad_a}, quad_b={self.quad_b}"
            )
        if self.penalty <= 0:
            raise ValueError(f"penalty must be > 0, got {self.penalty}")

    def num_quad_points(self, degree: int) -> int:
        """Gauss points per element for a basis of the given degree."""
        return max(1, self.quad_a * degree + self.quad_b)

    def with_strategy(self, strategy: DirichletStrategy) -> AssemblerOptions:
        """Copy of these options with another Dirichlet strategy."""
        return dataclasses.replace(
            self,
            dirichlet_strategy=DirichletStrategy(strategy),
            extra=dict(self.extra),
        )

    def copy(self) -> AssemblerOptions:
        return dataclasses.replace(self, extra=dict(self.extra))


def default_options() -> AssemblerOptions:
    """Fresh default option record (Dirichlet elimination)."""
    return AssemblerOptions()
