"""Isogeometric assembly collaborators for single-patch tensor bases.

Provides:
- Gauss-Legendre quadrature on elements (quadrature.py).
- Univariate mass/stiffness assembly and Dirichlet treatment (assembly.py).
- Boundary condition containers (boundary.py).
- Assembler options and the Dirichlet strategy enum (options.py).
"""

from .assembly import (
    apply_dirichlet_1d,
    assemble_1d,
    assemble_local_1d,
    assemble_mass_1d,
    assemble_stiffness_1d,
    boundary_values_1d,
)
from .boundary import BoundaryCondition, BoundaryConditions, BoxSide, ConditionType
from .options import AssemblerOptions, DirichletStrategy, default_options
from .quadrature import element_quadrature, gauss_legendre

__all__ = [
    "AssemblerOptions",
    "BoundaryCondition",
    "BoundaryConditions",
    "BoxSide",
    "ConditionType",
    "DirichletStrategy",
    "apply_dirichlet_1d",
    "assemble_1d",
    "assemble_local_1d",
    "assemble_mass_1d",
    "assemble_stiffness_1d",
    "boundary_values_1d",
    "default_options",
    "element_quadrature",
    "gauss_legendre",
]
