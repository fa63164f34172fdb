"""Linear operators, preconditioners and solvers.

This module provides:
- LinearOperator: abstract base class for matrix-free operators, with
  MatrixOp, IdentityOp, ScaledOp, SumOp, KroneckerOp and CholeskySolveOp.
- PreconditionerOp: operators with smoothing-step semantics.
- PreconditionerFromOp: smoother from an approximate inverse.
- CompositionOfPreconditioners: multiplicative composition of smoothers.
- RichardsonOp, JacobiOp, GaussSeidelOp: basic smoothers.
- cg_solve: Preconditioned Conjugate Gradient solver.
"""

from .cg import cg_solve
from .composition import CompositionOfPreconditioners
from .linear_operator import (
    CholeskySolveOp,
    IdentityOp,
    KroneckerOp,
    LinearOperator,
    MatrixOp,
    ScaledOp,
    SumOp,
    as_linear_operator,
)
from .preconditioner import ContractViolation, PreconditionerFromOp, PreconditionerOp
from .smoothers import GaussSeidelOp, JacobiOp, RichardsonOp

__all__ = [
    "CholeskySolveOp",
    "CompositionOfPreconditioners",
    "ContractViolation",
    "GaussSeidelOp",
    "IdentityOp",
    "JacobiOp",
    "KroneckerOp",
    "LinearOperator",
    "MatrixOp",
    "PreconditionerFromOp",
    "PreconditionerOp",
    "RichardsonOp",
    "ScaledOp",
    "SumOp",
    "as_linear_operator",
    "cg_solve",
]
