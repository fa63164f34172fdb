""" Core modules """

from .basis import BSplineBasis, KnotVector, TensorBSplineBasis
from .iga import (
    AssemblerOptions,
    BoundaryConditions,
    BoxSide,
    ConditionType,
    DirichletStrategy,
    default_options,
)
from .preconditioners import FastDiagonalizationOp, SinglePatchPreconditioners
from .solvers import (
    CompositionOfPreconditioners,
    ContractViolation,
    LinearOperator,
    PreconditionerFromOp,
    PreconditionerOp,
    cg_solve,
)
from .utils import logger, setup_logging

__all__ = [
    "AssemblerOptions",
    "BSplineBasis",
    "BoundaryConditions",
    "BoxSide",
    "CompositionOfPreconditioners",
    "ConditionType",
    "ContractViolation",
    "DirichletStrategy",
    "FastDiagonalizationOp",
    "KnotVector",
    "LinearOperator",
    "PreconditionerFromOp",
    "PreconditionerOp",
    "SinglePatchPreconditioners",
    "TensorBSplineBasis",
    "cg_solve",
    "default_options",
    "logger",
    "setup_logging",
]
