"""Multiplicative composition of preconditioners.

If the members have the iteration matrices I - P_i A, the composition has
the iteration matrix

    (I - P_n A) ⋯ (I - P_1 A)

i.e. step runs the members' steps one after the other on the same
right-hand side and the progressively updated iterate. step_t visits the
members in reverse order, since (B C)^T = C^T B^T.

This should not be confused with the operator product P_n ⋯ P_1, whose
iteration matrix would be I - P_n ⋯ P_1 A.
"""

from __future__ import annotations

from typing import Iterable

from torch import Tensor

from .linear_operator import LinearOperator
from .preconditioner import ContractViolation, PreconditionerOp


class CompositionOfPreconditioners(PreconditionerOp):
    """Sequential (multiplicative) composition of preconditioners.

    The composition holds references to its members; the same
    preconditioner may take part in several compositions. All members are
    expected to approximate the inverse of the same operator A, so sizes
    and the underlying operator are taken from the first member.

    add_operator is the only mutation and must not run concurrently with
    step/step_t on the same composition.

    Args:
        *ops (PreconditionerOp): members in forward order. May be empty,
            in which case members are added with add_operator.

    Raises:
        TypeError: if a member is not a PreconditionerOp.
    """

    def __init__(self, *ops: PreconditionerOp):
        self._ops: list[PreconditionerOp] = []
        for op in ops:
            self.add_operator(op)

    @classmethod
    def from_operators(cls, ops: Iterable[PreconditionerOp]) -> CompositionOfPreconditioners:
        """Build a composition from an ordered collection."""
        return cls(*ops)

    def add_operator(self, op: PreconditionerOp) -> None:
        """Append a member at the end."""
        if not isinstance(op, PreconditionerOp):
            raise TypeError(
                f"Composition members must be PreconditionerOp, got {type(op)}"
            )
        self._ops.append(op)

    @property
    def size(self) -> int:
        """Number of members."""
        return len(self._ops)

    @property
    def operators(self) -> tuple[PreconditionerOp, ...]:
        return tuple(self._ops)

    def __len__(self) -> int:
        return len(self._ops)

    def step(self, f: Tensor, x: Tensor) -> None:
        for op in self._ops:
            op.step(f, x)

    def step_t(self, f: Tensor, x: Tensor) -> None:
        for op in reversed(self._ops):
            op.step_t(f, x)

    def _first(self, what: str) -> PreconditionerOp:
        if not self._ops:
            raise ContractViolation(
                f"CompositionOfPreconditioners.{what} does not work for 0 operators."
            )
        return self._ops[0]

    def underlying_op(self) -> LinearOperator:
        return self._first("underlying_op").underlying_op()

    def rows(self) -> int:
        return self._first("rows").rows()

    def cols(self) -> int:
        return self._first("cols").cols()

    def __repr__(self) -> str:
        members = ", ".join(type(op).__name__ for op in self._ops)
        return f"CompositionOfPreconditioners([{members}])"
