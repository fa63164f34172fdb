"""Boundary condition bookkeeping for a single parametric box.

Sides are numbered as

    WEST  (u_0 = 0), EAST  (u_0 = 1),
    SOUTH (u_1 = 0), NORTH (u_1 = 1),
    FRONT (u_2 = 0), BACK  (u_2 = 1),

so side s lies in direction (s - 1) // 2 at the lower end if s is odd.
Condition values are opaque to this package; only the condition type is
used when assembling.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Any, Callable, Iterator, Optional


class BoxSide(IntEnum):
    WEST = 1
    EAST = 2
    SOUTH = 3
    NORTH = 4
    FRONT = 5
    BACK = 6

    @property
    def direction(self) -> int:
        """Parametric direction orthogonal to this side."""
        return (self.value - 1) // 2

    @property
    def parameter(self) -> int:
        """0 for the lower end of the direction, 1 for the upper end."""
        return (self.value - 1) % 2

    @classmethod
    def first(cls, direction: int) -> BoxSide:
        """Side at the lower end of `direction`."""
        return cls(2 * direction + 1)

    @classmethod
    def last(cls, direction: int) -> BoxSide:
        """Side at the upper end of `direction`."""
        return cls(2 * direction + 2)


class ConditionType(Enum):
    DIRICHLET = "dirichlet"
    NEUMANN = "neumann"


@dataclass(frozen=True)
class BoundaryCondition:
    """Condition of a given type on one side, with an optional value."""

    side: BoxSide
    ctype: ConditionType
    function: Optional[Callable[..., Any]] = None


class BoundaryConditions:
    """Collection of boundary conditions, at most one per side.

    Sides without an entry carry the natural (homogeneous Neumann)
    condition.
    """

    def __init__(self):
        self._conditions: dict[BoxSide, BoundaryCondition] = {}

    @classmethod
    def dirichlet_on(cls, *sides: BoxSide) -> BoundaryConditions:
        """Homogeneous Dirichlet conditions on the given sides."""
        bc = cls()
        for side in sides:
            bc.add_condition(side, ConditionType.DIRICHLET)
        return bc

    def add_condition(
        self,
        side: BoxSide | int,
        ctype: ConditionType,
        function: Optional[Callable[..., Any]] = None,
    ) -> None:
        """Set the condition on `side`, replacing any previous one."""
        side = BoxSide(side)
        self._conditions[side] = BoundaryCondition(side, ConditionType(ctype), function)

    def condition(self, side: BoxSide | int) -> Optional[BoundaryCondition]:
        """Condition on `side`, or None if none was set."""
        return self._conditions.get(BoxSide(side))

    def is_dirichlet(self, side: BoxSide | int) -> bool:
        cond = self.condition(side)
        return cond is not None and cond.ctype is ConditionType.DIRICHLET

    def dirichlet_sides(self) -> list[BoxSide]:
        return sorted(
            s for s, c in self._conditions.items()
            if c.ctype is ConditionType.DIRICHLET
        )

    def __iter__(self) -> Iterator[BoundaryCondition]:
        return iter(self._conditions[s] for s in sorted(self._conditions))

    def __len__(self) -> int:
        return len(self._conditions)

    def __repr__(self) -> str:
        items = ", ".join(f"{c.side.name}={c.ctype.value}" for c in self)
        return f"BoundaryConditions({items})"
