"""
Geometric primitives for tree layout.

This module provides the 2D point type, the flow directions the layout can
run in, the edge attachment sides that go with them, and the padded interval
test used for collision checks within a rank.
"""

from __future__ import annotations

from enum import Enum
from typing import Union


class Point:
    """2D point."""

    def __init__(self, x: float = 0.0, y: float = 0.0):
        self.x = float(x)
        self.y = float(y)

    @classmethod
    def of(cls, value: Union[Point, tuple[float, float], dict]) -> Point:
        """Build a point from a Point, an (x, y) pair or an {'x', 'y'} mapping."""
        if isinstance(value, Point):
            return cls(value.x, value.y)
        if isinstance(value, dict):
            return cls(value['x'], value['y'])
        x, y = value
        return cls(x, y)

    def copy(self) -> Point:
        return Point(self.x, self.y)

    def as_dict(self) -> dict:
        return {'x': self.x, 'y': self.y}

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Point):
            return NotImplemented
        return self.x == other.x and self.y == other.y

    def __hash__(self) -> int:
        return hash((self.x, self.y))

    def __iter__(self):
        yield self.x
        yield self.y

    def __repr__(self) -> str:
        return f"Point({self.x!r}, {self.y!r})"


class Side(str, Enum):
    """Side of a node box where an edge attaches."""
    left = 'left'
    right = 'right'
    top = 'top'
    bottom = 'bottom'


class Direction(str, Enum):
    """
    Flow direction of the layout.

    - LR: ranks advance along x, siblings stack along y
    - TB: ranks advance along y, siblings stack along x
    """
    LR = 'LR'
    TB = 'TB'

    @property
    def target_side(self) -> Side:
        """Side where a node's incoming edge attaches."""
        return Side.left if self is Direction.LR else Side.top

    @property
    def source_side(self) -> Side:
        """Side where a node's outgoing edges leave."""
        return Side.right if self is Direction.LR else Side.bottom

    def to_flow(self, p: Point) -> tuple[float, float]:
        """Split a point into (rank, stack) coordinates."""
        if self is Direction.LR:
            return p.x, p.y
        return p.y, p.x


def spans_collide(
    c1: float,
    h1: float,
    c2: float,
    h2: float,
    gap: float
) -> bool:
    """
    Test whether two centred spans are closer than the required gap.

    Args:
        c1, h1: Centre and extent of the first span
        c2, h2: Centre and extent of the second span
        gap: Clearance required between the spans

    Returns:
        True unless one span ends more than `gap` before the other begins
    """
    min1 = c1 - h1 / 2
    max1 = c1 + h1 / 2
    min2 = c2 - h2 / 2
    max2 = c2 + h2 / 2
    return not (max1 + gap < min2 or min1 > max2 + gap)
