"""
Rank-based tree layout engine.

This module implements the placement algorithm for mind maps:
- The root stays at its anchor; each level of the tree is one rank,
  LEVEL_SPACING further along the flow axis than its parent
- The children of a node are stacked NODE_SPACING apart, centred on the parent
- Before a block of children is committed, it is checked against every slot
  already placed at its rank; on collision it moves just above the topmost
  or just below the bottommost slot, whichever is closer
- A parent whose children had to move far is moved along with them, unless
  its new spot would crowd another node at its own rank

The engine is a pure function of (nodes, edges, anchor, direction). Each run
builds a fresh working context and never touches its input.
"""

from __future__ import annotations

from typing import Iterable, Optional, Sequence, Union
import logging
import warnings
import numpy as np

from .errors import LayoutError
from .geom import Direction, Point, Side, spans_collide
from .rankindex import RankIndex
from .tree import DEFAULT_ANCHOR, ROOT_ID, Edge, Node, tree_fault


logger = logging.getLogger(__name__)

LEVEL_SPACING = 400.0
NODE_SPACING = 150.0
RANK_TOLERANCE = 10.0

# Displacement, in node spacings, beyond which a collision fallback warns
CROWDED_RANK_SPACINGS = 10


class LayoutWarning(UserWarning):
    """Warning about a layout that had to push a block far from its parent."""
    pass


class LayoutResult:
    """
    Output of one layout run.

    Attributes:
        ids: Node ids in input order
        result: Position matrix (2 x n), rows are x and y
        direction: Flow direction the layout ran in
        edges: Input edges, passed through unchanged
    """

    def __init__(
        self,
        ids: list[str],
        result: np.ndarray,
        direction: Direction,
        edges: list[Edge]
    ):
        self.ids = ids
        self.result = result
        self.direction = direction
        self.edges = edges
        self._index = {node_id: i for i, node_id in enumerate(ids)}

    @property
    def source_side(self) -> Side:
        return self.direction.source_side

    @property
    def target_side(self) -> Side:
        return self.direction.target_side

    @property
    def positions(self) -> dict[str, Point]:
        """Position of every node, keyed by id."""
        return {
            node_id: Point(self.result[0, i], self.result[1, i])
            for i, node_id in enumerate(self.ids)
        }

    def position(self, node_id: str) -> Point:
        i = self._index[node_id]
        return Point(self.result[0, i], self.result[1, i])

    def as_array(self, order: Optional[Sequence[str]] = None) -> np.ndarray:
        """
        Get positions as an (n, 2) array.

        Args:
            order: Node ids giving the row order (default: input order)
        """
        if order is None:
            return self.result.T.copy()
        return np.array([self.result[:, self._index[node_id]] for node_id in order])

    def apply(self, nodes: Iterable[Node]) -> list[Node]:
        """Return copies of nodes carrying their new positions and edge sides."""
        placed = []
        for node in nodes:
            node = node.copy()
            node.position = self.position(node.id)
            node.source_side = self.source_side
            node.target_side = self.target_side
            placed.append(node)
        return placed


class TreeLayout:
    """
    Configurable tree layout.

    Spacing and direction are read and written through fluent accessors:
    calling one without an argument returns the current value, calling it
    with a value sets it and returns self.
    """

    def __init__(self):
        """Initialize layout with default parameters."""
        self._levelSpacing: float = LEVEL_SPACING
        self._nodeSpacing: float = NODE_SPACING
        self._rankTolerance: float = RANK_TOLERANCE
        self._direction: Direction = Direction.LR

    def level_spacing(self, x: Optional[float] = None) -> Union[float, TreeLayout]:
        """
        Get or set the distance between consecutive ranks.

        Args:
            x: Optional value to set

        Returns:
            Current value if x is None, otherwise self for chaining
        """
        if x is None:
            return self._levelSpacing
        self._levelSpacing = float(x)
        return self

    def node_spacing(self, x: Optional[float] = None) -> Union[float, TreeLayout]:
        """
        Get or set the distance between stacked siblings.

        This is also the clearance kept between blocks at the same rank.
        """
        if x is None:
            return self._nodeSpacing
        self._nodeSpacing = float(x)
        return self

    def rank_tolerance(self, x: Optional[float] = None) -> Union[float, TreeLayout]:
        """Get or set how close two rank coordinates must be to count as one rank."""
        if x is None:
            return self._rankTolerance
        self._rankTolerance = float(x)
        return self

    def direction(self, d: Optional[Union[Direction, str]] = None) -> Union[Direction, TreeLayout]:
        """Get or set the flow direction ('LR' or 'TB')."""
        if d is None:
            return self._direction
        self._direction = Direction(d)
        return self

    def group_height(self, n_children: int) -> float:
        """Span a node reserves for itself and its direct children."""
        return max(1, n_children) * self._nodeSpacing

    def find_safe_centre(
        self,
        index: RankIndex,
        rank: float,
        preferred: float,
        height: float
    ) -> float:
        """
        Find where a block of the given height can sit at a rank.

        Args:
            index: Slots placed so far
            rank: Rank coordinate of the block
            preferred: Centre the block would like to have
            height: Extent of the block

        Returns:
            The preferred centre if it is clear, otherwise the closer of the
            spots just above the topmost and just below the bottommost slot
            (ties go to the top)
        """
        centres, lows, highs = index.bounds_at(rank)
        if len(centres) == 0:
            return preferred

        gap = self._nodeSpacing
        if not any(
            spans_collide(preferred, height, c, h, gap)
            for c, h in zip(centres, highs - lows)
        ):
            return preferred

        top = float(lows.min()) - height / 2 - gap
        bottom = float(highs.max()) + height / 2 + gap
        best = bottom if abs(bottom - preferred) < abs(top - preferred) else top

        logger.debug(
            "Block at rank %s moved from %s to %s (top=%s, bottom=%s)",
            rank, preferred, best, top, bottom
        )
        if abs(best - preferred) > CROWDED_RANK_SPACINGS * gap:
            warnings.warn(
                f"Rank {rank} is crowded: block moved {abs(best - preferred)} "
                f"away from its parent",
                LayoutWarning,
                stacklevel=3
            )
        return best

    def fits(
        self,
        index: RankIndex,
        rank: float,
        centre: float,
        height: float,
        exclude: Optional[str] = None
    ) -> bool:
        """
        Test whether a span keeps at least one spacing from every slot at a rank.

        This is the clearance the fallback positions of find_safe_centre()
        themselves keep, so a span sitting exactly one spacing away fits.

        Args:
            index: Slots placed so far
            rank: Rank coordinate of the span
            centre: Centre of the span
            height: Extent of the span
            exclude: Node whose own slot is ignored
        """
        _, lows, highs = index.bounds_at(rank, exclude)
        gap = self._nodeSpacing
        lo, hi = centre - height / 2, centre + height / 2
        return bool(np.all((highs + gap <= lo) | (lows - gap >= hi)))

    def run(
        self,
        nodes: Sequence[Node],
        edges: Sequence[Edge],
        anchor: Optional[Union[Point, tuple[float, float]]] = None
    ) -> LayoutResult:
        """
        Lay out a tree.

        Args:
            nodes: All nodes, including the root
            edges: Parent-to-child edges forming a tree rooted at ROOT_ID
            anchor: Root position (default: DEFAULT_ANCHOR)

        Returns:
            Position of every node and the edge attachment sides

        Raises:
            LayoutError: If nodes and edges do not form a valid tree
        """
        ids = [n.id for n in nodes]
        edges = list(edges)
        fault = tree_fault(ids, edges)
        if fault is not None:
            raise LayoutError(fault)

        children: dict[str, list[str]] = {node_id: [] for node_id in ids}
        for e in edges:
            children[e.source].append(e.target)
        index = {node_id: i for i, node_id in enumerate(ids)}

        root = Point.of(anchor if anchor is not None else DEFAULT_ANCHOR)
        root_rank, root_stack = self._direction.to_flow(root)

        # Working positions in flow coordinates: row 0 is rank, row 1 is stack
        flow = np.zeros((2, len(ids)))
        flow[:, index[ROOT_ID]] = (root_rank, root_stack)
        slots = RankIndex(self._rankTolerance)
        gap = self._nodeSpacing

        stack = [ROOT_ID]
        while stack:
            node_id = stack.pop()
            kids = children[node_id]
            if not kids:
                continue

            i = index[node_id]
            own_rank, own_stack = flow[0, i], flow[1, i]
            rank = own_rank + self._levelSpacing
            height = self.group_height(len(kids))
            centre = self.find_safe_centre(slots, rank, own_stack, height)

            if node_id != ROOT_ID and abs(centre - own_stack) > gap:
                if self.fits(slots, own_rank, centre, height, exclude=node_id):
                    flow[1, i] = centre
                    slots.move(node_id, centre)
                    logger.debug("Moved %s to %s to follow its children", node_id, centre)
                else:
                    logger.debug("Kept %s at %s, %s is taken at its rank", node_id, own_stack, centre)

            start = centre - (len(kids) - 1) * gap / 2
            for k, kid in enumerate(kids):
                c = start + k * gap
                flow[:, index[kid]] = (rank, c)
                slots.insert(kid, rank, c, self.group_height(len(children[kid])))

            stack.extend(reversed(kids))

        if self._direction is Direction.LR:
            result = flow
        else:
            result = flow[::-1].copy()

        return LayoutResult(ids, result, self._direction, edges)


def layout(
    nodes: Sequence[Node],
    edges: Sequence[Edge],
    anchor: Optional[Union[Point, tuple[float, float]]] = None,
    direction: Union[Direction, str] = Direction.LR
) -> LayoutResult:
    """
    Lay out a tree with the default spacing.

    Args:
        nodes: All nodes, including the root
        edges: Parent-to-child edges
        anchor: Root position (default: DEFAULT_ANCHOR)
        direction: 'LR' (left to right) or 'TB' (top to bottom)

    Returns:
        Position of every node and the edge attachment sides
    """
    return TreeLayout().direction(direction).run(nodes, edges, anchor)
