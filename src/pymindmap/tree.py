"""
Tree store for mind map nodes and edges.

This module provides:
- Node, Edge and NodeStyle records
- TreeStore, the single owner of the node/edge set, with all-or-nothing
  mutation primitives (add child, delete subtree, toggle collapse, restyle)
  and read queries (children, descendants, parent)
- tree_fault(), the shared check for the rooted-tree invariant

The store knows nothing about layout. Positions are stored here but only
written through set_positions() by whoever ran the layout engine.
"""

from __future__ import annotations

from typing import Iterable, Mapping, Optional, Union
import logging

from .errors import InvalidParent, LayoutError, NodeNotFound, RootDeletionForbidden
from .geom import Point, Side


logger = logging.getLogger(__name__)

ROOT_ID = 'root'
ROOT_LABEL = 'Central Topic'
DEFAULT_LABEL = 'New Topic'
NODE_TYPE = 'mindmap'
DEFAULT_ANCHOR = (250.0, 200.0)


class NodeStyle:
    """
    Visual style of a node.

    Opaque to layout. Unset fields fall back to the defaults below.
    """

    FIELDS = ('background_color', 'text_color', 'font_size')

    def __init__(
        self,
        background_color: Optional[str] = '#fff',
        text_color: Optional[str] = '#333',
        font_size: Optional[Union[int, float, str]] = 14
    ):
        self.background_color = background_color
        self.text_color = text_color
        self.font_size = font_size

    def merged(self, **changes) -> NodeStyle:
        """
        Return a copy with some fields replaced.

        Raises:
            ValueError: If a field name is not a style field
        """
        unknown = set(changes) - set(self.FIELDS)
        if unknown:
            raise ValueError(f"Unknown style field(s): {', '.join(sorted(unknown))}")
        values = self.as_dict()
        values.update(changes)
        return NodeStyle(**values)

    def copy(self) -> NodeStyle:
        return NodeStyle(**self.as_dict())

    def as_dict(self) -> dict:
        return {name: getattr(self, name) for name in self.FIELDS}

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, NodeStyle):
            return NotImplemented
        return self.as_dict() == other.as_dict()

    def __repr__(self) -> str:
        fields = ', '.join(f"{k}={v!r}" for k, v in self.as_dict().items())
        return f"NodeStyle({fields})"


class Node:
    """
    Mind map node.

    Attributes:
        id: Unique, stable identifier
        label: Display text
        position: Centre position, written by the layout engine
        collapsed: Whether this node's descendants are hidden
        style: Visual style
        hidden: Whether some ancestor is collapsed
        node_type: Renderer type tag
        source_side: Side where outgoing edges leave, set by layout
        target_side: Side where the incoming edge attaches, set by layout
    """

    def __init__(
        self,
        id: str,
        label: str = DEFAULT_LABEL,
        position: Optional[Point] = None,
        collapsed: bool = False,
        style: Optional[NodeStyle] = None,
        hidden: bool = False,
        node_type: str = NODE_TYPE
    ):
        self.id = id
        self.label = label
        self.position = position.copy() if position is not None else Point()
        self.collapsed = collapsed
        self.style = style.copy() if style is not None else NodeStyle()
        self.hidden = hidden
        self.node_type = node_type
        self.source_side: Optional[Side] = None
        self.target_side: Optional[Side] = None

    def copy(self) -> Node:
        node = Node(
            self.id,
            self.label,
            self.position,
            self.collapsed,
            self.style,
            self.hidden,
            self.node_type
        )
        node.source_side = self.source_side
        node.target_side = self.target_side
        return node

    def __repr__(self) -> str:
        return f"Node({self.id!r}, label={self.label!r}, position={self.position!r})"


class Edge:
    """Edge from a parent node (source) to a child node (target)."""

    def __init__(self, source: str, target: str, id: Optional[str] = None):
        self.id = id if id is not None else edge_id(source, target)
        self.source = source
        self.target = target

    def copy(self) -> Edge:
        return Edge(self.source, self.target, self.id)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Edge):
            return NotImplemented
        return (self.id, self.source, self.target) == (other.id, other.source, other.target)

    def __repr__(self) -> str:
        return f"Edge({self.source!r}, {self.target!r}, id={self.id!r})"


def edge_id(source: str, target: str) -> str:
    """Default id of the edge from source to target."""
    return f"edge_{source}-{target}"


def tree_fault(node_ids: Iterable[str], edges: Iterable[Edge]) -> Optional[str]:
    """
    Check that nodes and edges form a tree rooted at ROOT_ID.

    Args:
        node_ids: Ids of all nodes
        edges: All edges

    Returns:
        Description of the first violation found, or None for a valid tree
    """
    ids: set[str] = set()
    for node_id in node_ids:
        if node_id in ids:
            return f"Duplicate node id {node_id!r}"
        ids.add(node_id)

    if ROOT_ID not in ids:
        return f"No {ROOT_ID!r} node"

    children: dict[str, list[str]] = {}
    parent: dict[str, str] = {}
    for e in edges:
        if e.source not in ids:
            return f"Edge {e.id!r} starts at unknown node {e.source!r}"
        if e.target not in ids:
            return f"Edge {e.id!r} ends at unknown node {e.target!r}"
        if e.target == ROOT_ID:
            return f"Edge {e.id!r} points into the root"
        if e.target in parent:
            return f"Node {e.target!r} has more than one parent"
        parent[e.target] = e.source
        children.setdefault(e.source, []).append(e.target)

    seen = {ROOT_ID}
    stack = [ROOT_ID]
    while stack:
        for child in children.get(stack.pop(), ()):
            seen.add(child)
            stack.append(child)

    unreachable = ids - seen
    if unreachable:
        return f"Nodes not reachable from the root: {', '.join(sorted(unreachable))}"
    return None


class TreeStore:
    """
    Authoritative node and edge set of one mind map.

    A fresh store holds only the root. Every mutation validates before it
    touches state, so a raised MindMapError leaves the store unchanged.
    """

    def __init__(
        self,
        root_label: str = ROOT_LABEL,
        anchor: Union[Point, tuple[float, float]] = DEFAULT_ANCHOR
    ):
        """
        Initialize store with a lone root.

        Args:
            root_label: Label of the root node
            anchor: Initial root position
        """
        self._nodes: dict[str, Node] = {}
        self._edges: list[Edge] = []
        self._children: dict[str, list[str]] = {}
        self._parent: dict[str, str] = {}
        self._load([Node(ROOT_ID, root_label, Point.of(anchor))], [])

    @classmethod
    def from_parts(cls, nodes: Iterable[Node], edges: Iterable[Edge]) -> TreeStore:
        """
        Build a store from existing nodes and edges.

        Raises:
            LayoutError: If the parts do not form a tree rooted at ROOT_ID
        """
        nodes = [n.copy() for n in nodes]
        edges = [e.copy() for e in edges]
        fault = tree_fault((n.id for n in nodes), edges)
        if fault is not None:
            raise LayoutError(fault)
        store = cls()
        store._load(nodes, edges)
        return store

    def _load(self, nodes: list[Node], edges: list[Edge]) -> None:
        self._nodes = {n.id: n for n in nodes}
        self._edges = list(edges)
        self._children = {n.id: [] for n in nodes}
        self._parent = {}
        for e in self._edges:
            self._children[e.source].append(e.target)
            self._parent[e.target] = e.source

    # Queries

    def __contains__(self, node_id: str) -> bool:
        return node_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def _require(self, node_id: str) -> Node:
        node = self._nodes.get(node_id)
        if node is None:
            raise NodeNotFound(node_id)
        return node

    def node(self, node_id: str) -> Node:
        """Get a copy of one node."""
        return self._require(node_id).copy()

    def nodes(self) -> list[Node]:
        """Snapshot of all nodes in creation order."""
        return [n.copy() for n in self._nodes.values()]

    def edges(self) -> list[Edge]:
        """Snapshot of all edges in insertion order."""
        return [e.copy() for e in self._edges]

    @property
    def root_position(self) -> Point:
        return self._nodes[ROOT_ID].position.copy()

    def get_children(self, node_id: str) -> list[str]:
        """Get the direct children of a node in edge insertion order."""
        self._require(node_id)
        return list(self._children[node_id])

    def _walk(self, node_id: str) -> list[str]:
        order = []
        stack = list(reversed(self._children[node_id]))
        while stack:
            current = stack.pop()
            order.append(current)
            stack.extend(reversed(self._children[current]))
        return order

    def get_descendants(self, node_id: str) -> set[str]:
        """Get every transitive child of a node, excluding the node itself."""
        self._require(node_id)
        return set(self._walk(node_id))

    def parent_of(self, node_id: str) -> Optional[str]:
        """Get the parent id of a node, or None for the root."""
        self._require(node_id)
        return self._parent.get(node_id)

    def check_invariant(self) -> None:
        """
        Verify the rooted-tree invariant.

        Raises:
            LayoutError: If the invariant does not hold
        """
        fault = tree_fault(self._nodes, self._edges)
        if fault is not None:
            raise LayoutError(fault)

    # Mutations

    def _next_id(self) -> str:
        k = len(self._nodes) + 1
        while f"node_{k}" in self._nodes:
            k += 1
        return f"node_{k}"

    def add_child(self, parent_id: str, label: str = DEFAULT_LABEL) -> str:
        """
        Attach a new node under an existing, expanded parent.

        Args:
            parent_id: Id of the parent node
            label: Label of the new node

        Returns:
            Id of the new node

        Raises:
            InvalidParent: If the parent is missing or collapsed
        """
        parent = self._nodes.get(parent_id)
        if parent is None:
            raise InvalidParent(f"Cannot add a child: node {parent_id!r} does not exist")
        if parent.collapsed:
            raise InvalidParent(f"Cannot add a child: node {parent_id!r} is collapsed")

        node_id = self._next_id()
        # Placeholder position until the next layout pass
        self._nodes[node_id] = Node(node_id, label, Point(0.0, 0.0), hidden=parent.hidden)
        self._children[node_id] = []
        self._edges.append(Edge(parent_id, node_id))
        self._children[parent_id].append(node_id)
        self._parent[node_id] = parent_id
        logger.debug("Added %s under %s", node_id, parent_id)
        return node_id

    def delete_subtree(self, node_id: str) -> set[str]:
        """
        Remove a node, all of its descendants and every edge touching them.

        Returns:
            Ids of all removed nodes

        Raises:
            RootDeletionForbidden: If node_id is the root
            NodeNotFound: If the node does not exist
        """
        if node_id == ROOT_ID:
            raise RootDeletionForbidden()
        self._require(node_id)

        removed = {node_id}
        removed.update(self._walk(node_id))

        self._edges = [
            e for e in self._edges
            if e.source not in removed and e.target not in removed
        ]
        self._children[self._parent[node_id]].remove(node_id)
        for rid in removed:
            del self._nodes[rid]
            del self._children[rid]
            del self._parent[rid]
        logger.debug("Deleted subtree of %s (%d nodes)", node_id, len(removed))
        return removed

    def toggle_collapse(self, node_id: str) -> bool:
        """
        Flip a node's collapsed flag and hide or reveal its descendants.

        Every descendant's hidden flag is set to the new collapsed state.

        Returns:
            The new collapsed state

        Raises:
            NodeNotFound: If the node does not exist
        """
        node = self._require(node_id)
        node.collapsed = not node.collapsed
        for descendant in self._walk(node_id):
            self._nodes[descendant].hidden = node.collapsed
        return node.collapsed

    def update_style(self, node_id: str, **style) -> NodeStyle:
        """
        Merge style fields into a node's style.

        Returns:
            The node's new style

        Raises:
            NodeNotFound: If the node does not exist
            ValueError: If a field name is not a style field
        """
        node = self._require(node_id)
        node.style = node.style.merged(**style)
        return node.style.copy()

    def set_label(self, node_id: str, label: str) -> None:
        """Rename a node."""
        self._require(node_id).label = label

    def set_positions(
        self,
        positions: Mapping[str, Point],
        source_side: Optional[Side] = None,
        target_side: Optional[Side] = None
    ) -> None:
        """
        Commit a full position assignment.

        Raises:
            LayoutError: If positions does not cover exactly the stored nodes
        """
        if set(positions) != set(self._nodes):
            raise LayoutError("Position assignment does not match the node set")
        for node_id, p in positions.items():
            node = self._nodes[node_id]
            node.position = p.copy()
            node.source_side = source_side
            node.target_side = target_side
