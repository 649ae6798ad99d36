"""
JSON document import and export.

Document shape:

    {
      "nodes": [{"id": ..., "data": {"label": ..., "isCollapsed": ..., "style": {...}},
                 "position": {"x": ..., "y": ...}}, ...],
      "edges": [{"id": ..., "source": ..., "target": ...}, ...]
    }

Export writes the in-memory state as is. Import validates the document
against the pydantic models in schema.py, fills in default style fields,
derives hidden flags from collapsed ancestors and always lays the tree out
again: imported positions are stale, only the root's position is kept, as
the anchor.
"""

from __future__ import annotations

from typing import Any, Optional
import json
import logging

from pydantic import ValidationError

from .errors import MalformedDocument
from .geom import Point
from .layout import TreeLayout
from .schema import STYLE_KEYS, MindMapDocument
from .tree import DEFAULT_ANCHOR, ROOT_ID, Edge, Node, NodeStyle, TreeStore, tree_fault


logger = logging.getLogger(__name__)


def export_document(store: TreeStore) -> dict:
    """Convert a store to the document shape. Unset style fields are left out."""
    nodes = []
    for node in store.nodes():
        style = {
            key: getattr(node.style, field)
            for key, field in STYLE_KEYS.items()
            if getattr(node.style, field) is not None
        }
        nodes.append({
            'id': node.id,
            'data': {
                'label': node.label,
                'isCollapsed': node.collapsed,
                'style': style,
            },
            'position': node.position.as_dict(),
        })
    edges = [
        {'id': e.id, 'source': e.source, 'target': e.target}
        for e in store.edges()
    ]
    return {'nodes': nodes, 'edges': edges}


def dumps(store: TreeStore, indent: Optional[int] = 2) -> str:
    """Serialize a store to JSON text."""
    return json.dumps(export_document(store), indent=indent, ensure_ascii=False)


def _fail(message: str) -> MalformedDocument:
    logger.warning("Rejected document: %s", message)
    return MalformedDocument(message)


def _describe(exc: ValidationError) -> str:
    errors = exc.errors()
    first = errors[0]
    where = '.'.join(str(part) for part in first['loc'])
    message = f"{where}: {first['msg']}" if where else first['msg']
    if len(errors) > 1:
        message += f" (and {len(errors) - 1} more)"
    return f"Invalid document, {message}"


def import_document(doc: Any, engine: Optional[TreeLayout] = None) -> TreeStore:
    """
    Build a laid-out store from a parsed document.

    Args:
        doc: Parsed JSON document
        engine: Layout to run (default: TreeLayout())

    Returns:
        New store; the caller's current state is never touched

    Raises:
        MalformedDocument: If the document does not describe a valid tree
    """
    try:
        parsed = MindMapDocument.model_validate(doc)
    except ValidationError as exc:
        raise _fail(_describe(exc)) from exc

    nodes = [
        Node(
            n.id,
            n.data.label,
            collapsed=n.data.is_collapsed,
            style=NodeStyle(**n.data.style.model_dump()),
            node_type=n.type,
        )
        for n in parsed.nodes
    ]
    edges = [Edge(e.source, e.target, e.id) for e in parsed.edges]

    fault = tree_fault((n.id for n in nodes), edges)
    if fault is not None:
        raise _fail(fault)

    root = next(n for n in parsed.nodes if n.id == ROOT_ID)
    if root.position is not None:
        anchor = Point(root.position.x, root.position.y)
    else:
        anchor = Point.of(DEFAULT_ANCHOR)

    # Hidden iff some ancestor is collapsed
    by_id = {n.id: n for n in nodes}
    parent = {e.target: e.source for e in edges}
    for node in nodes:
        ancestor = parent.get(node.id)
        while ancestor is not None and not by_id[ancestor].collapsed:
            ancestor = parent.get(ancestor)
        node.hidden = ancestor is not None
    by_id[ROOT_ID].position = anchor

    store = TreeStore.from_parts(nodes, edges)
    engine = engine if engine is not None else TreeLayout()
    result = engine.run(store.nodes(), store.edges(), anchor)
    store.set_positions(result.positions, result.source_side, result.target_side)
    logger.info("Imported document with %d nodes", len(store))
    return store


def loads(text: str, engine: Optional[TreeLayout] = None) -> TreeStore:
    """
    Parse JSON text into a laid-out store.

    Args:
        text: JSON document
        engine: Layout to run; its direction and spacing apply

    Raises:
        MalformedDocument: If the text is not JSON or not a valid tree
    """
    try:
        doc = json.loads(text)
    except (TypeError, ValueError) as exc:
        raise _fail(f"Invalid JSON: {exc}") from exc
    return import_document(doc, engine)
