"""
PyMindMap: Editable mind map trees with automatic layout

Tree store, rank-based collision-avoiding layout engine, edit controller
and JSON document adapter.
"""

__version__ = "0.1.0"

from .errors import (
    MindMapError, InvalidParent, RootDeletionForbidden, NodeNotFound,
    MalformedDocument, LayoutError
)
from .geom import Point, Side, Direction
from .tree import ROOT_ID, Node, Edge, NodeStyle, TreeStore
from .layout import TreeLayout, LayoutResult, LayoutWarning, layout
from .schema import MindMapDocument, normalize_node
from .document import export_document, import_document, dumps, loads
from .controller import EditController, EventType, RefocusScheduler

__all__ = [
    'MindMapError', 'InvalidParent', 'RootDeletionForbidden', 'NodeNotFound',
    'MalformedDocument', 'LayoutError',
    'Point', 'Side', 'Direction',
    'ROOT_ID', 'Node', 'Edge', 'NodeStyle', 'TreeStore',
    'TreeLayout', 'LayoutResult', 'LayoutWarning', 'layout',
    'MindMapDocument', 'normalize_node',
    'export_document', 'import_document', 'dumps', 'loads',
    'EditController', 'EventType', 'RefocusScheduler',
]
