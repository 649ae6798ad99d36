"""
Error taxonomy for mind map editing.

Every failure a user can trigger (adding under a missing or collapsed node,
deleting the root, touching an unknown node, loading a broken document) is a
MindMapError. Operations that raise one leave the tree exactly as it was.

LayoutError is different: it means a structurally invalid tree reached the
layout engine, which only happens through a programming mistake.
"""


class MindMapError(Exception):
    """Recoverable, user-facing failure with a readable message."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidParent(MindMapError):
    """Add-child target is missing or collapsed."""


class RootDeletionForbidden(MindMapError):
    """The root node can never be deleted."""

    def __init__(self, message: str = "The root node cannot be deleted"):
        super().__init__(message)


class NodeNotFound(MindMapError):
    """Operation target does not exist."""

    def __init__(self, node_id: str):
        super().__init__(f"Node {node_id!r} does not exist")
        self.node_id = node_id


class MalformedDocument(MindMapError):
    """Imported document cannot be parsed or does not describe a tree."""


class LayoutError(RuntimeError):
    """Tree handed to the layout engine violates the tree invariant."""
