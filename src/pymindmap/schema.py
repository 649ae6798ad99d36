"""
Pydantic models of the JSON document.

Python field names are snake_case; the document's camelCase keys are
aliases. Models are strict: a label has to be a string and a collapse flag
a boolean, nothing is coerced into one.
"""

from typing import Any, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, model_validator

from .tree import NODE_TYPE, NodeStyle


# Document style keys and the NodeStyle fields they map to
STYLE_KEYS = {
    'backgroundColor': 'background_color',
    'textColor': 'text_color',
    'fontSize': 'font_size',
}

DEFAULT_STYLE = {key: getattr(NodeStyle(), field) for key, field in STYLE_KEYS.items()}


def normalize_node(raw: dict) -> dict:
    """
    Fill in the fields a renderer needs on an imported node.

    The type tag is forced to NODE_TYPE and missing style fields take their
    defaults; style fields present in the document win. Anything that is not
    shaped like a node is passed through for validation to reject.
    """
    normalized = dict(raw)
    normalized['type'] = NODE_TYPE
    data = raw.get('data')
    if isinstance(data, dict):
        style = data.get('style')
        if style is None or isinstance(style, dict):
            normalized['data'] = dict(data, style={**DEFAULT_STYLE, **(style or {})})
    return normalized


class DocumentModel(BaseModel):
    model_config = ConfigDict(strict=True, populate_by_name=True)


class StyleData(DocumentModel):
    background_color: str = Field(..., alias='backgroundColor')
    text_color: str = Field(..., alias='textColor')
    font_size: Union[int, float, str] = Field(..., alias='fontSize')


class NodeData(DocumentModel):
    label: str
    is_collapsed: bool = Field(default=False, alias='isCollapsed')
    style: StyleData


class DocumentPosition(DocumentModel):
    x: float
    y: float


class DocumentNode(DocumentModel):
    """One node: id, data and an optional (advisory) position."""
    id: str
    type: str = NODE_TYPE
    data: NodeData
    position: Optional[DocumentPosition] = None

    @model_validator(mode='before')
    @classmethod
    def _normalize(cls, raw: Any) -> Any:
        if isinstance(raw, dict):
            return normalize_node(raw)
        return raw


class DocumentEdge(DocumentModel):
    """Parent-to-child edge."""
    id: str
    source: str
    target: str


class MindMapDocument(DocumentModel):
    """The top-level document."""
    nodes: list[DocumentNode]
    edges: list[DocumentEdge]
