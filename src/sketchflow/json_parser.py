"""
JSON parser for flowchart input.

Accepts structured input for programmatic flowchart creation:

    {
        "nodes": [{"id": "a", "type": "rectangle", "label": "Start"}],
        "edges": [{"from": "a", "to": "b", "label": "next"}],
        "options": {"direction": "LR"}
    }
"""

import json
import logging
from typing import Any, Dict, List, Mapping, Optional

from .models import (
    UNSET,
    EdgeStyle,
    FlowchartGraph,
    GraphEdge,
    GraphNode,
    LayoutOptions,
    NodeStyle,
    NodeType,
    new_id,
)
from .parser import ParseError

logger = logging.getLogger(__name__)

_NODE_STYLE_KEYS = {
    "backgroundColor": "background_color",
    "strokeColor": "stroke_color",
    "strokeWidth": "stroke_width",
    "strokeStyle": "stroke_style",
    "fillStyle": "fill_style",
    "opacity": "opacity",
    "fontSize": "font_size",
    "fontFamily": "font_family",
    "roughness": "roughness",
}

_EDGE_STYLE_KEYS = {
    "strokeColor": "stroke_color",
    "strokeWidth": "stroke_width",
    "strokeStyle": "stroke_style",
    "roughness": "roughness",
}


def node_style_from_mapping(data: Optional[Mapping[str, Any]]) -> Optional[NodeStyle]:
    """Build a NodeStyle from document-style keys; None when nothing is set."""
    if not isinstance(data, Mapping):
        return None
    style = NodeStyle(
        **{attr: data[key] for key, attr in _NODE_STYLE_KEYS.items() if key in data}
    )
    return None if style.is_empty() else style


def edge_style_from_mapping(data: Optional[Mapping[str, Any]]) -> Optional[EdgeStyle]:
    """
    Build an EdgeStyle from document-style keys.

    An arrowhead key that is present with a null value is kept as None (no
    arrowhead); a missing key stays UNSET.
    """
    if not isinstance(data, Mapping):
        return None
    style = EdgeStyle(
        **{attr: data[key] for key, attr in _EDGE_STYLE_KEYS.items() if key in data}
    )
    style.start_arrowhead = data.get("startArrowhead", UNSET)
    style.end_arrowhead = data.get("endArrowhead", UNSET)
    return style


def _require_list(data: Mapping[str, Any], key: str, required: bool) -> List[Any]:
    value = data.get(key)
    if value is None:
        if required:
            raise ParseError(f"JSON input is missing the '{key}' list")
        return []
    if not isinstance(value, list):
        raise ParseError(f"JSON input field '{key}' must be a list")
    return value


def parse_json(
    data: Mapping[str, Any], options: Optional[Mapping[str, Any]] = None
) -> FlowchartGraph:
    """
    Parse structured input into a FlowchartGraph.

    Image nodes and node types outside the closed shape set default to
    rectangle. Layout options are the defaults, then ``options`` from the
    caller, then the input's own ``options`` object.

    Args:
        data: Decoded JSON object with ``nodes``, ``edges`` and optional
            ``options``.
        options: Caller-supplied layout options.

    Returns:
        The parsed graph.

    Raises:
        ParseError: If the structure is invalid or an edge references an
            unknown node id.
    """
    if not isinstance(data, Mapping):
        raise ParseError("JSON input must be an object")

    node_map: Dict[str, GraphNode] = {}
    for index, node_input in enumerate(_require_list(data, "nodes", True)):
        if not isinstance(node_input, Mapping):
            raise ParseError(f"Node #{index} must be an object")
        raw_id = node_input.get("id")
        node_id = str(raw_id) if raw_id not in (None, "") else new_id()
        node_type = NodeType.parse(node_input.get("type", NodeType.RECTANGLE.value))
        if node_type == NodeType.RECTANGLE and node_input.get("type") not in (
            None,
            NodeType.RECTANGLE.value,
        ):
            logger.debug(
                "Unknown node type %r for %s, using rectangle",
                node_input.get("type"),
                node_id,
            )
        if node_type == NodeType.IMAGE:
            # JSON nodes carry no image source
            logger.debug("Image node %s has no source, using rectangle", node_id)
            node_type = NodeType.RECTANGLE
        label = node_input.get("label")
        node_map[node_id] = GraphNode(
            id=node_id,
            type=node_type,
            label=str(label) if label is not None else node_id,
            style=node_style_from_mapping(node_input.get("style")),
        )

    edges: List[GraphEdge] = []
    for index, edge_input in enumerate(_require_list(data, "edges", False)):
        if not isinstance(edge_input, Mapping):
            raise ParseError(f"Edge #{index} must be an object")
        source = node_map.get(str(edge_input.get("from")))
        target = node_map.get(str(edge_input.get("to")))
        if source is None:
            raise ParseError(
                f"Edge references unknown source node: {edge_input.get('from')}"
            )
        if target is None:
            raise ParseError(
                f"Edge references unknown target node: {edge_input.get('to')}"
            )
        label = edge_input.get("label")
        edges.append(
            GraphEdge(
                id=new_id(),
                source=source.id,
                target=target.id,
                label=str(label) if label not in (None, "") else None,
                style=edge_style_from_mapping(edge_input.get("style")),
            )
        )

    explicit_options = data.get("options")
    if explicit_options is not None and not isinstance(explicit_options, Mapping):
        raise ParseError("JSON input field 'options' must be an object")
    layout_options = LayoutOptions().merged(options).merged(explicit_options)

    return FlowchartGraph(
        nodes=list(node_map.values()), edges=edges, options=layout_options
    )


def parse_json_string(
    json_string: str, options: Optional[Mapping[str, Any]] = None
) -> FlowchartGraph:
    """
    Parse JSON text into a FlowchartGraph.

    Raises:
        ParseError: If the text is not valid JSON or the structure is invalid.
    """
    try:
        data = json.loads(json_string)
    except json.JSONDecodeError as e:
        raise ParseError(f"Invalid JSON: {e}") from e
    return parse_json(data, options)
