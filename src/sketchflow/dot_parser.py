"""
DOT/Graphviz parser.

Parses DOT language input with pydot's pyparsing grammar and converts it to a
FlowchartGraph.

Supported DOT features:
    - digraph and graph declarations
    - node declarations with label, shape, color, fillcolor and style
    - directed (A -> B) and undirected (A -- B) edges, edge chains
    - edge label, color, style and dir attributes
    - rankdir, nodesep and ranksep graph attributes
    - subgraphs and clusters (flattened)
"""

import logging
from typing import Any, Dict, List, Mapping, Optional

import pydot
import pyparsing
from pydot import dot_parser as dot_grammar

from .models import (
    EdgeStyle,
    FlowchartGraph,
    FlowDirection,
    GraphEdge,
    GraphNode,
    LayoutOptions,
    NodeStyle,
    NodeType,
    new_id,
)
from .parser import ParseError

logger = logging.getLogger(__name__)

POINTS_PER_INCH = 72

# Pseudo nodes pydot uses for "node [...]", "edge [...]" and "graph [...]".
_DEFAULT_STATEMENTS = ("node", "edge", "graph")

_SHAPES = {
    "ellipse": NodeType.ELLIPSE,
    "oval": NodeType.ELLIPSE,
    "circle": NodeType.ELLIPSE,
    "diamond": NodeType.DIAMOND,
    "cylinder": NodeType.DATABASE,
    "record": NodeType.DATABASE,
    "mrecord": NodeType.DATABASE,
}

_DIR_ARROWHEADS = {
    "forward": (None, "arrow"),
    "back": ("arrow", None),
    "both": ("arrow", "arrow"),
    "none": (None, None),
}


def _unquote(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    if len(text) >= 2 and text[0] == text[-1] == '"':
        text = text[1:-1].replace('\\"', '"')
    return text


def _clean_label(value: Any) -> Optional[str]:
    text = _unquote(value)
    if text is None:
        return None
    for escape in ("\\n", "\\l", "\\r"):
        text = text.replace(escape, "\n")
    return text.rstrip("\n")


def _clean_node_id(name: Any) -> Optional[str]:
    """Strip quotes and any port suffix (``A:p1:n``) from a node reference."""
    if not isinstance(name, str):
        return None
    name = name.strip()
    if name.startswith('"'):
        end = name.find('"', 1)
        return name[1:end] if end != -1 else name[1:]
    return name.split(":", 1)[0] or None


def map_dot_shape(shape: Optional[str]) -> NodeType:
    """Map a DOT shape name to a node type, defaulting to rectangle."""
    if not shape:
        return NodeType.RECTANGLE
    return _SHAPES.get(shape.lower(), NodeType.RECTANGLE)


def has_style_value(style_attr: str, value: str) -> bool:
    """
    Check a comma-separated DOT style attribute for an exact entry.

    ``"filled,dashed"`` contains ``dashed``; ``"dashedline"`` does not.
    """
    styles = [s.strip().lower() for s in style_attr.split(",")]
    return value.lower() in styles


def _stroke_style(attributes: Mapping[str, Any]) -> Optional[str]:
    style_attr = _unquote(attributes.get("style"))
    if not style_attr:
        return None
    if has_style_value(style_attr, "dashed"):
        return "dashed"
    if has_style_value(style_attr, "dotted"):
        return "dotted"
    return None


def extract_node_style(attributes: Mapping[str, Any]) -> Optional[NodeStyle]:
    style = NodeStyle(
        background_color=_unquote(attributes.get("fillcolor")),
        stroke_color=_unquote(attributes.get("color")),
        stroke_style=_stroke_style(attributes),
    )
    return None if style.is_empty() else style


def extract_edge_style(
    attributes: Mapping[str, Any], directed: bool
) -> Optional[EdgeStyle]:
    style = EdgeStyle(
        stroke_color=_unquote(attributes.get("color")),
        stroke_style=_stroke_style(attributes),
    )
    changed = style.stroke_color is not None or style.stroke_style is not None

    direction = (_unquote(attributes.get("dir")) or "").lower()
    if direction in _DIR_ARROWHEADS:
        style.start_arrowhead, style.end_arrowhead = _DIR_ARROWHEADS[direction]
        changed = True
    elif not directed:
        style.start_arrowhead, style.end_arrowhead = None, None
        changed = True

    return style if changed else None


def _graph_attributes(graph: pydot.Dot) -> Dict[str, Any]:
    """Merge ``graph [...]`` default statements with bare assignments."""
    attributes: Dict[str, Any] = {}
    for node in graph.get_nodes():
        if _unquote(node.get_name()) == "graph":
            attributes.update(node.get_attributes())
    attributes.update(graph.get_attributes())
    return attributes


def collect_explicit_nodes(graph: Any, explicit: Dict[str, Dict[str, Any]]) -> None:
    """Recursively collect declared nodes and their attributes."""
    for node in graph.get_nodes():
        node_id = _clean_node_id(node.get_name())
        if node_id is None or node_id in _DEFAULT_STATEMENTS:
            continue
        explicit.setdefault(node_id, {}).update(node.get_attributes())

    for subgraph in graph.get_subgraphs():
        collect_explicit_nodes(subgraph, explicit)


def _edge_endpoints(edge: pydot.Edge) -> List[str]:
    endpoints = []
    for endpoint in (edge.get_source(), edge.get_destination()):
        node_id = _clean_node_id(endpoint)
        if node_id is None:
            logger.debug("Skipping non-node edge endpoint %r", endpoint)
            return []
        endpoints.append(node_id)
    return endpoints


def collect_edge_node_ids(graph: Any, node_ids: Dict[str, None]) -> None:
    """Recursively collect every node id referenced by an edge endpoint."""
    for edge in graph.get_edges():
        for node_id in _edge_endpoints(edge):
            node_ids.setdefault(node_id, None)

    for subgraph in graph.get_subgraphs():
        collect_edge_node_ids(subgraph, node_ids)


def collect_edges(
    graph: Any,
    node_map: Dict[str, GraphNode],
    directed: bool,
    edges: List[GraphEdge],
) -> None:
    """Recursively convert edges, expanding chains into consecutive pairs."""
    for edge in graph.get_edges():
        chain = _edge_endpoints(edge)
        attributes = edge.get_attributes()
        for source_id, target_id in zip(chain, chain[1:]):
            source = node_map.get(source_id)
            target = node_map.get(target_id)
            if source is None or target is None:
                continue
            edges.append(
                GraphEdge(
                    id=new_id(),
                    source=source.id,
                    target=target.id,
                    label=_clean_label(attributes.get("label")) or None,
                    style=extract_edge_style(attributes, directed),
                )
            )

    for subgraph in graph.get_subgraphs():
        collect_edges(subgraph, node_map, directed, edges)


def _inches_to_pixels(value: Any) -> Optional[int]:
    try:
        return round(float(_unquote(value)) * POINTS_PER_INCH)
    except (TypeError, ValueError):
        return None


def parse_dot(
    content: str, options: Optional[Mapping[str, Any]] = None
) -> FlowchartGraph:
    """
    Parse DOT content into a FlowchartGraph.

    Node ids are used as graph node ids. Nodes that only appear in edges
    become rectangles labeled with their id.

    Args:
        content: DOT source.
        options: Caller-supplied layout options; graph attributes override
            them.

    Returns:
        The parsed graph.

    Raises:
        ParseError: If the DOT content cannot be parsed.
    """
    try:
        graphs = list(
            dot_grammar.graph_definition().parse_string(content, parse_all=True)
        )
    except pyparsing.ParseBaseException as e:
        raise ParseError(f"Invalid DOT syntax: {e}") from e

    if not graphs:
        raise ParseError("Invalid DOT syntax: no graph found in DOT content")

    root = graphs[0]
    directed = root.get_type() == "digraph"
    layout_options = LayoutOptions().merged(options)

    graph_attrs = _graph_attributes(root)
    direction = FlowDirection.parse(_unquote(graph_attrs.get("rankdir")))
    if direction is not None:
        layout_options.direction = direction
    node_spacing = _inches_to_pixels(graph_attrs.get("nodesep"))
    if node_spacing is not None:
        layout_options.node_spacing = node_spacing
    rank_spacing = _inches_to_pixels(graph_attrs.get("ranksep"))
    if rank_spacing is not None:
        layout_options.rank_spacing = rank_spacing

    # Pass one: declared nodes. Pass two: nodes referenced by edges.
    explicit: Dict[str, Dict[str, Any]] = {}
    collect_explicit_nodes(root, explicit)
    referenced: Dict[str, None] = {}
    collect_edge_node_ids(root, referenced)

    node_map: Dict[str, GraphNode] = {}
    for node_id in list(explicit) + list(referenced):
        if node_id in node_map:
            continue
        attributes = explicit.get(node_id, {})
        node_map[node_id] = GraphNode(
            id=node_id,
            type=map_dot_shape(_unquote(attributes.get("shape"))),
            label=_clean_label(attributes.get("label")) or node_id,
            style=extract_node_style(attributes),
        )

    edges: List[GraphEdge] = []
    collect_edges(root, node_map, directed, edges)

    logger.debug(
        "Parsed DOT graph: %d nodes (%d declared), %d edges",
        len(node_map),
        len(explicit),
        len(edges),
    )
    return FlowchartGraph(
        nodes=list(node_map.values()), edges=edges, options=layout_options
    )
