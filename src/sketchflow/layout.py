"""
Layout adapter.

Turns a FlowchartGraph into a LayoutedGraph: sizes every node, hands the
sized graph to a layout engine, then interprets the engine's answer as
padded pixel boxes, edge-relative polylines and canvas bounds. Directive
images are resolved against the laid-out nodes before returning.

The engine call is the pipeline's only suspension point. It runs in a worker
thread so a slow engine does not block the event loop, and may be bounded by
a timeout.
"""

import asyncio
import logging
from typing import Callable, Dict, List, Optional, Tuple

from .engine import (
    EngineEdge,
    EngineNode,
    EngineRequest,
    EngineResult,
    engine_direction,
    run_layout,
)
from .models import (
    Diagnostic,
    FlowchartGraph,
    GraphEdge,
    LayoutedEdge,
    LayoutedGraph,
    LayoutedNode,
    LayoutOptions,
    Point,
)
from .placement import resolve_positioned_images
from .sizing import calculate_node_dimensions

logger = logging.getLogger(__name__)

LayoutEngine = Callable[[EngineRequest], EngineResult]


class LayoutTimeoutError(TimeoutError):
    """Raised when the layout engine does not answer within the timeout."""

    pass


def build_layout_options(options: LayoutOptions) -> Dict[str, str]:
    """Translate layout options into the engine's option record."""
    return {
        "algorithm": options.algorithm,
        "direction": engine_direction(options.direction),
        "spacing.nodeNode": str(options.node_spacing),
        "spacing.layer": str(options.rank_spacing),
        "edgeRouting": "ORTHOGONAL",
    }


def _drop_dangling_edges(
    graph: FlowchartGraph, diagnostics: List[Diagnostic]
) -> List[GraphEdge]:
    node_ids = {node.id for node in graph.nodes}
    edges = []
    for edge in graph.edges:
        if edge.source in node_ids and edge.target in node_ids:
            edges.append(edge)
            continue
        message = f"Dropping edge {edge.id}: missing source or target node"
        logger.warning(message)
        diagnostics.append(Diagnostic("layout", message, subject=edge.id))
    return edges


def build_request(
    graph: FlowchartGraph, edges: List[GraphEdge]
) -> Tuple[EngineRequest, Dict[str, Tuple[float, float]]]:
    """
    Build the engine request for a graph.

    Returns:
        The request and the sizes assigned to each node id.
    """
    sizes = {node.id: calculate_node_dimensions(node) for node in graph.nodes}
    request = EngineRequest(
        nodes=[
            EngineNode(id=node.id, width=sizes[node.id][0], height=sizes[node.id][1])
            for node in graph.nodes
        ],
        edges=[
            EngineEdge(id=edge.id, source=edge.source, target=edge.target)
            for edge in edges
        ],
        layout_options=build_layout_options(graph.options),
    )
    return request, sizes


def _layouted_edge(
    edge: GraphEdge,
    result: EngineResult,
    nodes: Dict[str, LayoutedNode],
    padding: float,
) -> LayoutedEdge:
    route = result.routes.get(edge.id)

    if route is not None:
        start = Point(route.start[0] + padding, route.start[1] + padding)
        end = Point(route.end[0] + padding, route.end[1] + padding)
        points = [(0.0, 0.0)]
        for bend_x, bend_y in route.bend_points:
            points.append((bend_x + padding - start.x, bend_y + padding - start.y))
        points.append((end.x - start.x, end.y - start.y))
    else:
        # No route: straight line between the node centres
        start = nodes[edge.source].center
        end = nodes[edge.target].center
        points = [(0.0, 0.0), (end.x - start.x, end.y - start.y)]

    return LayoutedEdge(
        id=edge.id,
        source=edge.source,
        target=edge.target,
        points=tuple(points),
        source_point=start,
        target_point=end,
        label=edge.label,
        style=edge.style,
    )


async def layout_graph(
    graph: FlowchartGraph,
    engine: Optional[LayoutEngine] = None,
    timeout: Optional[float] = None,
) -> LayoutedGraph:
    """
    Lay out a flowchart graph.

    Edges that reference a missing node are dropped with a warning and a
    diagnostic rather than failing the layout.

    Args:
        graph: Parsed graph.
        engine: Layout engine callable; the built-in layered engine when
            omitted.
        timeout: Seconds to wait for the engine before giving up.

    Returns:
        The laid-out graph.

    Raises:
        LayoutTimeoutError: If the engine does not finish within ``timeout``.
    """
    engine = engine or run_layout
    diagnostics: List[Diagnostic] = []
    padding = graph.options.padding

    edges = _drop_dangling_edges(graph, diagnostics)
    request, sizes = build_request(graph, edges)

    try:
        result = await asyncio.wait_for(
            asyncio.to_thread(engine, request), timeout=timeout
        )
    except asyncio.TimeoutError as e:
        raise LayoutTimeoutError(
            f"Layout did not finish within {timeout} seconds"
        ) from e

    nodes: Dict[str, LayoutedNode] = {}
    for node in graph.nodes:
        x, y = result.positions.get(node.id, (0.0, 0.0))
        width, height = sizes[node.id]
        nodes[node.id] = LayoutedNode.from_node(
            node, x + padding, y + padding, width, height
        )

    layouted_edges = [_layouted_edge(edge, result, nodes, padding) for edge in edges]

    max_x = max((n.x + n.width for n in nodes.values()), default=0)
    max_y = max((n.y + n.height for n in nodes.values()), default=0)
    width = max_x + padding
    height = max_y + padding

    images = resolve_positioned_images(graph.images, list(nodes.values()), diagnostics)

    logger.debug(
        "Layout complete: %d nodes, %d edges, canvas %sx%s",
        len(nodes),
        len(layouted_edges),
        width,
        height,
    )
    return LayoutedGraph(
        nodes=tuple(nodes.values()),
        edges=tuple(layouted_edges),
        options=graph.options,
        width=width,
        height=height,
        images=tuple(images),
        scatter=tuple(graph.scatter),
        library=graph.library,
        diagnostics=tuple(diagnostics),
    )
