"""
Layered layout engine built on networkx.

The engine is a pure function from a request (sized nodes, edges by id and
an option record) to node positions and orthogonal edge routes. The layout
adapter treats it as an external collaborator and can swap in another
callable with the same signature.

Uses networkx for:
- Graph representation
- Cycle detection
- Topological sorting / layer assignment
- Node ordering within layers
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Set, Tuple

import networkx as nx

from .models import FlowDirection

logger = logging.getLogger(__name__)

Coordinate = Tuple[float, float]

DIRECTION_MAP: Dict[FlowDirection, str] = {
    FlowDirection.TB: "DOWN",
    FlowDirection.BT: "UP",
    FlowDirection.LR: "RIGHT",
    FlowDirection.RL: "LEFT",
}

ORDERING_PASSES = 4


def engine_direction(direction: Optional[FlowDirection]) -> str:
    """Map a flow direction onto the engine's compass vocabulary."""
    return DIRECTION_MAP.get(direction, "DOWN")


@dataclass
class EngineNode:
    id: str
    width: float
    height: float


@dataclass
class EngineEdge:
    id: str
    source: str
    target: str


@dataclass
class EngineRequest:
    """Input to a layout engine call."""

    nodes: List[EngineNode] = field(default_factory=list)
    edges: List[EngineEdge] = field(default_factory=list)
    layout_options: Dict[str, str] = field(default_factory=dict)


@dataclass
class EngineRoute:
    """A routed edge section in absolute engine coordinates."""

    start: Coordinate
    end: Coordinate
    bend_points: List[Coordinate] = field(default_factory=list)


@dataclass
class EngineResult:
    """
    Output of a layout engine call.

    Attributes:
        positions: Top-left corner for every node id in the request.
        routes: Route per edge id. Edges the engine could not route are
            absent.
    """

    positions: Dict[str, Coordinate] = field(default_factory=dict)
    routes: Dict[str, EngineRoute] = field(default_factory=dict)


def _float_option(options: Dict[str, str], key: str, default: float) -> float:
    try:
        return float(options.get(key, default))
    except (TypeError, ValueError):
        return default


class LayeredLayout:
    """
    Layered graph layout using networkx.

    For DAGs: longest-path layering over a topological order.
    For cyclic graphs: identifies back edges with a DFS, lays out the
    remaining DAG, then routes back edges against the flow.
    """

    def __init__(self, request: EngineRequest):
        options = request.layout_options
        self.request = request
        self.direction = str(options.get("direction", "DOWN")).upper()
        self.node_spacing = _float_option(options, "spacing.nodeNode", 50)
        self.layer_spacing = _float_option(options, "spacing.layer", 80)

        self.sizes: Dict[str, Tuple[float, float]] = {
            node.id: (node.width, node.height) for node in request.nodes
        }
        self.order: Dict[str, int] = {
            node.id: index for index, node in enumerate(request.nodes)
        }
        self.graph: nx.DiGraph = nx.DiGraph()
        self.back_edges: Set[Tuple[str, str]] = set()
        self.layer_of: Dict[str, int] = {}
        self.total_main = 0.0

    @property
    def horizontal(self) -> bool:
        return self.direction in ("RIGHT", "LEFT")

    @property
    def reversed(self) -> bool:
        return self.direction in ("UP", "LEFT")

    def run(self) -> EngineResult:
        self.graph.add_nodes_from(self.sizes)
        for edge in self.request.edges:
            if edge.source in self.sizes and edge.target in self.sizes:
                if edge.source != edge.target:
                    self.graph.add_edge(edge.source, edge.target)

        if not nx.is_directed_acyclic_graph(self.graph):
            self._break_cycles()

        layers = self._order_layers(self._assign_layers())
        for layer_idx, layer in enumerate(layers):
            for node_id in layer:
                self.layer_of[node_id] = layer_idx

        boxes = self._place(layers)

        result = EngineResult()
        for node_id, (main, cross, _, _) in boxes.items():
            width, height = self.sizes[node_id]
            result.positions[node_id] = self._to_xy_box(main, cross, width, height)

        for edge in self.request.edges:
            route = self._route(edge, boxes)
            if route is not None:
                result.routes[edge.id] = route

        logger.debug(
            "Laid out %d nodes in %d layers (%d back edges)",
            len(boxes),
            len(layers),
            len(self.back_edges),
        )
        return result

    def _break_cycles(self) -> None:
        """
        Identify back edges with a DFS so removing them leaves a DAG.

        The search keeps an explicit stack of successor iterators so long
        chains do not hit the recursion limit.
        """
        visited: Set[str] = set()
        on_stack: Set[str] = set()

        def successors(node: str) -> Iterator[str]:
            return iter(list(self.graph.successors(node)))

        # Start DFS from nodes with no predecessors, then everything else
        roots = [n for n in self.graph.nodes() if self.graph.in_degree(n) == 0]
        for root in roots + list(self.graph.nodes()):
            if root in visited:
                continue
            visited.add(root)
            on_stack.add(root)
            stack: List[Tuple[str, Iterator[str]]] = [(root, successors(root))]

            while stack:
                node, pending = stack[-1]
                for successor in pending:
                    if successor not in visited:
                        visited.add(successor)
                        on_stack.add(successor)
                        stack.append((successor, successors(successor)))
                        break
                    if successor in on_stack:
                        self.back_edges.add((node, successor))
                else:
                    on_stack.discard(node)
                    stack.pop()

    def _working_graph(self) -> nx.DiGraph:
        working_graph = self.graph.copy()
        working_graph.remove_edges_from(self.back_edges)
        return working_graph

    def _assign_layers(self) -> List[List[str]]:
        """
        Assign nodes to layers using the longest path method.
        """
        working_graph = self._working_graph()
        node_layer: Dict[str, int] = {}

        for node in nx.topological_sort(working_graph):
            predecessors = list(working_graph.predecessors(node))
            if not predecessors:
                node_layer[node] = 0
            else:
                node_layer[node] = max(node_layer[p] for p in predecessors) + 1

        if not node_layer:
            return []

        layers: List[List[str]] = [[] for _ in range(max(node_layer.values()) + 1)]
        for node in sorted(node_layer, key=self.order.__getitem__):
            layers[node_layer[node]].append(node)
        return layers

    def _order_layers(self, layers: List[List[str]]) -> List[List[str]]:
        """
        Order nodes within each layer to reduce edge crossings.
        Uses the barycenter heuristic with alternating sweeps.
        """
        if len(layers) <= 1:
            return layers

        working_graph = self._working_graph()

        for _ in range(ORDERING_PASSES):
            for i in range(1, len(layers)):
                layers[i] = self._order_layer_by_barycenter(
                    layers[i], layers[i - 1], working_graph, use_predecessors=True
                )
            for i in range(len(layers) - 2, -1, -1):
                layers[i] = self._order_layer_by_barycenter(
                    layers[i], layers[i + 1], working_graph, use_predecessors=False
                )

        return layers

    @staticmethod
    def _order_layer_by_barycenter(
        layer: List[str],
        ref_layer: List[str],
        graph: nx.DiGraph,
        use_predecessors: bool,
    ) -> List[str]:
        ref_positions = {node: i for i, node in enumerate(ref_layer)}
        current = {node: i for i, node in enumerate(layer)}

        def barycenter(node: str) -> float:
            if use_predecessors:
                neighbors = graph.predecessors(node)
            else:
                neighbors = graph.successors(node)

            positions = [ref_positions[n] for n in neighbors if n in ref_positions]
            if not positions:
                # Unconnected nodes keep their slot
                return current[node]
            return sum(positions) / len(positions)

        return sorted(layer, key=barycenter)

    def _main_cross_size(self, node_id: str) -> Tuple[float, float]:
        width, height = self.sizes[node_id]
        return (width, height) if self.horizontal else (height, width)

    def _place(
        self, layers: List[List[str]]
    ) -> Dict[str, Tuple[float, float, float, float]]:
        """
        Compute (main, cross, main_size, cross_size) boxes in flow space.

        The main axis runs along the flow; layers are stacked on it separated
        by the layer spacing. Each layer is packed along the cross axis with
        the node spacing and centred against the widest layer.
        """
        layer_thickness = []
        layer_extent = []
        for layer in layers:
            sizes = [self._main_cross_size(n) for n in layer]
            layer_thickness.append(max(main for main, _ in sizes))
            layer_extent.append(
                sum(cross for _, cross in sizes) + self.node_spacing * (len(layer) - 1)
            )
        widest = max(layer_extent, default=0)

        boxes: Dict[str, Tuple[float, float, float, float]] = {}
        main_offset = 0.0
        for layer, thickness, extent in zip(layers, layer_thickness, layer_extent):
            cross_offset = (widest - extent) / 2
            for node_id in layer:
                main_size, cross_size = self._main_cross_size(node_id)
                boxes[node_id] = (
                    main_offset + (thickness - main_size) / 2,
                    cross_offset,
                    main_size,
                    cross_size,
                )
                cross_offset += cross_size + self.node_spacing
            main_offset += thickness + self.layer_spacing

        self.total_main = max(main_offset - self.layer_spacing, 0)
        return boxes

    def _to_xy(self, main: float, cross: float) -> Coordinate:
        if self.reversed:
            main = self.total_main - main
        return (main, cross) if self.horizontal else (cross, main)

    def _to_xy_box(
        self, main: float, cross: float, width: float, height: float
    ) -> Coordinate:
        main_size = width if self.horizontal else height
        if self.reversed:
            main = main + main_size
        return self._to_xy(main, cross)

    def _route(
        self,
        edge: EngineEdge,
        boxes: Dict[str, Tuple[float, float, float, float]],
    ) -> Optional[EngineRoute]:
        """
        Route an edge orthogonally between the facing sides of its nodes.

        Returns None for self-loops, unknown endpoints and edges between
        nodes of the same layer.
        """
        if edge.source == edge.target:
            return None
        if edge.source not in boxes or edge.target not in boxes:
            return None

        source_layer = self.layer_of[edge.source]
        target_layer = self.layer_of[edge.target]
        if source_layer == target_layer:
            return None

        s_main, s_cross, s_main_size, s_cross_size = boxes[edge.source]
        t_main, t_cross, t_main_size, t_cross_size = boxes[edge.target]
        start_cross = s_cross + s_cross_size / 2
        end_cross = t_cross + t_cross_size / 2

        if source_layer < target_layer:
            start_main = s_main + s_main_size
            end_main = t_main
        else:
            start_main = s_main
            end_main = t_main + t_main_size

        bend_points: List[Coordinate] = []
        if abs(start_cross - end_cross) > 0.5:
            middle = (start_main + end_main) / 2
            bend_points = [
                self._to_xy(middle, start_cross),
                self._to_xy(middle, end_cross),
            ]

        return EngineRoute(
            start=self._to_xy(start_main, start_cross),
            end=self._to_xy(end_main, end_cross),
            bend_points=bend_points,
        )


def run_layout(request: EngineRequest) -> EngineResult:
    """
    Lay out a graph.

    Args:
        request: Sized nodes, edges and options. Recognized option keys are
            ``direction`` (DOWN, UP, RIGHT, LEFT), ``spacing.nodeNode`` and
            ``spacing.layer``.

    Returns:
        EngineResult with node positions and edge routes.
    """
    return LayeredLayout(request).run()
