"""
Main flowchart generator module.

Assembles a laid-out graph into a drawing document and combines parsing,
layout and generation behind the FlowchartGenerator facade.
"""

import asyncio
import copy
import json
import logging
import random
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from . import config
from .dot_parser import parse_dot
from .elements import (
    Element,
    ElementIndexer,
    create_arrow,
    create_edge_label,
    create_image_element,
    create_node_image,
    create_node_label,
    create_positioned_image,
    create_shape,
    edge_label_id,
)
from .images import ImageEmbedError, create_file_data, generate_file_id
from .json_parser import parse_json_string
from .layout import LayoutEngine, layout_graph
from .models import (
    Diagnostic,
    FlowchartGraph,
    LayoutedGraph,
    LayoutedNode,
    NodeType,
    new_id,
)
from .parser import parse_dsl
from .placement import decoration_position, scatter_images

logger = logging.getLogger(__name__)

INPUT_FORMATS = ("dsl", "json", "dot")


@dataclass
class GenerationResult:
    """A generated document and the soft failures tolerated on the way."""

    document: Dict[str, Any]
    diagnostics: List[Diagnostic] = field(default_factory=list)


class _FileTable:
    """Embedded files of one document."""

    def __init__(self, library: Optional[str], diagnostics: List[Diagnostic]):
        self.library = library
        self.diagnostics = diagnostics
        self.files: Dict[str, Dict[str, Any]] = {}

    def embed(self, src: str, subject: str) -> Optional[str]:
        """Embed ``src`` and return its file id, or None if it failed."""
        file_id = generate_file_id()
        try:
            self.files[file_id] = create_file_data(src, file_id, self.library)
        except ImageEmbedError as e:
            logger.warning("Skipping image for %s: %s", subject, e)
            self.diagnostics.append(Diagnostic("generate", str(e), subject=subject))
            return None
        return file_id


def _bound_arrows(
    layouted: LayoutedGraph, node_map: Dict[str, LayoutedNode]
) -> Dict[str, List[Dict[str, str]]]:
    """Arrow ids bound to each shape. Image nodes never take bindings."""
    bound: Dict[str, List[Dict[str, str]]] = {}
    for edge in layouted.edges:
        if edge.source not in node_map or edge.target not in node_map:
            continue
        for node_id in dict.fromkeys((edge.source, edge.target)):
            if node_map[node_id].type == NodeType.IMAGE:
                continue
            bound.setdefault(node_id, []).append({"id": edge.id, "type": "arrow"})
    return bound


def generate_document(
    layouted: LayoutedGraph, rng: Optional[random.Random] = None
) -> GenerationResult:
    """
    Generate a drawing document from a laid-out graph.

    Elements are emitted in stacking order: for each node its shape, label
    and decorations (or a single image for image nodes), then each arrow
    followed by its label, then directive images. Scatter images are placed
    underneath everything else.

    Every ``boundElements`` entry, ``containerId`` and ``fileId`` in the
    result refers to an element or file of the same document. Edges with a
    missing endpoint and images that cannot be embedded are skipped and
    reported as diagnostics.

    Args:
        layouted: The laid-out graph.
        rng: Random source for scatter placement.

    Returns:
        GenerationResult with the document and all diagnostics, including
        those recorded during layout.
    """
    indexer = ElementIndexer()
    diagnostics: List[Diagnostic] = list(layouted.diagnostics)
    files = _FileTable(layouted.library, diagnostics)
    elements: List[Element] = []

    node_map = {node.id: node for node in layouted.nodes}
    bound = _bound_arrows(layouted, node_map)

    for node in layouted.nodes:
        if node.type == NodeType.IMAGE:
            if node.image is None:
                message = f"Image node {node.id} has no image source"
                logger.warning(message)
                diagnostics.append(Diagnostic("generate", message, subject=node.id))
                continue
            file_id = files.embed(node.image.src, node.id)
            if file_id is not None:
                elements.append(create_node_image(node, file_id))
            continue

        elements.append(create_shape(node, bound.get(node.id)))
        elements.append(create_node_label(node))

        for decoration in node.decorations:
            file_id = files.embed(decoration.src, node.id)
            if file_id is None:
                continue
            x, y, width, height = decoration_position(node, decoration)
            elements.append(
                create_image_element(new_id(), x, y, width, height, file_id)
            )

    for edge in layouted.edges:
        source = node_map.get(edge.source)
        target = node_map.get(edge.target)
        if source is None or target is None:
            message = f"Skipping edge {edge.id}: missing source or target node"
            logger.warning(message)
            diagnostics.append(Diagnostic("generate", message, subject=edge.id))
            continue

        label_bindings = None
        if edge.label:
            label_bindings = [{"id": edge_label_id(edge.id), "type": "text"}]
        elements.append(create_arrow(edge, source, target, label_bindings))
        if edge.label:
            elements.append(create_edge_label(edge, edge.id))

    for image in layouted.images:
        file_id = files.embed(image.src, image.id)
        if file_id is not None:
            elements.append(create_positioned_image(image, file_id))

    scattered: List[Element] = []
    for scatter in layouted.scatter:
        file_id = files.embed(scatter.src, scatter.src)
        if file_id is None:
            continue
        for image in scatter_images([scatter], layouted.width, layouted.height, rng):
            scattered.append(create_positioned_image(image, file_id))
    elements = scattered + elements

    indexer.assign(elements)

    document = {
        "type": config.DOCUMENT_TYPE,
        "version": config.DOCUMENT_VERSION,
        "source": config.DOCUMENT_SOURCE,
        "elements": elements,
        "appState": copy.deepcopy(config.DEFAULT_APP_STATE),
        "files": files.files,
    }
    return GenerationResult(document=document, diagnostics=diagnostics)


def serialize_document(document: Mapping[str, Any], pretty: bool = True) -> str:
    """Serialize a document to JSON text."""
    return json.dumps(document, indent=2 if pretty else None)


def parse_input(
    text: str, input_format: str = "dsl", options: Optional[Mapping[str, Any]] = None
) -> FlowchartGraph:
    """
    Parse DSL, JSON or DOT text into a FlowchartGraph.

    Raises:
        ValueError: If ``input_format`` is not one of dsl, json or dot.
        ParseError: If the input is structurally invalid.
    """
    input_format = input_format.lower()
    if input_format == "dsl":
        return parse_dsl(text, options)
    if input_format == "json":
        return parse_json_string(text, options)
    if input_format == "dot":
        return parse_dot(text, options)
    raise ValueError(
        f"Unknown input format: {input_format} (expected one of {', '.join(INPUT_FORMATS)})"
    )


class FlowchartGenerator:
    """
    Generate drawing documents from flowchart descriptions.

    Example:
        >>> generator = FlowchartGenerator(direction="LR")
        >>> document = generator.generate('''
        ...     (Start) -> [Process] -> {OK?}
        ...     {OK?} -> "yes" -> (End)
        ... ''')
    """

    def __init__(
        self,
        direction: Optional[str] = None,
        node_spacing: Optional[int] = None,
        rank_spacing: Optional[int] = None,
        padding: Optional[int] = None,
        engine: Optional[LayoutEngine] = None,
        timeout: Optional[float] = None,
        seed: Optional[int] = None,
    ):
        """
        Initialize the flowchart generator.

        Args:
            direction: Flow direction - TB, BT, LR or RL. Directives in the
                input take precedence.
            node_spacing: Space between nodes of the same layer.
            rank_spacing: Space between layers.
            padding: Canvas padding.
            engine: Layout engine callable (defaults to the built-in one).
            timeout: Seconds to allow the layout engine.
            seed: Seed for scatter placement.
        """
        self.options: Dict[str, Any] = {
            key: value
            for key, value in (
                ("direction", direction),
                ("nodeSpacing", node_spacing),
                ("rankSpacing", rank_spacing),
                ("padding", padding),
            )
            if value is not None
        }
        self.engine = engine
        self.timeout = timeout
        self.seed = seed
        self.last_diagnostics: List[Diagnostic] = []

    def parse(self, input_text: str, input_format: str = "dsl") -> FlowchartGraph:
        return parse_input(input_text, input_format, self.options)

    async def agenerate(
        self, input_text: str, input_format: str = "dsl"
    ) -> Dict[str, Any]:
        """
        Parse, lay out and generate a document.

        Diagnostics from the run are kept in ``last_diagnostics``.

        Returns:
            The document as a dictionary.
        """
        graph = self.parse(input_text, input_format)
        layouted = await layout_graph(graph, engine=self.engine, timeout=self.timeout)
        rng = random.Random(self.seed) if self.seed is not None else None
        result = generate_document(layouted, rng)
        self.last_diagnostics = result.diagnostics
        return result.document

    def generate(self, input_text: str, input_format: str = "dsl") -> Dict[str, Any]:
        """Synchronous wrapper around :meth:`agenerate`."""
        return asyncio.run(self.agenerate(input_text, input_format))

    def generate_json(
        self, input_text: str, input_format: str = "dsl", pretty: bool = True
    ) -> str:
        return serialize_document(self.generate(input_text, input_format), pretty)


async def create_flowchart_from_dsl(
    dsl: str, options: Optional[Mapping[str, Any]] = None
) -> str:
    """Create a serialized document from DSL text."""
    graph = parse_dsl(dsl, options)
    return serialize_document(generate_document(await layout_graph(graph)).document)


async def create_flowchart_from_json(
    json_text: str, options: Optional[Mapping[str, Any]] = None
) -> str:
    """Create a serialized document from JSON text."""
    graph = parse_json_string(json_text, options)
    return serialize_document(generate_document(await layout_graph(graph)).document)


async def create_flowchart_from_dot(
    dot: str, options: Optional[Mapping[str, Any]] = None
) -> str:
    """Create a serialized document from DOT text."""
    graph = parse_dot(dot, options)
    return serialize_document(generate_document(await layout_graph(graph)).document)
