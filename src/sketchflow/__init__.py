"""
Sketchflow - Hand-drawn style flowcharts from text

Turns a compact flowchart description (DSL, JSON or DOT) into a drawing
document of shapes, arrows, labels and embedded images with bindings that
keep arrows attached to their shapes.

Example:
    >>> from sketchflow import FlowchartGenerator
    >>> generator = FlowchartGenerator()
    >>> document = generator.generate('''
    ...     (Start) -> [Process] -> {Valid?}
    ...     {Valid?} -> "yes" -> [Dashboard]
    ... ''')
    >>> document["type"]
    'excalidraw'

Pipeline Example:
    >>> import asyncio
    >>> from sketchflow import generate_document, layout_graph, parse_dsl
    >>> graph = parse_dsl("[A] -> [B]")
    >>> layouted = asyncio.run(layout_graph(graph))
    >>> result = generate_document(layouted)
    >>> result.diagnostics
    []
"""

from .dot_parser import parse_dot
from .engine import EngineRequest, EngineResult, EngineRoute, run_layout
from .export import DocumentExporter, render_to_file, save_document, swap_extension
from .generator import (
    FlowchartGenerator,
    GenerationResult,
    create_flowchart_from_dot,
    create_flowchart_from_dsl,
    create_flowchart_from_json,
    generate_document,
    parse_input,
    serialize_document,
)
from .images import ImageEmbedError
from .json_parser import parse_json, parse_json_string
from .layout import LayoutTimeoutError, layout_graph
from .models import (
    Diagnostic,
    EdgeStyle,
    FlowchartGraph,
    FlowDirection,
    GraphEdge,
    GraphNode,
    LayoutedEdge,
    LayoutedGraph,
    LayoutedImage,
    LayoutedNode,
    LayoutOptions,
    NodeStyle,
    NodeType,
)
from .parser import ParseError, Parser, parse_dsl, tokenize

__version__ = "0.1.0"

__all__ = [
    # Main API
    "FlowchartGenerator",
    "GenerationResult",
    "generate_document",
    "serialize_document",
    "create_flowchart_from_dsl",
    "create_flowchart_from_json",
    "create_flowchart_from_dot",
    # Parsers
    "Parser",
    "ParseError",
    "tokenize",
    "parse_dsl",
    "parse_json",
    "parse_json_string",
    "parse_dot",
    "parse_input",
    # Graph IR
    "FlowchartGraph",
    "GraphNode",
    "GraphEdge",
    "NodeType",
    "NodeStyle",
    "EdgeStyle",
    "FlowDirection",
    "LayoutOptions",
    # Layout
    "layout_graph",
    "LayoutTimeoutError",
    "LayoutedGraph",
    "LayoutedNode",
    "LayoutedEdge",
    "LayoutedImage",
    "Diagnostic",
    "run_layout",
    "EngineRequest",
    "EngineResult",
    "EngineRoute",
    # Export
    "DocumentExporter",
    "save_document",
    "render_to_file",
    "swap_extension",
    "ImageEmbedError",
]
