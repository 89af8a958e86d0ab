"""
Data models for flowchart generation.

This module contains the graph intermediate representation shared by the DSL,
JSON and DOT parsers, the layout options that travel with it, and the
layouted types handed from layout resolution to document generation.

Classes:
    NodeType: Closed set of node shapes.
    FlowDirection: Four compass flow directions.
    NodeStyle / EdgeStyle: Optional visual overrides.
    ImageSource / NodeDecoration: Image data attached to nodes.
    GraphNode / GraphEdge: Graph IR entities.
    LayoutOptions: Direction, spacing and padding for layout.
    AbsolutePosition / NearPosition / PositionedImage: Directive images.
    ScatterConfig: Randomly distributed image instances.
    FlowchartGraph: The complete graph IR.
    LayoutedNode / LayoutedEdge / LayoutedImage / LayoutedGraph: Graph IR
        with resolved pixel geometry. These are frozen.
    Diagnostic: A non-fatal problem recorded during layout or generation.
"""

import secrets
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, List, Mapping, Optional, Tuple, Union

from . import config

_ID_ALPHABET = "useandom-26T198340PX75pxJACKVERYMINDBUSHWOLF_GQZbfghjklqvwyzrict"


def new_id(size: int = 10) -> str:
    """Return a random URL-safe identifier of ``size`` characters."""
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(size))


class NodeType(str, Enum):
    RECTANGLE = "rectangle"
    DIAMOND = "diamond"
    ELLIPSE = "ellipse"
    DATABASE = "database"
    IMAGE = "image"

    @classmethod
    def parse(cls, value: Any) -> "NodeType":
        """Map a loose value onto a node type, defaulting to rectangle."""
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.RECTANGLE


class FlowDirection(str, Enum):
    TB = "TB"
    BT = "BT"
    LR = "LR"
    RL = "RL"

    @classmethod
    def parse(cls, value: Any) -> Optional["FlowDirection"]:
        """Return the direction for ``value`` or None when unrecognized."""
        if value is None:
            return None
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            return None


DECORATION_ANCHORS = (
    "top",
    "bottom",
    "left",
    "right",
    "top-left",
    "top-right",
    "bottom-left",
    "bottom-right",
)

DEFAULT_DECORATION_ANCHOR = "top-right"

STICKER_PREFIX = "sticker:"


class _Unset:
    """Marker for a style field that was never given."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET = _Unset()

Arrowhead = Union[str, None, _Unset]


@dataclass
class NodeStyle:
    """Visual overrides for a node. None means "use the element default"."""

    background_color: Optional[str] = None
    stroke_color: Optional[str] = None
    stroke_width: Optional[float] = None
    stroke_style: Optional[str] = None
    fill_style: Optional[str] = None
    opacity: Optional[float] = None
    font_size: Optional[float] = None
    font_family: Optional[int] = None
    roughness: Optional[float] = None

    def is_empty(self) -> bool:
        return all(getattr(self, f.name) is None for f in fields(self))


@dataclass
class EdgeStyle:
    """
    Visual overrides for an edge.

    Arrowheads distinguish absence from an explicit None: ``UNSET`` falls
    back to the default (no start arrowhead, ``arrow`` at the end) while None
    removes the arrowhead.
    """

    stroke_color: Optional[str] = None
    stroke_width: Optional[float] = None
    stroke_style: Optional[str] = None
    roughness: Optional[float] = None
    start_arrowhead: Arrowhead = UNSET
    end_arrowhead: Arrowhead = UNSET

    def resolved_arrowheads(self) -> Tuple[Optional[str], Optional[str]]:
        start = None if self.start_arrowhead is UNSET else self.start_arrowhead
        end = "arrow" if self.end_arrowhead is UNSET else self.end_arrowhead
        return start, end


@dataclass
class ImageSource:
    src: str
    width: Optional[int] = None
    height: Optional[int] = None


@dataclass
class NodeDecoration:
    src: str
    anchor: str = DEFAULT_DECORATION_ANCHOR
    width: Optional[int] = None
    height: Optional[int] = None


@dataclass
class GraphNode:
    """A node in the flowchart graph."""

    id: str
    type: NodeType
    label: str
    style: Optional[NodeStyle] = None
    image: Optional[ImageSource] = None
    decorations: List[NodeDecoration] = field(default_factory=list)


@dataclass
class GraphEdge:
    """A connection between two nodes, referenced by node id."""

    id: str
    source: str
    target: str
    label: Optional[str] = None
    style: Optional[EdgeStyle] = None


_OPTION_ALIASES = {
    "algorithm": "algorithm",
    "direction": "direction",
    "nodeSpacing": "node_spacing",
    "node_spacing": "node_spacing",
    "rankSpacing": "rank_spacing",
    "rank_spacing": "rank_spacing",
    "padding": "padding",
}


@dataclass
class LayoutOptions:
    """Layout configuration options."""

    algorithm: str = config.DEFAULT_ALGORITHM
    direction: FlowDirection = FlowDirection(config.DEFAULT_DIRECTION)
    node_spacing: int = config.DEFAULT_NODE_SPACING
    rank_spacing: int = config.DEFAULT_RANK_SPACING
    padding: int = config.DEFAULT_PADDING

    def merged(self, overrides: Optional[Mapping[str, Any]]) -> "LayoutOptions":
        """
        Return a copy shallow-merged with ``overrides``.

        Keys may be camelCase (``nodeSpacing``) or snake_case
        (``node_spacing``). Unknown keys, None values and values of the wrong
        kind are ignored so the current value stands.

        Args:
            overrides: Mapping of option names to values, or None.

        Returns:
            A new LayoutOptions instance.
        """
        if not overrides:
            return replace(self)

        changes = {}
        for key, value in overrides.items():
            name = _OPTION_ALIASES.get(key)
            if name is None or value is None:
                continue
            if name == "direction":
                direction = FlowDirection.parse(value)
                if direction is not None:
                    changes[name] = direction
            elif name == "algorithm":
                changes[name] = str(value)
            else:
                try:
                    changes[name] = int(value)
                except (TypeError, ValueError):
                    continue
        return replace(self, **changes)


@dataclass(frozen=True)
class AbsolutePosition:
    x: float
    y: float


@dataclass(frozen=True)
class NearPosition:
    node_label: str
    anchor: Optional[str] = None


@dataclass
class PositionedImage:
    """An image placed by an ``@image`` or ``@sticker`` directive."""

    id: str
    src: str
    position: Union[AbsolutePosition, NearPosition]
    width: Optional[int] = None
    height: Optional[int] = None


@dataclass
class ScatterConfig:
    src: str
    count: int = config.DEFAULT_SCATTER_COUNT
    width: Optional[int] = None
    height: Optional[int] = None


@dataclass
class FlowchartGraph:
    """Complete flowchart graph representation produced by every parser."""

    nodes: List[GraphNode] = field(default_factory=list)
    edges: List[GraphEdge] = field(default_factory=list)
    options: LayoutOptions = field(default_factory=LayoutOptions)
    images: List[PositionedImage] = field(default_factory=list)
    scatter: List[ScatterConfig] = field(default_factory=list)
    library: Optional[str] = None

    def get_node(self, node_id: str) -> Optional[GraphNode]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None


@dataclass(frozen=True)
class Point:
    x: float
    y: float


@dataclass(frozen=True)
class LayoutedNode:
    """A graph node with its resolved bounding box."""

    id: str
    type: NodeType
    label: str
    x: float
    y: float
    width: float
    height: float
    style: Optional[NodeStyle] = None
    image: Optional[ImageSource] = None
    decorations: Tuple[NodeDecoration, ...] = ()

    @classmethod
    def from_node(
        cls, node: GraphNode, x: float, y: float, width: float, height: float
    ) -> "LayoutedNode":
        return cls(
            id=node.id,
            type=node.type,
            label=node.label,
            x=x,
            y=y,
            width=width,
            height=height,
            style=node.style,
            image=node.image,
            decorations=tuple(node.decorations),
        )

    @property
    def center(self) -> Point:
        return Point(self.x + self.width / 2, self.y + self.height / 2)


@dataclass(frozen=True)
class LayoutedEdge:
    """
    A graph edge with its routed polyline.

    ``points`` are relative to ``source_point``; the first point is always
    ``(0, 0)``.
    """

    id: str
    source: str
    target: str
    points: Tuple[Tuple[float, float], ...]
    source_point: Point
    target_point: Point
    label: Optional[str] = None
    style: Optional[EdgeStyle] = None


@dataclass(frozen=True)
class LayoutedImage:
    id: str
    src: str
    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True)
class Diagnostic:
    """
    A non-fatal problem that was tolerated.

    Attributes:
        stage: Pipeline stage that detected it ("layout", "placement",
            "generate", ...).
        message: Human readable description.
        subject: Id or label of the entity concerned, when there is one.
    """

    stage: str
    message: str
    subject: Optional[str] = None


@dataclass(frozen=True)
class LayoutedGraph:
    """Graph IR with resolved pixel geometry for every node and edge."""

    nodes: Tuple[LayoutedNode, ...]
    edges: Tuple[LayoutedEdge, ...]
    options: LayoutOptions
    width: float
    height: float
    images: Tuple[LayoutedImage, ...] = ()
    scatter: Tuple[ScatterConfig, ...] = ()
    library: Optional[str] = None
    diagnostics: Tuple[Diagnostic, ...] = ()
