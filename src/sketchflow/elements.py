"""
Element factories for drawing documents.

Every factory returns a plain dictionary using the document's field names so
the generator can serialize elements without a translation step. Elements
are created with ``index`` unset; an ElementIndexer assigns stacking keys
once the final element order is known.
"""

import random
import time
from typing import Any, Dict, List, Optional, Sequence, Tuple

from . import config
from .models import (
    EdgeStyle,
    LayoutedEdge,
    LayoutedImage,
    LayoutedNode,
    NodeStyle,
    NodeType,
    new_id,
)

Element = Dict[str, Any]

INDEX_DIGITS = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz"

_SHAPE_TYPES = {
    NodeType.RECTANGLE: "rectangle",
    NodeType.DIAMOND: "diamond",
    NodeType.ELLIPSE: "ellipse",
    # Databases render as rectangles
    NodeType.DATABASE: "rectangle",
}

_SHAPE_ROUNDNESS = {
    "rectangle": {"type": 3},
    "diamond": {"type": 2},
    "ellipse": None,
}

_NODE_STYLE_FIELDS = {
    "stroke_color": "strokeColor",
    "background_color": "backgroundColor",
    "stroke_width": "strokeWidth",
    "stroke_style": "strokeStyle",
    "fill_style": "fillStyle",
    "opacity": "opacity",
    "roughness": "roughness",
}

_EDGE_STYLE_FIELDS = {
    "stroke_color": "strokeColor",
    "stroke_width": "strokeWidth",
    "stroke_style": "strokeStyle",
    "roughness": "roughness",
}


def index_key(position: int) -> str:
    """
    Return the fractional-index key for the ``position``-th element.

    Keys sort lexicographically in position order: ``a0`` .. ``az`` cover the
    first 62 positions, ``b00`` .. ``bzz`` the next 3844, and so on.
    """
    if position < 0:
        raise ValueError("position must not be negative")

    base = len(INDEX_DIGITS)
    width = 1
    head = ord("a")
    capacity = base
    while position >= capacity:
        position -= capacity
        width += 1
        head += 1
        capacity = base**width

    digits = []
    for _ in range(width):
        position, digit = divmod(position, base)
        digits.append(INDEX_DIGITS[digit])
    return chr(head) + "".join(reversed(digits))


class ElementIndexer:
    """
    Stacking-order counter owned by a single generation call.

    Later keys render on top of earlier ones.
    """

    def __init__(self):
        self.counter = 0

    def next_key(self) -> str:
        key = index_key(self.counter)
        self.counter += 1
        return key

    def assign(self, elements: Sequence[Element]) -> None:
        """Give every element the next key, in sequence order."""
        for element in elements:
            element["index"] = self.next_key()


def _random_int() -> int:
    return random.randint(1, 2**31 - 1)


def create_base_element(
    element_type: str,
    x: float,
    y: float,
    width: float,
    height: float,
    **overrides: Any,
) -> Element:
    """
    Create the fields shared by every element.

    Keyword overrides replace defaults by document field name; overrides
    whose value is None are ignored except for fields whose default is
    already None.
    """
    element: Element = {
        "id": new_id(21),
        "type": element_type,
        "x": x,
        "y": y,
        "width": width,
        "height": height,
        "angle": 0,
        **config.DEFAULT_ELEMENT_STYLE,
        "groupIds": [],
        "frameId": None,
        "index": None,
        "roundness": None,
        "seed": _random_int(),
        "version": 1,
        "versionNonce": _random_int(),
        "isDeleted": False,
        "boundElements": None,
        "updated": int(time.time() * 1000),
        "link": None,
        "locked": False,
    }
    for key, value in overrides.items():
        if value is not None or element.get(key) is None:
            element[key] = value
    return element


def _style_overrides(style: Any, fields: Dict[str, str]) -> Dict[str, Any]:
    if style is None:
        return {}
    return {
        name: getattr(style, attr)
        for attr, name in fields.items()
        if getattr(style, attr) is not None
    }


def create_shape(
    node: LayoutedNode, bound_elements: Optional[List[Dict[str, str]]] = None
) -> Element:
    """
    Create the shape element for a non-image node.

    The element reuses the node id so arrow bindings can point at it.
    """
    shape_type = _SHAPE_TYPES.get(node.type, "rectangle")
    return create_base_element(
        shape_type,
        node.x,
        node.y,
        node.width,
        node.height,
        id=node.id,
        roundness=_SHAPE_ROUNDNESS[shape_type],
        boundElements=bound_elements or None,
        **_style_overrides(node.style, _NODE_STYLE_FIELDS),
    )


def text_dimensions(text: str, font_size: float) -> Tuple[float, float]:
    """Approximate rendered text size from glyph width and line height."""
    lines = text.split("\n")
    longest = max(len(line) for line in lines)
    return (
        longest * font_size * config.GLYPH_WIDTH_RATIO,
        len(lines) * font_size * config.DEFAULT_TEXT_LINE_HEIGHT,
    )


def create_text(
    text: str,
    x: float,
    y: float,
    container_id: Optional[str] = None,
    font_size: Optional[float] = None,
    font_family: Optional[int] = None,
    element_id: Optional[str] = None,
) -> Element:
    """Create a text element whose top-left corner is at (x, y)."""
    font_size = font_size or config.DEFAULT_FONT_SIZE
    width, height = text_dimensions(text, font_size)
    element = create_base_element("text", x, y, width, height, id=element_id)
    element.update(
        {
            "text": text,
            "fontSize": font_size,
            "fontFamily": font_family or config.DEFAULT_FONT_FAMILY,
            "textAlign": "center",
            "verticalAlign": "middle",
            "containerId": container_id,
            "originalText": text,
            "autoResize": True,
            "lineHeight": config.DEFAULT_TEXT_LINE_HEIGHT,
        }
    )
    return element


def create_node_label(node: LayoutedNode) -> Element:
    """Create the label text centred inside a node. It is never bound."""
    style = node.style or NodeStyle()
    font_size = style.font_size or config.DEFAULT_FONT_SIZE
    width, height = text_dimensions(node.label, font_size)
    return create_text(
        node.label,
        node.x + (node.width - width) / 2,
        node.y + (node.height - height) / 2,
        font_size=font_size,
        font_family=style.font_family,
    )


def route_midpoint(edge: LayoutedEdge) -> Tuple[float, float]:
    """
    Absolute position for an edge label.

    Two-point routes use the segment midpoint; longer routes use the middle
    vertex.
    """
    start_x, start_y = edge.source_point.x, edge.source_point.y
    points = edge.points
    if len(points) == 2:
        return (
            start_x + (points[0][0] + points[1][0]) / 2,
            start_y + (points[0][1] + points[1][1]) / 2,
        )
    if len(points) > 2:
        middle = points[len(points) // 2]
        return start_x + middle[0], start_y + middle[1]
    return start_x, start_y


def edge_label_id(edge_id: str) -> str:
    return f"text-{edge_id}"


def create_edge_label(edge: LayoutedEdge, arrow_id: str) -> Element:
    """Create an edge label bound to its arrow."""
    label = edge.label or ""
    width, height = text_dimensions(label, config.DEFAULT_FONT_SIZE)
    mid_x, mid_y = route_midpoint(edge)
    return create_text(
        label,
        mid_x - width / 2,
        mid_y - height / 2,
        container_id=arrow_id,
        element_id=edge_label_id(arrow_id),
    )


def _clamp(value: float) -> float:
    return min(max(value, 0.0), 1.0)


def fixed_point(
    node: LayoutedNode, x: float, y: float, toward: LayoutedNode
) -> Tuple[float, float]:
    """
    Normalized attachment point of (x, y) on ``node``'s box.

    A point strictly inside the box (a centre-to-centre fallback route) is
    snapped to the middle of the side facing ``toward``.
    """
    if node.width <= 0 or node.height <= 0:
        return 0.5, 0.5

    fx = (x - node.x) / node.width
    fy = (y - node.y) / node.height
    inside = 0 < fx < 1 and 0 < fy < 1
    if not inside:
        return _clamp(fx), _clamp(fy)

    center, other = node.center, toward.center
    dx, dy = other.x - center.x, other.y - center.y
    if dx == 0 and dy == 0:
        return 0.5, 0.5
    if abs(dy) * node.width >= abs(dx) * node.height:
        return 0.5, 1.0 if dy > 0 else 0.0
    return 1.0 if dx > 0 else 0.0, 0.5


def create_binding(
    node: Optional[LayoutedNode], x: float, y: float, toward: LayoutedNode
) -> Optional[Dict[str, Any]]:
    """Binding of an arrow end to a shape; None for image nodes."""
    if node is None or node.type == NodeType.IMAGE:
        return None
    fx, fy = fixed_point(node, x, y, toward)
    return {"elementId": node.id, "mode": "orbit", "fixedPoint": [fx, fy]}


def create_arrow(
    edge: LayoutedEdge,
    source: LayoutedNode,
    target: LayoutedNode,
    bound_elements: Optional[List[Dict[str, str]]] = None,
) -> Element:
    """
    Create the arrow element for a routed edge.

    The arrow is positioned at the route's start point and carries the
    route as relative points. Its size is the bounding box of the points.
    """
    xs = [p[0] for p in edge.points] or [0.0]
    ys = [p[1] for p in edge.points] or [0.0]
    width = max(max(xs), 0) - min(min(xs), 0)
    height = max(max(ys), 0) - min(min(ys), 0)

    style = edge.style or EdgeStyle()
    start_arrowhead, end_arrowhead = style.resolved_arrowheads()

    element = create_base_element(
        "arrow",
        edge.source_point.x,
        edge.source_point.y,
        width,
        height,
        id=edge.id,
        roundness={"type": 2},
        boundElements=bound_elements or None,
        **_style_overrides(edge.style, _EDGE_STYLE_FIELDS),
    )
    element.update(
        {
            "points": [list(p) for p in edge.points],
            "lastCommittedPoint": None,
            "startBinding": create_binding(
                source, edge.source_point.x, edge.source_point.y, target
            ),
            "endBinding": create_binding(
                target, edge.target_point.x, edge.target_point.y, source
            ),
            "startArrowhead": start_arrowhead,
            "endArrowhead": end_arrowhead,
            "elbowed": False,
        }
    )
    return element


def create_image_element(
    element_id: str,
    x: float,
    y: float,
    width: float,
    height: float,
    file_id: str,
) -> Element:
    """Create an image element referencing an embedded file."""
    element = create_base_element(
        "image",
        x,
        y,
        width,
        height,
        id=element_id,
        backgroundColor="transparent",
    )
    element.update({"fileId": file_id, "status": "saved", "scale": [1, 1]})
    return element


def create_node_image(node: LayoutedNode, file_id: str) -> Element:
    return create_image_element(
        node.id, node.x, node.y, node.width, node.height, file_id
    )


def create_positioned_image(image: LayoutedImage, file_id: str) -> Element:
    return create_image_element(
        image.id, image.x, image.y, image.width, image.height, file_id
    )
