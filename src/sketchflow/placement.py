"""
Placement of auxiliary images around a laid-out graph.

Directive images (``@image``/``@sticker``), node decorations and scatter
instances are not part of the graph the layout engine sees. They are placed
here once node boxes are known.
"""

import logging
import random
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from . import config
from .models import (
    AbsolutePosition,
    Diagnostic,
    LayoutedImage,
    LayoutedNode,
    NearPosition,
    NodeDecoration,
    PositionedImage,
    ScatterConfig,
    new_id,
)

logger = logging.getLogger(__name__)


def anchor_offset(
    anchor: Optional[str],
    node_width: float,
    node_height: float,
    image_width: float,
    image_height: float,
) -> Tuple[float, float]:
    """
    Offset of an image's top-left corner relative to its node's top-left.

    Side anchors sit just outside the box, separated by a small margin and
    centred along that side. Corner anchors centre the image on the corner.
    Unknown or missing anchors behave like ``top-right``.

    Args:
        anchor: One of the eight anchor names, or None.
        node_width: Width of the node box.
        node_height: Height of the node box.
        image_width: Width of the placed image.
        image_height: Height of the placed image.

    Returns:
        (dx, dy) offset.
    """
    margin = config.ANCHOR_MARGIN

    if anchor == "top":
        return (node_width - image_width) / 2, -image_height - margin
    if anchor == "bottom":
        return (node_width - image_width) / 2, node_height + margin
    if anchor == "left":
        return -image_width - margin, (node_height - image_height) / 2
    if anchor == "right":
        return node_width + margin, (node_height - image_height) / 2
    if anchor == "top-left":
        return -image_width / 2, -image_height / 2
    if anchor == "bottom-left":
        return -image_width / 2, node_height - image_height / 2
    if anchor == "bottom-right":
        return node_width - image_width / 2, node_height - image_height / 2
    return node_width - image_width / 2, -image_height / 2


def _placed_size(width: Optional[float], height: Optional[float]) -> Tuple[float, float]:
    size = config.DEFAULT_PLACED_IMAGE_SIZE
    return (
        width if width and width > 0 else size,
        height if height and height > 0 else size,
    )


def resolve_positioned_images(
    images: Iterable[PositionedImage],
    nodes: Sequence[LayoutedNode],
    diagnostics: List[Diagnostic],
) -> List[LayoutedImage]:
    """
    Resolve directive images to absolute coordinates.

    Absolute placements pass through. Near placements look up the node by
    label; when several nodes share a label the last one wins. A missing
    node places the image at the canvas origin and records a diagnostic.

    Args:
        images: Directive images from the graph.
        nodes: Laid-out nodes.
        diagnostics: List that soft failures are appended to.

    Returns:
        Resolved images in directive order.
    """
    node_by_label: Dict[str, LayoutedNode] = {node.label: node for node in nodes}
    resolved: List[LayoutedImage] = []

    for image in images:
        width, height = _placed_size(image.width, image.height)
        position = image.position

        if isinstance(position, AbsolutePosition):
            x, y = position.x, position.y
        elif isinstance(position, NearPosition):
            node = node_by_label.get(position.node_label)
            if node is not None:
                dx, dy = anchor_offset(
                    position.anchor, node.width, node.height, width, height
                )
                x, y = node.x + dx, node.y + dy
            else:
                message = (
                    f'Node "{position.node_label}" not found for positioned image'
                )
                logger.warning(message)
                diagnostics.append(
                    Diagnostic("placement", message, subject=position.node_label)
                )
                x, y = 0, 0
        else:
            logger.warning("Unsupported image position %r for %s", position, image.id)
            continue

        resolved.append(
            LayoutedImage(
                id=image.id, src=image.src, x=x, y=y, width=width, height=height
            )
        )

    return resolved


def decoration_position(
    node: LayoutedNode, decoration: NodeDecoration
) -> Tuple[float, float, float, float]:
    """Return (x, y, width, height) for a decoration attached to ``node``."""
    width, height = _placed_size(decoration.width, decoration.height)
    dx, dy = anchor_offset(decoration.anchor, node.width, node.height, width, height)
    return node.x + dx, node.y + dy, width, height


def scatter_images(
    configs: Iterable[ScatterConfig],
    canvas_width: float,
    canvas_height: float,
    rng: Optional[random.Random] = None,
) -> List[LayoutedImage]:
    """
    Place scatter instances uniformly at random inside the canvas.

    Each axis is sampled independently from ``[0, canvas - size)``. Overlaps
    with nodes or with each other are allowed.

    Args:
        configs: Scatter configurations.
        canvas_width: Canvas width.
        canvas_height: Canvas height.
        rng: Random source; a freshly seeded generator when omitted.

    Returns:
        One LayoutedImage per instance, grouped by configuration.
    """
    rng = rng or random.Random()
    placed: List[LayoutedImage] = []

    for scatter in configs:
        width, height = _placed_size(scatter.width, scatter.height)
        max_x = max(canvas_width - width, 0)
        max_y = max(canvas_height - height, 0)
        for _ in range(max(scatter.count, 0)):
            placed.append(
                LayoutedImage(
                    id=new_id(),
                    src=scatter.src,
                    x=rng.random() * max_x,
                    y=rng.random() * max_y,
                    width=width,
                    height=height,
                )
            )

    return placed
