"""
Node sizing heuristics.

The layout engine needs a box for every node before it can place anything.
Text nodes are measured with a fixed character grid; image nodes use their
explicit or default image dimensions.
"""

from typing import Tuple

from . import config
from .images import get_image_dimensions
from .models import GraphNode, NodeType


def calculate_node_dimensions(node: GraphNode) -> Tuple[float, float]:
    """
    Calculate the width and height of a node's box.

    Args:
        node: The node to measure.

    Returns:
        (width, height) in pixels.
    """
    if node.type == NodeType.IMAGE and node.image is not None:
        return get_image_dimensions(
            node.image.src, node.image.width, node.image.height
        )

    lines = node.label.split("\n")
    longest = max(len(line) for line in lines)

    width = longest * config.CHAR_WIDTH + config.NODE_PADDING_X
    height = len(lines) * config.LINE_HEIGHT + config.NODE_PADDING_Y

    min_width, min_height = config.MIN_NODE_DIMENSIONS.get(
        node.type.value, config.MIN_NODE_DIMENSIONS[NodeType.RECTANGLE.value]
    )
    width = max(width, min_width)
    height = max(height, min_height)

    # The rhombus only uses the middle of its box for text
    if node.type == NodeType.DIAMOND:
        width = max(width * config.DIAMOND_SCALE, config.DIAMOND_MIN_WIDTH)
        height = max(height * config.DIAMOND_SCALE, config.DIAMOND_MIN_HEIGHT)

    return width, height
