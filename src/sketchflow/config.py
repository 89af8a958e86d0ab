"""
Centralized defaults for sketchflow.

Layout defaults, node sizing heuristics, element style defaults and the
application state written into every generated document live here so that
parsers, layout and factories agree on the same numbers.
"""

from typing import Dict, Tuple

# Layout options
DEFAULT_ALGORITHM = "layered"
DEFAULT_DIRECTION = "TB"
DEFAULT_NODE_SPACING = 50
DEFAULT_RANK_SPACING = 80
DEFAULT_PADDING = 50

# Node sizing (pixels)
CHAR_WIDTH = 10
LINE_HEIGHT = 25
NODE_PADDING_X = 40
NODE_PADDING_Y = 30

MIN_NODE_DIMENSIONS: Dict[str, Tuple[int, int]] = {
    "rectangle": (100, 60),
    "diamond": (120, 80),
    "ellipse": (100, 60),
    "database": (100, 70),
}

DIAMOND_SCALE = 1.4
DIAMOND_MIN_WIDTH = 140
DIAMOND_MIN_HEIGHT = 100

DEFAULT_IMAGE_WIDTH = 100
DEFAULT_IMAGE_HEIGHT = 100

# Directive images, decorations and scatter instances
DEFAULT_PLACED_IMAGE_SIZE = 50
DEFAULT_SCATTER_COUNT = 10
ANCHOR_MARGIN = 5

# Document elements
DEFAULT_ELEMENT_STYLE = {
    "strokeColor": "#1e1e1e",
    "backgroundColor": "transparent",
    "fillStyle": "solid",
    "strokeWidth": 2,
    "strokeStyle": "solid",
    "roughness": 1,
    "opacity": 100,
}

FONT_FAMILIES = {
    "Virgil": 1,
    "Helvetica": 2,
    "Cascadia": 3,
    "Excalifont": 5,
}

DEFAULT_FONT_SIZE = 20
DEFAULT_FONT_FAMILY = FONT_FAMILIES["Excalifont"]
DEFAULT_TEXT_LINE_HEIGHT = 1.25
GLYPH_WIDTH_RATIO = 0.6

DEFAULT_APP_STATE = {
    "gridSize": 20,
    "gridStep": 5,
    "gridModeEnabled": False,
    "viewBackgroundColor": "#ffffff",
    "lockedMultiSelections": {},
}

DOCUMENT_TYPE = "excalidraw"
DOCUMENT_VERSION = 2
DOCUMENT_SOURCE = "https://github.com/sketchflow/sketchflow"

# Export
DEFAULT_EXPORT_PADDING = 10
