"""
Parser module for the flowchart DSL.

Handles tokenizing DSL text and assembling the token stream into the graph
intermediate representation.

Syntax:
    [Label]            Rectangle (process step)
    {Label}            Diamond (decision)
    (Label)            Ellipse (start/end)
    [[Label]]          Database
    ![path]            Image node
    ![path](WxH)       Image node with explicit dimensions
    A -> B             Connection
    A -> "label" -> B  Labeled connection
    A --> B            Dashed connection
    A <- B, A <-> B    Reverse and bidirectional connections (and dashed
                       variants <--, <-->)

Directives:
    @direction TB                  Flow direction (TB, BT, LR, RL)
    @spacing N                     Node spacing
    @image path at X,Y             Image at absolute coordinates
    @image path near (Label) [a]   Image next to a node
    @decorate path [anchor]        Decoration on the preceding node
    @sticker name [at X,Y | near (Label) [anchor]]
    @library path                  Sticker library directory
    @scatter path count:N [width:W] [height:H]
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .models import (
    DECORATION_ANCHORS,
    DEFAULT_DECORATION_ANCHOR,
    STICKER_PREFIX,
    AbsolutePosition,
    EdgeStyle,
    FlowchartGraph,
    FlowDirection,
    GraphEdge,
    GraphNode,
    ImageSource,
    LayoutOptions,
    NearPosition,
    NodeDecoration,
    NodeType,
    PositionedImage,
    ScatterConfig,
    new_id,
)

logger = logging.getLogger(__name__)


class ParseError(Exception):
    """Raised when input parsing fails."""

    pass


class TokenType(Enum):
    NODE = "node"
    ARROW = "arrow"
    LABEL = "label"
    DIRECTIVE = "directive"
    NEWLINE = "newline"
    IMAGE = "image"
    DECORATE = "decorate"


@dataclass
class Token:
    """A lexical token. Only the fields relevant to ``type`` are set."""

    type: TokenType
    value: str = ""
    node_type: Optional[NodeType] = None
    dashed: bool = False
    reverse: bool = False
    bidirectional: bool = False
    image_width: Optional[int] = None
    image_height: Optional[int] = None
    anchor: Optional[str] = None


# Longest spelling first so "<-->" never lexes as "<-" followed by "->".
ARROW_FORMS: List[Tuple[str, bool, bool, bool]] = [
    # (spelling, dashed, reverse, bidirectional)
    ("<-->", True, False, True),
    ("<->", False, False, True),
    ("<--", True, True, False),
    ("<-", False, True, False),
    ("-->", True, False, False),
    ("->", False, False, False),
]

_BRACKETS = {
    "[": ("]", NodeType.RECTANGLE),
    "{": ("}", NodeType.DIAMOND),
    "(": (")", NodeType.ELLIPSE),
}

_DIMENSIONS_PATTERN = re.compile(r"^(\d+)\s*[xX]\s*(\d+)$")
_IMAGE_AT_PATTERN = re.compile(r"^(.+?)\s+at\s+(\d+)\s*,\s*(\d+)$", re.IGNORECASE)
_IMAGE_NEAR_PATTERN = re.compile(
    r"^(.+?)\s+near\s+\(([^)]+)\)(?:\s+(\S+))?$", re.IGNORECASE
)


def _read_until(text: str, i: int, stop: str) -> Tuple[str, int]:
    """Read from ``i`` up to (not including) ``stop``; return text and stop index."""
    end = text.find(stop, i)
    if end == -1:
        end = len(text)
    return text[i:end], end


def _read_balanced(text: str, i: int, opener: str, closer: str) -> Tuple[str, int]:
    """
    Read a delimited literal body starting just after its opening delimiter.

    Nested occurrences of the same delimiter pair are counted so that
    ``[A[1]]`` yields ``A[1]``.

    Returns:
        The body and the index just past the closing delimiter.
    """
    depth = 1
    start = i
    while i < len(text):
        ch = text[i]
        if ch == opener:
            depth += 1
        elif ch == closer:
            depth -= 1
            if depth == 0:
                return text[start:i], i + 1
        i += 1
    return text[start:], i


def tokenize(text: str) -> List[Token]:
    """
    Convert DSL text into a flat token stream.

    Comments and whitespace are discarded, unknown characters are skipped,
    and every newline becomes an explicit NEWLINE token.

    Args:
        text: Raw DSL source.

    Returns:
        List of tokens in source order.
    """
    tokens: List[Token] = []
    i = 0
    length = len(text)

    while i < length:
        ch = text[i]

        if ch in " \t\r":
            i += 1
            continue

        if ch == "\n":
            tokens.append(Token(TokenType.NEWLINE, "\n"))
            i += 1
            continue

        if ch == "#":
            _, i = _read_until(text, i, "\n")
            continue

        # Image ![src] or ![src](WxH)
        if text.startswith("![", i):
            src, i = _read_until(text, i + 2, "]")
            i += 1
            width = height = None
            if i < length and text[i] == "(":
                dims, i = _read_until(text, i + 1, ")")
                i += 1
                match = _DIMENSIONS_PATTERN.match(dims.strip())
                if match:
                    width, height = int(match.group(1)), int(match.group(2))
            tokens.append(
                Token(
                    TokenType.IMAGE,
                    src.strip(),
                    node_type=NodeType.IMAGE,
                    image_width=width,
                    image_height=height,
                )
            )
            continue

        if ch == "@":
            i += 1
            start = i
            while i < length and text[i].isalnum():
                i += 1
            name = text[start:i]
            while i < length and text[i] in " \t":
                i += 1
            start = i
            while i < length and text[i] not in "\n#@":
                i += 1
            value = text[start:i].strip()

            if name == "decorate":
                parts = value.split()
                src = parts[0] if parts else ""
                anchor = parts[1] if len(parts) > 1 else DEFAULT_DECORATION_ANCHOR
                if anchor not in DECORATION_ANCHORS:
                    anchor = DEFAULT_DECORATION_ANCHOR
                tokens.append(Token(TokenType.DECORATE, src, anchor=anchor))
            else:
                tokens.append(Token(TokenType.DIRECTIVE, f"{name} {value}"))
            continue

        if text.startswith("[[", i):
            label, i = _read_until(text, i + 2, "]]")
            i += 2
            tokens.append(
                Token(TokenType.NODE, label.strip(), node_type=NodeType.DATABASE)
            )
            continue

        if ch in _BRACKETS:
            closer, node_type = _BRACKETS[ch]
            label, i = _read_balanced(text, i + 1, ch, closer)
            tokens.append(Token(TokenType.NODE, label.strip(), node_type=node_type))
            continue

        arrow = None
        for spelling, dashed, reverse, bidirectional in ARROW_FORMS:
            if text.startswith(spelling, i):
                arrow = Token(
                    TokenType.ARROW,
                    spelling,
                    dashed=dashed,
                    reverse=reverse,
                    bidirectional=bidirectional,
                )
                i += len(spelling)
                break
        if arrow is not None:
            tokens.append(arrow)
            continue

        if ch == '"':
            i += 1
            buf = []
            while i < length and text[i] != '"':
                if text[i] == "\\" and i + 1 < length:
                    i += 1
                buf.append(text[i])
                i += 1
            i += 1
            tokens.append(Token(TokenType.LABEL, "".join(buf)))
            continue

        i += 1

    return tokens


def arrow_style(token: Token) -> EdgeStyle:
    """
    Resolve an arrow token's flags into an edge style.

    forward: (None, "arrow"); reverse: ("arrow", None); bidirectional:
    ("arrow", "arrow"). Dashing is independent of direction.
    """
    if token.bidirectional:
        start, end = "arrow", "arrow"
    elif token.reverse:
        start, end = "arrow", None
    else:
        start, end = None, "arrow"
    return EdgeStyle(
        stroke_style="dashed" if token.dashed else "solid",
        start_arrowhead=start,
        end_arrowhead=end,
    )


def parse_image_directive(value: str) -> Optional[PositionedImage]:
    """
    Parse an ``@image`` directive value.

    Formats:
        path at X,Y
        path near (Label)
        path near (Label) anchor

    Returns:
        A PositionedImage, or None when the value matches neither form.
    """
    value = value.strip()
    match = _IMAGE_AT_PATTERN.match(value)
    if match:
        return PositionedImage(
            id=new_id(),
            src=match.group(1).strip(),
            position=AbsolutePosition(int(match.group(2)), int(match.group(3))),
        )

    match = _IMAGE_NEAR_PATTERN.match(value)
    if match:
        anchor = match.group(3)
        if anchor is not None and anchor not in DECORATION_ANCHORS:
            logger.debug("Ignoring unknown anchor %r in @image directive", anchor)
            anchor = None
        return PositionedImage(
            id=new_id(),
            src=match.group(1).strip(),
            position=NearPosition(match.group(2).strip(), anchor),
        )

    return None


def parse_scatter_directive(value: str) -> Optional[ScatterConfig]:
    """Parse an ``@scatter path count:N [width:W] [height:H]`` value."""
    parts = value.split()
    if len(parts) < 2:
        return None

    scatter = ScatterConfig(src=parts[0])
    for part in parts[1:]:
        key, _, raw = part.partition(":")
        if not raw.isdigit():
            continue
        if key == "count":
            scatter.count = int(raw)
        elif key == "width":
            scatter.width = int(raw)
        elif key == "height":
            scatter.height = int(raw)
    return scatter


class Parser:
    """
    Assembles DSL tokens into a FlowchartGraph.

    State is kept per ``parse`` call: the node registry keyed by
    ``(type, label)``, the last node of the current chain, and the pending
    arrow and label waiting for the next node.
    """

    def __init__(self):
        self._reset()

    def _reset(self) -> None:
        self.nodes: Dict[Tuple[NodeType, str], GraphNode] = {}
        self.edges: List[GraphEdge] = []
        self.images: List[PositionedImage] = []
        self.scatter: List[ScatterConfig] = []
        self.library: Optional[str] = None
        self.options = LayoutOptions()
        self.last_node: Optional[GraphNode] = None
        self.pending_arrow: Optional[Token] = None
        self.pending_label: Optional[str] = None

    def parse(
        self, input_text: str, options: Optional[Mapping[str, Any]] = None
    ) -> FlowchartGraph:
        """
        Parse DSL text into a FlowchartGraph.

        Args:
            input_text: DSL source.
            options: Caller-supplied layout options. Directives in the text
                take precedence over these.

        Returns:
            The parsed graph.
        """
        self._reset()
        self.options = LayoutOptions().merged(options)

        for token in tokenize(input_text):
            if token.type == TokenType.NEWLINE:
                self._end_chain()
            elif token.type == TokenType.DIRECTIVE:
                self._apply_directive(token.value)
            elif token.type == TokenType.DECORATE:
                self._decorate(token)
            elif token.type in (TokenType.NODE, TokenType.IMAGE):
                self._visit_node(token)
            elif token.type == TokenType.ARROW:
                self.pending_arrow = token
            elif token.type == TokenType.LABEL:
                self.pending_label = token.value

        graph = FlowchartGraph(
            nodes=list(self.nodes.values()),
            edges=list(self.edges),
            options=self.options,
            images=list(self.images),
            scatter=list(self.scatter),
            library=self.library,
        )
        logger.debug(
            "Parsed DSL: %d nodes, %d edges", len(graph.nodes), len(graph.edges)
        )
        return graph

    def _end_chain(self) -> None:
        self.last_node = None
        self.pending_arrow = None
        self.pending_label = None

    def _get_or_create_node(self, token: Token) -> GraphNode:
        key = (token.node_type, token.value)
        node = self.nodes.get(key)
        if node is None:
            node = GraphNode(id=new_id(), type=token.node_type, label=token.value)
            if token.type == TokenType.IMAGE:
                node.image = ImageSource(
                    src=token.value,
                    width=token.image_width,
                    height=token.image_height,
                )
            self.nodes[key] = node
        return node

    def _visit_node(self, token: Token) -> None:
        node = self._get_or_create_node(token)

        if self.last_node is not None and self.pending_arrow is not None:
            self.edges.append(
                GraphEdge(
                    id=new_id(),
                    source=self.last_node.id,
                    target=node.id,
                    label=self.pending_label or None,
                    style=arrow_style(self.pending_arrow),
                )
            )

        self.pending_arrow = None
        self.pending_label = None
        self.last_node = node

    def _decorate(self, token: Token) -> None:
        if self.last_node is None or not token.value:
            return
        self.last_node.decorations.append(
            NodeDecoration(src=token.value, anchor=token.anchor)
        )

    def _apply_directive(self, directive: str) -> None:
        name, _, value = directive.partition(" ")
        value = value.strip()

        if name == "direction":
            direction = FlowDirection.parse(value)
            if direction is not None:
                self.options.direction = direction
        elif name == "spacing":
            try:
                self.options.node_spacing = int(value.split()[0])
            except (IndexError, ValueError):
                pass
        elif name == "image":
            image = parse_image_directive(value)
            if image is not None:
                self.images.append(image)
        elif name == "scatter":
            scatter = parse_scatter_directive(value)
            if scatter is not None:
                self.scatter.append(scatter)
        elif name == "library":
            if value:
                self.library = value
        elif name == "sticker":
            self._apply_sticker(value)
        else:
            logger.debug("Ignoring unknown directive @%s", name)

    def _apply_sticker(self, value: str) -> None:
        parts = value.split()
        if not parts:
            return
        src = f"{STICKER_PREFIX}{parts[0]}"
        rest = parts[1:]

        if rest and rest[0].lower() in ("at", "near"):
            image = parse_image_directive(f"{src} {' '.join(rest)}")
            if image is not None:
                self.images.append(image)
            return

        # Placed at the origin until a default position is resolved.
        self.images.append(
            PositionedImage(id=new_id(), src=src, position=AbsolutePosition(0, 0))
        )


def parse_dsl(
    input_text: str, options: Optional[Mapping[str, Any]] = None
) -> FlowchartGraph:
    """
    Convenience function to parse DSL input.

    Args:
        input_text: DSL source.
        options: Optional caller-supplied layout options.

    Returns:
        The parsed FlowchartGraph.
    """
    return Parser().parse(input_text, options)
