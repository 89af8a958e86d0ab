"""Pytest configuration and shared fixtures for sketchflow tests."""

import asyncio
import random

import pytest
from PIL import Image

from sketchflow import FlowchartGenerator, Parser, layout_graph, parse_dsl
from sketchflow.models import LayoutedNode, NodeType


@pytest.fixture
def simple_input():
    """Simple linear flowchart input."""
    return """
    (Start) -> [Process] -> (End)
    """


@pytest.fixture
def branching_input():
    """Decision with two labeled branches."""
    return """
    [Login] -> {Valid?}
    {Valid?} -> "yes" -> [Dashboard]
    {Valid?} -> "no" -> [Login]
    """


@pytest.fixture
def cyclic_input():
    """Flowchart with a cycle."""
    return """
    [A] -> [B]
    [B] -> [C]
    [C] -> [A]
    """


@pytest.fixture
def dot_input():
    """DOT digraph with styles and an implicit node."""
    return """
    digraph G {
        rankdir=LR;
        start [shape=ellipse, label="Start"];
        check [shape=diamond, label="OK?", fillcolor="#ffec99", style="filled,dashed"];
        start -> check -> done [label="next"];
    }
    """


@pytest.fixture
def json_input():
    """Structured flowchart input as a dictionary."""
    return {
        "nodes": [
            {"id": "a", "type": "ellipse", "label": "Start"},
            {"id": "b", "type": "rectangle", "label": "Work"},
            {"id": "c", "type": "diamond", "label": "Done?"},
        ],
        "edges": [
            {"from": "a", "to": "b"},
            {"from": "b", "to": "c", "label": "check"},
        ],
        "options": {"direction": "LR"},
    }


@pytest.fixture
def parser():
    """Default Parser instance."""
    return Parser()


@pytest.fixture
def generator():
    """FlowchartGenerator with a fixed scatter seed."""
    return FlowchartGenerator(seed=7)


@pytest.fixture
def rng():
    """Seeded random source."""
    return random.Random(1234)


@pytest.fixture
def png_file(tmp_path):
    """A small 40x20 PNG on disk."""
    path = tmp_path / "icon.png"
    Image.new("RGBA", (40, 20), (255, 0, 0, 255)).save(path)
    return path


@pytest.fixture
def sticker_library(tmp_path):
    """A sticker library directory holding star.png."""
    library = tmp_path / "stickers"
    library.mkdir()
    Image.new("RGB", (16, 16), (0, 0, 255)).save(library / "star.png")
    return library


@pytest.fixture
def layout():
    """Synchronously lay out DSL text."""

    def _layout(text, **kwargs):
        return asyncio.run(layout_graph(parse_dsl(text), **kwargs))

    return _layout


@pytest.fixture
def make_node():
    """Build a LayoutedNode with sensible defaults."""

    def _make(node_id="n1", node_type=NodeType.RECTANGLE, label="Node", **kwargs):
        geometry = {"x": 100, "y": 100, "width": 120, "height": 60}
        geometry.update(kwargs)
        return LayoutedNode(id=node_id, type=node_type, label=label, **geometry)

    return _make
