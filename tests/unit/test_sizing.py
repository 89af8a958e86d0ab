"""Unit tests for node sizing."""

import pytest

from sketchflow.images import get_image_dimensions
from sketchflow.models import GraphNode, ImageSource, NodeType
from sketchflow.sizing import calculate_node_dimensions


def _node(label, node_type=NodeType.RECTANGLE, image=None):
    return GraphNode(id="n", type=node_type, label=label, image=image)


class TestCalculateNodeDimensions:
    """Tests for calculate_node_dimensions."""

    def test_short_label_uses_minimum(self):
        """Test short labels are floored by the shape minimum."""
        assert calculate_node_dimensions(_node("A")) == (100, 60)

    def test_long_label_grows_width(self):
        """Test width follows the longest line."""
        width, height = calculate_node_dimensions(_node("x" * 20))

        assert width == 20 * 10 + 40
        assert height == 60

    def test_multiline_label_grows_height(self):
        """Test height follows the line count."""
        width, height = calculate_node_dimensions(_node("one\ntwo\nthree"))

        assert height == 3 * 25 + 30
        assert width == 100

    def test_database_minimum(self):
        """Test database nodes are taller by default."""
        assert calculate_node_dimensions(_node("DB", NodeType.DATABASE)) == (100, 70)

    def test_diamond_scaling(self):
        """Test diamonds are scaled and floored."""
        width, height = calculate_node_dimensions(_node("?", NodeType.DIAMOND))

        assert width == pytest.approx(168)
        assert height == pytest.approx(112)

    def test_diamond_long_label(self):
        """Test diamond scaling applies after text sizing."""
        width, _ = calculate_node_dimensions(_node("x" * 30, NodeType.DIAMOND))
        assert width == (30 * 10 + 40) * 1.4

    def test_image_node_explicit_size(self):
        """Test image nodes use explicit dimensions."""
        node = _node("pic.png", NodeType.IMAGE, ImageSource("pic.png", 64, 48))
        assert calculate_node_dimensions(node) == (64, 48)

    def test_image_node_default_size(self):
        """Test missing image files fall back to the default size."""
        node = _node("missing.png", NodeType.IMAGE, ImageSource("missing.png"))
        assert calculate_node_dimensions(node) == (100, 100)


class TestImageDimensions:
    """Tests for get_image_dimensions."""

    def test_unsized_image_uses_default(self, png_file):
        """Test an image without explicit size ignores its own pixel size."""
        assert get_image_dimensions(str(png_file)) == (100, 100)

    def test_explicit_size_wins(self, png_file):
        """Test explicit width and height are used as given."""
        assert get_image_dimensions(str(png_file), width=64, height=48) == (64, 48)

    def test_single_dimension_keeps_aspect(self, png_file):
        """Test one explicit dimension scales the other."""
        assert get_image_dimensions(str(png_file), width=80) == (80, 40)
        assert get_image_dimensions(str(png_file), height=10) == (20, 10)

    def test_url_uses_defaults(self):
        """Test remote sources use defaults."""
        assert get_image_dimensions("https://example.com/a.png", width=30) == (30, 100)
