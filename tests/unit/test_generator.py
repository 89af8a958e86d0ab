"""Unit tests for the generator module."""

import asyncio
import json

import pytest

from sketchflow import config
from sketchflow.generator import (
    FlowchartGenerator,
    create_flowchart_from_dot,
    create_flowchart_from_dsl,
    create_flowchart_from_json,
    generate_document,
    parse_input,
    serialize_document,
)
from sketchflow.models import FlowDirection
from sketchflow.parser import ParseError


def _by_type(document, element_type):
    return [e for e in document["elements"] if e["type"] == element_type]


def assert_references_resolve(document):
    """Every id an element points at exists in the same document."""
    ids = {e["id"] for e in document["elements"]}
    for element in document["elements"]:
        for bound in element["boundElements"] or []:
            assert bound["id"] in ids
        if element.get("containerId") is not None:
            assert element["containerId"] in ids
        if element["type"] == "image":
            assert element["fileId"] in document["files"]
        if element["type"] == "arrow":
            for binding in (element["startBinding"], element["endBinding"]):
                if binding is not None:
                    assert binding["elementId"] in ids


class TestFlowchartGeneratorInit:
    """Tests for FlowchartGenerator initialization."""

    def test_default_initialization(self):
        """Test FlowchartGenerator with default parameters."""
        gen = FlowchartGenerator()

        assert gen.options == {}
        assert gen.engine is None
        assert gen.timeout is None
        assert gen.last_diagnostics == []

    def test_caller_options_are_camel_case(self):
        """Test constructor options are stored under option names."""
        gen = FlowchartGenerator(direction="LR", node_spacing=30, padding=10)
        assert gen.options == {"direction": "LR", "nodeSpacing": 30, "padding": 10}

    def test_directive_beats_caller_option(self):
        """Test in-text directives win over constructor options."""
        gen = FlowchartGenerator(direction="LR")

        assert gen.parse("[A] -> [B]").options.direction == FlowDirection.LR
        graph = gen.parse("@direction BT\n[A] -> [B]")
        assert graph.options.direction == FlowDirection.BT


class TestDocumentStructure:
    """Tests for the generated document shape."""

    def test_document_header(self, generator, simple_input):
        """Test the top-level document fields."""
        document = generator.generate(simple_input)

        assert document["type"] == "excalidraw"
        assert document["version"] == 2
        assert document["source"] == config.DOCUMENT_SOURCE
        assert document["appState"]["viewBackgroundColor"] == "#ffffff"
        assert document["files"] == {}

    def test_app_state_is_a_copy(self, generator, simple_input):
        """Test mutating a document does not leak into defaults."""
        document = generator.generate(simple_input)
        document["appState"]["gridSize"] = 99

        assert config.DEFAULT_APP_STATE["gridSize"] == 20

    def test_element_order(self, generator, simple_input):
        """Test shapes and labels come first, then arrows."""
        document = generator.generate(simple_input)

        assert [e["type"] for e in document["elements"]] == [
            "ellipse",
            "text",
            "rectangle",
            "text",
            "ellipse",
            "text",
            "arrow",
            "arrow",
        ]

    def test_indices_are_increasing(self, generator, branching_input):
        """Test stacking keys follow element order."""
        document = generator.generate(branching_input)
        indices = [e["index"] for e in document["elements"]]

        assert indices[0] == "a0"
        assert indices == sorted(indices)
        assert len(set(indices)) == len(indices)

    def test_node_labels_are_unbound(self, generator, simple_input):
        """Test node labels have no container."""
        document = generator.generate(simple_input)
        assert all(t["containerId"] is None for t in _by_type(document, "text"))

    def test_references_resolve(self, generator, branching_input):
        """Test every cross-reference is closed within the document."""
        assert_references_resolve(generator.generate(branching_input))


class TestBindings:
    """Tests for arrow and label bindings."""

    def test_shapes_list_their_arrows(self, generator, branching_input):
        """Test shapes are bound to the arrows that touch them."""
        document = generator.generate(branching_input)
        login = next(e for e in document["elements"] if e["type"] == "rectangle")
        arrows = {
            a["id"]
            for a in _by_type(document, "arrow")
            if login["id"]
            in (a["startBinding"]["elementId"], a["endBinding"]["elementId"])
        }

        assert {b["id"] for b in login["boundElements"]} == arrows
        assert len(arrows) == 2

    def test_edge_label_binding(self, generator, branching_input):
        """Test labeled arrows and their text reference each other."""
        document = generator.generate(branching_input)
        labels = [t for t in _by_type(document, "text") if t["containerId"]]

        assert sorted(t["text"] for t in labels) == ["no", "yes"]
        for label in labels:
            arrow = next(e for e in document["elements"] if e["id"] == label["containerId"])
            assert label["id"] == f"text-{arrow['id']}"
            assert arrow["boundElements"] == [{"id": label["id"], "type": "text"}]

    def test_label_follows_its_arrow(self, generator, branching_input):
        """Test an edge label is emitted right after its arrow."""
        elements = generator.generate(branching_input)["elements"]
        for position, element in enumerate(elements):
            if element["type"] == "text" and element["containerId"]:
                assert elements[position - 1]["id"] == element["containerId"]


class TestImages:
    """Tests for image embedding."""

    def test_image_node(self, generator, png_file):
        """Test an image node becomes one image element with file data."""
        document = generator.generate(f"![{png_file}] -> [Next]")

        image = _by_type(document, "image")[0]
        assert (image["width"], image["height"]) == (100, 100)
        assert document["files"][image["fileId"]]["mimeType"] == "image/png"
        arrow = _by_type(document, "arrow")[0]
        assert arrow["startBinding"] is None
        assert arrow["endBinding"] is not None
        assert_references_resolve(document)

    def test_image_node_explicit_size(self, generator, png_file):
        """Test an image node with a size suffix uses that size."""
        document = generator.generate(f"![{png_file}](64x48)")

        image = _by_type(document, "image")[0]
        assert (image["width"], image["height"]) == (64, 48)

    def test_json_image_node_is_drawn(self, generator):
        """Test a JSON image node without a source still gets a shape and arrow."""
        data = {
            "nodes": [
                {"id": "a", "type": "rectangle", "label": "Start"},
                {"id": "b", "type": "image", "label": "Logo"},
            ],
            "edges": [{"from": "a", "to": "b"}],
        }
        document = generator.generate(json.dumps(data), "json")

        assert [t["text"] for t in _by_type(document, "text")] == ["Start", "Logo"]
        assert len(_by_type(document, "rectangle")) == 2
        assert _by_type(document, "arrow")[0]["endBinding"] is not None
        assert_references_resolve(document)

    def test_missing_image_is_skipped(self, generator, tmp_path):
        """Test an unreadable image node is reported and left out."""
        missing = tmp_path / "missing.png"
        document = generator.generate(f"![{missing}] -> [Next]")

        assert _by_type(document, "image") == []
        assert document["files"] == {}
        assert generator.last_diagnostics[0].stage == "generate"
        assert_references_resolve(document)

    def test_url_image_is_reported(self, generator):
        """Test remote directive images produce a diagnostic."""
        generator.generate("[A]\n@image https://example.com/a.png at 10,20")

        assert len(generator.last_diagnostics) == 1
        assert "Remote URLs" in generator.last_diagnostics[0].message

    def test_directive_image(self, generator, png_file):
        """Test absolute directive images are placed after nodes."""
        document = generator.generate(f"[A]\n@image {png_file} at 10,20")

        last = document["elements"][-1]
        assert last["type"] == "image"
        assert (last["x"], last["y"]) == (10, 20)

    def test_sticker_from_library(self, generator, sticker_library):
        """Test stickers are resolved through the library directory."""
        document = generator.generate(
            f"[A]\n@library {sticker_library}\n@sticker star at 5,5"
        )

        image = _by_type(document, "image")[0]
        assert image["fileId"] in document["files"]
        assert generator.last_diagnostics == []

    def test_decoration(self, generator, png_file):
        """Test decorations follow their node's label."""
        document = generator.generate(f"[A] @decorate {png_file} bottom")

        assert [e["type"] for e in document["elements"]] == [
            "rectangle",
            "text",
            "image",
        ]
        shape, _, badge = document["elements"]
        assert badge["x"] == shape["x"] + (shape["width"] - 50) / 2
        assert badge["y"] == shape["y"] + shape["height"] + 5

    def test_scatter_is_underneath(self, generator, png_file):
        """Test scatter images come first and share one file."""
        document = generator.generate(f"[A] -> [B]\n@scatter {png_file} count:4")

        elements = document["elements"]
        assert [e["type"] for e in elements[:4]] == ["image"] * 4
        assert elements[0]["index"] == "a0"
        assert len({e["fileId"] for e in elements[:4]}) == 1
        assert len(document["files"]) == 1

    def test_scatter_is_seeded(self, png_file):
        """Test a generator seed makes scatter placement repeatable."""
        text = f"[A] -> [B]\n@scatter {png_file} count:3"
        first = FlowchartGenerator(seed=11).generate(text)["elements"][:3]
        second = FlowchartGenerator(seed=11).generate(text)["elements"][:3]

        assert [(e["x"], e["y"]) for e in first] == [(e["x"], e["y"]) for e in second]


class TestGenerateDocument:
    """Tests for generate_document with a prepared layout."""

    def test_layout_diagnostics_carried(self, layout):
        """Test diagnostics from layout are part of the result."""
        layouted = layout("[A]\n@image logo.png near (Nope)")
        result = generate_document(layouted)

        stages = [d.stage for d in result.diagnostics]
        assert stages[0] == "placement"
        assert "generate" in stages

    def test_empty_graph(self, layout):
        """Test an empty graph yields an empty element list."""
        result = generate_document(layout(""))

        assert result.document["elements"] == []
        assert result.diagnostics == []


class TestSerialization:
    """Tests for serialize_document and generate_json."""

    def test_pretty_and_compact(self, generator, simple_input):
        """Test both output forms hold the same document."""
        document = generator.generate(simple_input)
        pretty = serialize_document(document)
        compact = serialize_document(document, pretty=False)

        assert "\n  " in pretty
        assert "\n" not in compact
        assert json.loads(pretty) == json.loads(compact)

    def test_generate_json(self, generator, simple_input):
        """Test generate_json returns document text."""
        data = json.loads(generator.generate_json(simple_input))
        assert data["type"] == "excalidraw"
        assert len(data["elements"]) == 8


class TestParseInput:
    """Tests for parse_input format dispatch."""

    def test_formats(self, simple_input, json_input, dot_input):
        """Test each format reaches its parser."""
        assert len(parse_input(simple_input).nodes) == 3
        assert len(parse_input(json.dumps(json_input), "json").nodes) == 3
        assert len(parse_input(dot_input, "DOT").nodes) == 3

    def test_unknown_format(self):
        """Test unknown formats are rejected."""
        with pytest.raises(ValueError, match="Unknown input format"):
            parse_input("[A]", "yaml")

    def test_parse_errors_propagate(self):
        """Test structural errors surface as ParseError."""
        with pytest.raises(ParseError):
            parse_input("{not json", "json")


class TestConvenienceFunctions:
    """Tests for the create_flowchart_from_* helpers."""

    def test_from_dsl(self, branching_input):
        """Test DSL input produces document text."""
        data = json.loads(asyncio.run(create_flowchart_from_dsl(branching_input)))

        assert len(_by_type(data, "arrow")) == 3
        assert_references_resolve(data)

    def test_from_json(self, json_input):
        """Test JSON input produces document text."""
        data = json.loads(asyncio.run(create_flowchart_from_json(json.dumps(json_input))))

        assert [e["type"] for e in data["elements"][:6:2]] == [
            "ellipse",
            "rectangle",
            "diamond",
        ]
        assert len(_by_type(data, "arrow")) == 2

    def test_from_json_left_to_right(self, json_input):
        """Test the JSON direction option lays nodes out horizontally."""
        data = json.loads(asyncio.run(create_flowchart_from_json(json.dumps(json_input))))
        shapes = data["elements"][:6:2]

        assert shapes[0]["x"] < shapes[1]["x"] < shapes[2]["x"]

    def test_from_dot(self, dot_input):
        """Test DOT input produces document text with styles."""
        data = json.loads(asyncio.run(create_flowchart_from_dot(dot_input)))

        diamond = _by_type(data, "diamond")[0]
        assert diamond["backgroundColor"] == "#ffec99"
        assert diamond["strokeStyle"] == "dashed"
        assert len(_by_type(data, "arrow")) == 2
        assert_references_resolve(data)

    def test_options_override_defaults(self):
        """Test caller options reach the layout."""
        data = json.loads(
            asyncio.run(create_flowchart_from_dsl("[A] -> [B]", {"padding": 0}))
        )
        assert data["elements"][0]["x"] == 0
