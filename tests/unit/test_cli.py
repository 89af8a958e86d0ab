"""Unit tests for the command line interface."""

import json

import pytest
from click.testing import CliRunner

from sketchflow.cli import detect_format, main


@pytest.fixture
def runner():
    """Click test runner."""
    return CliRunner()


class TestDetectFormat:
    """Tests for detect_format."""

    @pytest.mark.parametrize(
        "path,requested,expected",
        [
            ("flow.json", None, "json"),
            ("graph.DOT", None, "dot"),
            ("graph.gv", None, "dot"),
            ("flow.txt", None, "dsl"),
            (None, None, "dsl"),
            ("flow.json", "dsl", "dsl"),
        ],
    )
    def test_detect_format(self, path, requested, expected):
        """Test explicit formats win over extensions."""
        assert detect_format(path, requested) == expected


class TestCreateCommand:
    """Tests for the create command."""

    def test_inline_to_stdout(self, runner):
        """Test inline DSL written to stdout."""
        result = runner.invoke(main, ["create", "--inline", "[A] -> [B]", "-o", "-"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["type"] == "excalidraw"
        assert len(data["elements"]) == 5

    def test_writes_output_file(self, runner, tmp_path):
        """Test the document is saved to the output path."""
        output = tmp_path / "out.excalidraw"
        result = runner.invoke(
            main, ["create", "--inline", "(Start) -> (End)", "-o", str(output)]
        )

        assert result.exit_code == 0
        assert f"Created: {output}" in result.output
        assert json.loads(output.read_text())["type"] == "excalidraw"

    def test_json_file_detected(self, runner, tmp_path, json_input):
        """Test .json input files are parsed as JSON."""
        source = tmp_path / "flow.json"
        source.write_text(json.dumps(json_input))

        result = runner.invoke(main, ["create", str(source), "-o", "-"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert len([e for e in data["elements"] if e["type"] == "arrow"]) == 2

    def test_stdin(self, runner):
        """Test input can be read from stdin."""
        result = runner.invoke(
            main, ["create", "--stdin", "-o", "-"], input="[A] -> [B] -> [C]"
        )

        assert result.exit_code == 0
        assert len(json.loads(result.stdout)["elements"]) == 8

    def test_direction_option(self, runner):
        """Test -d lays the flow out horizontally."""
        result = runner.invoke(
            main, ["create", "--inline", "[A] -> [B]", "-d", "LR", "-o", "-"]
        )
        shapes = [e for e in json.loads(result.stdout)["elements"] if e["type"] == "rectangle"]

        assert shapes[0]["y"] == shapes[1]["y"]
        assert shapes[0]["x"] < shapes[1]["x"]

    def test_no_input(self, runner):
        """Test a missing input is reported."""
        result = runner.invoke(main, ["create"])

        assert result.exit_code != 0
        assert "No input provided" in result.output

    def test_invalid_json(self, runner):
        """Test parse errors exit with status 1."""
        bad = json.dumps({"nodes": [{"id": "a"}], "edges": [{"from": "a", "to": "z"}]})
        result = runner.invoke(main, ["create", "--inline", bad, "-f", "json", "-o", "-"])

        assert result.exit_code == 1
        assert "Error:" in result.output


class TestParseCommand:
    """Tests for the parse command."""

    def test_parse_summary(self, runner, tmp_path, branching_input):
        """Test the parse summary lists nodes and edges."""
        source = tmp_path / "flow.txt"
        source.write_text(branching_input)

        result = runner.invoke(main, ["parse", str(source)])

        assert result.exit_code == 0
        assert "Parse successful!" in result.output
        assert "Nodes: 3" in result.output
        assert "Edges: 3" in result.output
        assert "Direction: TB" in result.output
        assert "[diamond] Valid?" in result.output
        assert 'Valid? -> "yes" -> Dashboard' in result.output

    def test_parse_dot_file(self, runner, tmp_path, dot_input):
        """Test DOT files are detected by extension."""
        source = tmp_path / "graph.dot"
        source.write_text(dot_input)

        result = runner.invoke(main, ["parse", str(source)])

        assert result.exit_code == 0
        assert "Direction: LR" in result.output
