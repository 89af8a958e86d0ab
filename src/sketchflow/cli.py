"""Command line interface for sketchflow."""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import click

from .export import save_document
from .generator import generate_document, parse_input, serialize_document
from .layout import LayoutTimeoutError, layout_graph
from .models import FlowchartGraph
from .parser import ParseError

logger = logging.getLogger(__name__)

FORMATS = ("dsl", "json", "dot")

_EXTENSION_FORMATS = {".json": "json", ".dot": "dot", ".gv": "dot"}


def detect_format(path: Optional[str], requested: Optional[str]) -> str:
    """Explicit format wins, then the file extension, then DSL."""
    if requested:
        return requested
    if path:
        return _EXTENSION_FORMATS.get(Path(path).suffix.lower(), "dsl")
    return "dsl"


def _read_input(
    input_file: Optional[str], inline: Optional[str], use_stdin: bool
) -> str:
    if inline is not None:
        return inline
    if use_stdin:
        return sys.stdin.read()
    if input_file:
        try:
            return Path(input_file).read_text(encoding="utf-8")
        except OSError as e:
            raise click.ClickException(f"cannot read '{input_file}': {e}")
    raise click.ClickException(
        "No input provided. Use --inline, --stdin, or provide an input file."
    )


def _fail(message: str) -> None:
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@click.group()
@click.version_option(package_name="sketchflow")
def main() -> None:
    """Create hand-drawn style flowcharts from DSL, JSON or DOT input."""


@main.command()
@click.argument("input_file", required=False, type=click.Path(exists=True))
@click.option(
    "--output", "-o", default="flowchart.excalidraw", show_default=True,
    help="Output file path, or - for stdout",
)
@click.option(
    "--format", "-f", "input_format", type=click.Choice(FORMATS), default=None,
    help="Input format (detected from the file extension when omitted)",
)
@click.option("--inline", default=None, help="Inline DSL, JSON or DOT string")
@click.option("--stdin", "use_stdin", is_flag=True, help="Read input from stdin")
@click.option("--direction", "-d", default=None, help="Flow direction: TB, BT, LR, RL")
@click.option("--spacing", "-s", type=int, default=None, help="Node spacing in pixels")
@click.option("--verbose", is_flag=True, help="Verbose output")
def create(
    input_file: Optional[str],
    output: str,
    input_format: Optional[str],
    inline: Optional[str],
    use_stdin: bool,
    direction: Optional[str],
    spacing: Optional[int],
    verbose: bool,
) -> None:
    """Create a drawing document from a flowchart description."""
    _configure_logging(verbose)
    text = _read_input(input_file, inline, use_stdin)
    fmt = detect_format(input_file, input_format)

    options: Dict[str, Any] = {}
    if direction:
        options["direction"] = direction
    if spacing is not None:
        options["nodeSpacing"] = spacing

    logger.info("Input format: %s (%d characters)", fmt, len(text))
    try:
        graph = parse_input(text, fmt, options)
        logger.info(
            "Parsed %d nodes and %d edges, direction %s",
            len(graph.nodes),
            len(graph.edges),
            graph.options.direction.value,
        )
        layouted = asyncio.run(layout_graph(graph))
        logger.info("Layout complete. Canvas size: %sx%s", layouted.width, layouted.height)
        result = generate_document(layouted)
    except (ParseError, LayoutTimeoutError) as e:
        _fail(str(e))
        return

    if output == "-":
        click.echo(serialize_document(result.document))
        return

    try:
        save_document(result.document, output)
    except OSError as e:
        _fail(f"cannot write '{output}': {e}")
        return
    click.echo(f"Created: {output}")


def _describe(graph: FlowchartGraph) -> None:
    labels = {node.id: node.label for node in graph.nodes}
    click.echo("Parse successful!")
    click.echo(f"  Nodes: {len(graph.nodes)}")
    click.echo(f"  Edges: {len(graph.edges)}")
    click.echo(f"  Direction: {graph.options.direction.value}")
    click.echo("\nNodes:")
    for node in graph.nodes:
        click.echo(f"  - [{node.type.value}] {node.label}")
    click.echo("\nEdges:")
    for edge in graph.edges:
        label = f' "{edge.label}" ->' if edge.label else ""
        click.echo(f"  - {labels.get(edge.source)} ->{label} {labels.get(edge.target)}")


@main.command()
@click.argument("input_file", type=click.Path(exists=True))
@click.option(
    "--format", "-f", "input_format", type=click.Choice(FORMATS), default=None,
    help="Input format (detected from the file extension when omitted)",
)
def parse(input_file: str, input_format: Optional[str]) -> None:
    """Parse and validate input without generating a document."""
    _configure_logging(False)
    text = _read_input(input_file, None, False)
    try:
        graph = parse_input(text, detect_format(input_file, input_format))
    except ParseError as e:
        _fail(str(e))
        return
    _describe(graph)


if __name__ == "__main__":
    main()
