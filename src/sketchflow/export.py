"""
File export functionality for drawing documents.

This module handles writing generated documents to disk:
- Document files (.excalidraw) - The serialized JSON document
- Rendered images (.svg, .png) - Produced by an external renderer

Rendering itself is not done here. The DocumentExporter hands the document's
elements, application state and file table to a renderer callable and
writes the bytes it returns.
"""

from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from . import config
from .generator import serialize_document

Renderer = Callable[[List[Dict[str, Any]], Dict[str, Any], Dict[str, Any], int], bytes]

PathLike = Union[str, Path]


def swap_extension(file_path: str, new_ext: str) -> str:
    """
    Replace the extension of the last path component.

    A leading dot (``.hidden``) is part of the name, not an extension.

    Example:
        >>> swap_extension("out/flowchart.excalidraw", "svg")
        'out/flowchart.svg'
    """
    directory, sep, name = file_path.rpartition("/")
    dot = name.rfind(".")
    if dot > 0:
        name = name[:dot]
    return f"{directory}{sep}{name}.{new_ext.lstrip('.')}"


class DocumentExporter:
    """
    Exports drawing documents to files.

    Attributes:
        renderer: Default renderer used by :meth:`render_to_file`.
        pretty: Whether saved documents are indented.
    """

    def __init__(self, renderer: Optional[Renderer] = None, pretty: bool = True):
        """
        Initialize the document exporter.

        Args:
            renderer: Callable taking (elements, app_state, files, padding)
                and returning image bytes.
            pretty: Indent saved documents.
        """
        self.renderer = renderer
        self.pretty = pretty

    def save_document(self, document: Mapping[str, Any], filename: PathLike) -> Path:
        """
        Save a document as JSON.

        Args:
            document: The generated document.
            filename: Output filename (usually ending in .excalidraw).

        Returns:
            The path written.
        """
        output_path = Path(filename)
        output_path.write_text(
            serialize_document(document, self.pretty), encoding="utf-8"
        )
        return output_path

    def render_to_file(
        self,
        document: Mapping[str, Any],
        filename: PathLike,
        renderer: Optional[Renderer] = None,
        padding: int = config.DEFAULT_EXPORT_PADDING,
    ) -> Path:
        """
        Render a document with an external renderer and save the bytes.

        Args:
            document: The generated document.
            filename: Output filename (.svg, .png, ...).
            renderer: Renderer for this call; defaults to the exporter's.
            padding: Padding around the drawing in pixels.

        Returns:
            The path written.

        Raises:
            ValueError: If no renderer is available.
        """
        renderer = renderer or self.renderer
        if renderer is None:
            raise ValueError("No renderer configured for image export")

        payload = renderer(
            list(document.get("elements", [])),
            dict(document.get("appState", {})),
            dict(document.get("files", {})),
            padding,
        )
        output_path = Path(filename)
        output_path.write_bytes(payload)
        return output_path


def save_document(document: Mapping[str, Any], filename: PathLike) -> Path:
    return DocumentExporter().save_document(document, filename)


def render_to_file(
    document: Mapping[str, Any],
    filename: PathLike,
    renderer: Renderer,
    padding: int = config.DEFAULT_EXPORT_PADDING,
) -> Path:
    return DocumentExporter(renderer).render_to_file(document, filename, padding=padding)
