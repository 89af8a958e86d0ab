"""
Image handling for flowchart documents.

Resolves sticker references against a library directory, probes local image
files with Pillow for their dimensions and MIME type, and embeds image bytes
into the base64 file records a drawing document carries.
"""

import base64
import logging
import os
import time
from pathlib import Path
from typing import Dict, Optional, Tuple

from PIL import Image, UnidentifiedImageError

from . import config
from .models import STICKER_PREFIX, new_id

logger = logging.getLogger(__name__)

STICKER_EXTENSIONS = (".png", ".svg", ".jpg", ".jpeg", ".gif", ".webp")

MIME_TYPES: Dict[str, str] = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".svg": "image/svg+xml",
    ".bmp": "image/bmp",
    ".ico": "image/x-icon",
}


class ImageEmbedError(Exception):
    """Raised when an image cannot be embedded into a document."""

    pass


def is_url(src: str) -> bool:
    return src.startswith("http://") or src.startswith("https://")


def is_sticker(src: str) -> bool:
    return src.startswith(STICKER_PREFIX)


def resolve_sticker_path(sticker_src: str, library_path: Optional[str] = None) -> str:
    """
    Resolve a ``sticker:NAME`` reference to a file path.

    Tries each known image extension inside the library directory, then the
    bare name. Without a library, or when nothing matches, the bare name is
    returned and loading it later fails gracefully.
    """
    name = sticker_src[len(STICKER_PREFIX) :] if is_sticker(sticker_src) else sticker_src
    if not library_path:
        return name

    library = Path(library_path)
    for ext in STICKER_EXTENSIONS:
        candidate = library / f"{name}{ext}"
        if candidate.is_file():
            return str(candidate)

    direct = library / name
    if direct.is_file():
        return str(direct)
    return name


def resolve_source(src: str, library_path: Optional[str] = None) -> str:
    if is_sticker(src):
        return resolve_sticker_path(src, library_path)
    return src


def _local_path(src: str) -> Path:
    path = Path(src)
    return path if path.is_absolute() else Path(os.getcwd()) / path


def get_mime_type(path: Path) -> str:
    """MIME type from the extension, then from Pillow, then image/png."""
    mime = MIME_TYPES.get(path.suffix.lower())
    if mime:
        return mime
    try:
        with Image.open(path) as img:
            return Image.MIME.get(img.format, "image/png")
    except (OSError, UnidentifiedImageError):
        return "image/png"


def probe_image_size(src: str) -> Optional[Tuple[int, int]]:
    """Return the pixel size of a local raster image, or None."""
    if is_url(src) or is_sticker(src):
        return None
    path = _local_path(src)
    if not path.is_file():
        return None
    try:
        with Image.open(path) as img:
            return img.size
    except (OSError, UnidentifiedImageError):
        logger.debug("Could not probe image size for %s", src)
        return None


def get_image_dimensions(
    src: str, width: Optional[int] = None, height: Optional[int] = None
) -> Tuple[int, int]:
    """
    Dimensions for an image node.

    Explicit width and height win. With a single explicit dimension a local
    file is measured so the other keeps its aspect ratio. Without either the
    defaults apply, whatever the file's own size.
    """
    if width and height:
        return width, height

    if width or height:
        measured = probe_image_size(src)
        if measured and measured[0] > 0 and measured[1] > 0:
            natural_width, natural_height = measured
            if width:
                return width, round(width * natural_height / natural_width)
            return round(height * natural_width / natural_height), height

    return (
        width or config.DEFAULT_IMAGE_WIDTH,
        height or config.DEFAULT_IMAGE_HEIGHT,
    )


def generate_file_id() -> str:
    return new_id(21)


def create_file_data(
    src: str, file_id: str, library_path: Optional[str] = None
) -> Dict[str, object]:
    """
    Read a local image and build its embedded file record.

    Args:
        src: File path, URL or ``sticker:NAME`` reference.
        file_id: Id the image element will reference.
        library_path: Sticker library directory.

    Returns:
        A file record with ``mimeType``, ``id``, ``dataURL`` and ``created``.

    Raises:
        ImageEmbedError: If the source is a remote URL or cannot be read.
    """
    resolved = resolve_source(src, library_path)

    if is_url(resolved):
        raise ImageEmbedError(
            f"Remote URLs are not supported for images: {resolved}. "
            "Download the image locally and use a file path instead."
        )

    path = _local_path(resolved)
    if not path.is_file():
        raise ImageEmbedError(f"Image file not found: {path}")

    try:
        payload = path.read_bytes()
    except OSError as e:
        raise ImageEmbedError(f"Failed to read image file {path}: {e}") from e

    mime_type = get_mime_type(path)
    encoded = base64.b64encode(payload).decode("ascii")
    return {
        "mimeType": mime_type,
        "id": file_id,
        "dataURL": f"data:{mime_type};base64,{encoded}",
        "created": int(time.time() * 1000),
    }
