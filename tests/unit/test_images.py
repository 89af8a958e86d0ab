"""Unit tests for image resolution and embedding."""

import base64

import pytest

from sketchflow.images import (
    ImageEmbedError,
    create_file_data,
    get_mime_type,
    is_sticker,
    is_url,
    probe_image_size,
    resolve_sticker_path,
)


class TestSourceKinds:
    """Tests for source classification."""

    @pytest.mark.parametrize(
        "src,expected",
        [
            ("http://example.com/a.png", True),
            ("https://example.com/a.png", True),
            ("ftp://example.com/a.png", False),
            ("images/a.png", False),
        ],
    )
    def test_is_url(self, src, expected):
        """Test only http and https sources count as URLs."""
        assert is_url(src) is expected

    def test_is_sticker(self):
        """Test the sticker prefix is recognized."""
        assert is_sticker("sticker:star")
        assert not is_sticker("star.png")


class TestResolveStickerPath:
    """Tests for resolve_sticker_path."""

    def test_extension_search(self, sticker_library):
        """Test a bare name is matched against known extensions."""
        path = resolve_sticker_path("sticker:star", str(sticker_library))
        assert path == str(sticker_library / "star.png")

    def test_direct_file_name(self, sticker_library):
        """Test a name with its extension is found directly."""
        path = resolve_sticker_path("sticker:star.png", str(sticker_library))
        assert path == str(sticker_library / "star.png")

    def test_no_library(self):
        """Test the bare name is returned without a library."""
        assert resolve_sticker_path("sticker:star") == "star"

    def test_missing_sticker(self, sticker_library):
        """Test an unknown sticker falls back to its name."""
        assert resolve_sticker_path("sticker:moon", str(sticker_library)) == "moon"


class TestMimeType:
    """Tests for get_mime_type."""

    def test_from_extension(self, tmp_path):
        """Test known extensions map directly."""
        assert get_mime_type(tmp_path / "a.JPG") == "image/jpeg"
        assert get_mime_type(tmp_path / "a.svg") == "image/svg+xml"

    def test_sniffed_by_pillow(self, png_file, tmp_path):
        """Test unknown extensions are identified from the file content."""
        renamed = tmp_path / "icon.bin"
        renamed.write_bytes(png_file.read_bytes())
        assert get_mime_type(renamed) == "image/png"

    def test_unreadable_defaults_to_png(self, tmp_path):
        """Test unidentifiable content defaults to image/png."""
        junk = tmp_path / "junk.bin"
        junk.write_bytes(b"not an image")
        assert get_mime_type(junk) == "image/png"


class TestProbeImageSize:
    """Tests for probe_image_size."""

    def test_local_png(self, png_file):
        """Test local files are measured."""
        assert probe_image_size(str(png_file)) == (40, 20)

    def test_missing_file(self, tmp_path):
        """Test missing files are not measured."""
        assert probe_image_size(str(tmp_path / "missing.png")) is None

    def test_stickers_are_not_measured(self):
        """Test sticker references are left unmeasured."""
        assert probe_image_size("sticker:star") is None


class TestCreateFileData:
    """Tests for create_file_data."""

    def test_embeds_local_file(self, png_file):
        """Test a local file becomes a base64 data URL."""
        record = create_file_data(str(png_file), "file1")

        assert record["id"] == "file1"
        assert record["mimeType"] == "image/png"
        prefix = "data:image/png;base64,"
        assert record["dataURL"].startswith(prefix)
        payload = base64.b64decode(record["dataURL"][len(prefix) :])
        assert payload == png_file.read_bytes()
        assert isinstance(record["created"], int)

    def test_embeds_sticker(self, sticker_library):
        """Test sticker references are resolved through the library."""
        record = create_file_data("sticker:star", "file2", str(sticker_library))
        assert record["mimeType"] == "image/png"

    def test_url_rejected(self):
        """Test remote URLs are refused."""
        with pytest.raises(ImageEmbedError, match="Remote URLs"):
            create_file_data("https://example.com/a.png", "file3")

    def test_missing_file(self, tmp_path):
        """Test missing files raise ImageEmbedError."""
        with pytest.raises(ImageEmbedError, match="not found"):
            create_file_data(str(tmp_path / "missing.png"), "file4")
