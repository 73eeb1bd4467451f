"""Screenshot asset store — frame images named ``<frame_id>.<ext>``."""

from __future__ import annotations

import base64
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

# Probe order when resolving a frame's image
IMAGE_EXTENSIONS = (".jpg", ".png", ".jpeg")

_MIME_TYPES = {".png": "image/png"}


def _mime_type(extension: str) -> str:
    return _MIME_TYPES.get(extension, "image/jpeg")


class ScreenshotStore:
    """Lookup of captured frame images in one directory."""

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)

    def frame_ids(self) -> set[str]:
        """Frame ids with an image on disk, analysed or not."""
        try:
            entries = list(self.directory.iterdir())
        except (FileNotFoundError, NotADirectoryError):
            return set()
        return {p.stem for p in entries if p.suffix in IMAGE_EXTENSIONS and p.is_file()}

    def find(self, frame_id: str) -> Path | None:
        if not frame_id or "/" in frame_id or "\\" in frame_id or ".." in frame_id:
            return None
        for ext in IMAGE_EXTENSIONS:
            candidate = self.directory / f"{frame_id}{ext}"
            if candidate.is_file():
                return candidate
        return None

    def data_uri(self, frame_id: str) -> str | None:
        """Image as a base64 ``data:`` URI, or None if missing or unreadable."""
        path = self.find(frame_id)
        if path is None:
            return None
        try:
            data = path.read_bytes()
        except OSError as e:
            logger.warning(f"Failed to read screenshot {path.name}: {e}")
            return None
        encoded = base64.b64encode(data).decode("ascii")
        return f"data:{_mime_type(path.suffix)};base64,{encoded}"
