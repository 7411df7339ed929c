"""Media type detection for picked and stored files."""

from __future__ import annotations

from pathlib import Path

from core.models import MediaKind, PickerItem

VIDEO_EXTENSIONS = {".mp4", ".mov", ".m4v", ".webm", ".avi", ".mkv", ".3gp"}
IMAGE_EXTENSIONS = {
    ".jpg",
    ".jpeg",
    ".png",
    ".gif",
    ".bmp",
    ".tif",
    ".tiff",
    ".webp",
    ".heic",
    ".heif",
}


def is_video(path: str) -> bool:
    """Check if a file path is a video based on extension."""
    return Path(path).suffix.lower() in VIDEO_EXTENSIONS


def is_image(path: str) -> bool:
    """Check if a file path is a still image based on extension."""
    return Path(path).suffix.lower() in IMAGE_EXTENSIONS


def classify(item: PickerItem) -> MediaKind | None:
    """Return the media kind a picked item declares, or None if unsupported.

    The declared MIME type wins; the file extension is only consulted when no
    type was declared.
    """
    content_type = (item.content_type or "").strip().lower()
    if content_type:
        if content_type.startswith("video/"):
            return MediaKind.VIDEO
        if content_type.startswith("image/"):
            return MediaKind.IMAGE
        return None
    if is_video(item.path):
        return MediaKind.VIDEO
    if is_image(item.path):
        return MediaKind.IMAGE
    return None
