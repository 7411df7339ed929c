"""Media import into local storage, thumbnail decoding, and caching.

Picked or captured media are written to the documents directory as flat files
named `<uuid>.<ext>` (`.jpg` for stills, the source extension for videos).
Imports are two-phase: the file is first written under a `.part` name, the
media record is created, and only then is the file renamed into place. A
failed record insert therefore never leaves a file behind, and a failed
rename removes the record again.

Thumbnails are decoded with Pillow (stills, HEIC via pillow-heif) or OpenCV
(one frame of a video) and kept in an in-memory LRU cache keyed by file path.
"""

from __future__ import annotations

from collections import OrderedDict
from collections.abc import Callable
import os
from pathlib import Path
import shutil
import threading
import uuid

import cv2
from loguru import logger
from PIL import Image, ImageOps
from pillow_heif import register_heif_opener

from core.cancellation import CancellationToken
from core.errors import (
    CopyError,
    MediaStorageError,
    OperationCancelled,
    ReadingError,
    StorageError,
    UnsupportedFormatError,
)
from core.models import MediaItem, MediaKind, PickerItem
from infrastructure.media_types import classify
from infrastructure.storage_service import StorageService

register_heif_opener()

PARTIAL_SUFFIX = ".part"
JPEG_QUALITY_RANGE = (90, 95)


def _discard(path: Path) -> None:
    """Remove `path` if present; failures are only logged."""
    try:
        path.unlink(missing_ok=True)
    except OSError as ex:
        logger.warning("Could not remove {}: {}", path, ex)


class _LRUCache:
    def __init__(self, capacity: int) -> None:
        self._cap = max(1, int(capacity or 1))
        self._data: OrderedDict[str, Image.Image] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: str) -> Image.Image | None:
        """Return cached image for key, moving it to the MRU position."""
        with self._lock:
            image = self._data.get(key)
            if image is None:
                return None
            self._data.move_to_end(key)
            return image

    def put(self, key: str, image: Image.Image) -> None:
        """Insert or update `key` with `image`, evicting LRU when over capacity."""
        with self._lock:
            self._data[key] = image
            self._data.move_to_end(key)
            while len(self._data) > self._cap:
                self._data.popitem(last=False)

    def pop(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)


class MediaFileWorker:
    """Copies media into local storage and serves cached thumbnails."""

    def __init__(
        self,
        storage: StorageService,
        documents_dir: str | Path,
        settings: object | None = None,
    ) -> None:
        """Create a worker writing under `documents_dir`.

        Args:
            storage: Service used to create and delete media records.
            documents_dir: Private directory holding the media files.
            settings: Optional settings with `media.*` keys (quality, cache
                capacity, thumbnail side, video frame offset).
        """
        self._storage = storage
        self._documents_dir = Path(documents_dir)
        self._documents_dir.mkdir(parents=True, exist_ok=True)

        quality, capacity, side, frame_ms = 95, 256, 512, 1000
        if settings is not None:
            quality = settings.get_int("media.jpeg_quality", quality)
            capacity = settings.get_int("media.thumbnail_mem_cache", capacity)
            side = settings.get_int("media.thumbnail_side", side)
            frame_ms = settings.get_int("media.video_frame_ms", frame_ms)
        low, high = JPEG_QUALITY_RANGE
        self._jpeg_quality = min(high, max(low, quality))
        self._thumb_side = max(0, side)
        self._frame_ms = max(0, frame_ms)
        self._cache = _LRUCache(capacity)

    @property
    def documents_dir(self) -> Path:
        return self._documents_dir

    def resolve_path(self, media: MediaItem) -> Path:
        """Absolute path of the file backing `media`."""
        return self._documents_dir / media.path

    # Import
    def import_from_picker(
        self,
        item: PickerItem,
        owner_id: str | None = None,
        token: CancellationToken | None = None,
    ) -> MediaItem:
        """Store a picked photo or video and create its media record."""
        kind = classify(item)
        if kind is None:
            logger.warning("Unsupported picker item {} ({})", item.path, item.content_type)
            raise UnsupportedFormatError(item.content_type or Path(item.path).suffix)

        if kind == MediaKind.VIDEO:
            temp, name = self._copy_video(item.path)
        else:
            temp, name = self._write_jpeg(self._decode_picked_image(item.path))
        return self._commit(kind, temp, name, owner_id, token)

    def import_from_camera(
        self,
        image: Image.Image,
        owner_id: str | None = None,
        token: CancellationToken | None = None,
    ) -> MediaItem:
        """Store a captured frame as JPEG and create its media record."""
        if image.mode != "RGB":
            image = image.convert("RGB")
        temp, name = self._write_jpeg(image)
        return self._commit(MediaKind.IMAGE, temp, name, owner_id, token)

    # Thumbnails
    def load_thumbnail(
        self, media: MediaItem, token: CancellationToken | None = None
    ) -> Image.Image:
        """Return the placeholder image for `media`, from cache when possible."""
        cached = self._cache.get(media.path)
        if cached is not None:
            return cached

        path = self.resolve_path(media)
        if media.kind == MediaKind.IMAGE:
            image = self._decode_image(path)
        elif media.kind == MediaKind.VIDEO:
            image = self._grab_video_frame(path)
        else:
            raise UnsupportedFormatError(str(media.kind))

        if self._thumb_side > 0:
            image.thumbnail((self._thumb_side, self._thumb_side))
        if token is not None:
            token.raise_if_cancelled()
        self._cache.put(media.path, image)
        return image

    def purge_thumbnails(self) -> None:
        """Drop every cached thumbnail (e.g. under memory pressure)."""
        self._cache.clear()
        logger.debug("Thumbnail cache purged")

    # Removal
    def delete_media_item(
        self, media: MediaItem, on_complete: Callable[[], None] | None = None
    ) -> None:
        """Delete the media record and its backing file.

        `on_complete` runs once after the delete settles, whether or not it
        succeeded; failures are logged only.
        """
        try:
            self._storage.delete_media_item(media.id)
        except StorageError as ex:
            logger.error("Delete media record {} failed: {}", media.id, ex)
        else:
            self._cache.pop(media.path)
            try:
                self.resolve_path(media).unlink(missing_ok=True)
            except OSError as ex:
                logger.error("Delete media file {} failed: {}", media.path, ex)
        finally:
            if on_complete is not None:
                on_complete()

    def remove_stale_partials(self) -> int:
        """Delete `.part` files left over by interrupted imports."""
        removed = 0
        for p in self._documents_dir.glob(f"*{PARTIAL_SUFFIX}"):
            try:
                p.unlink()
                removed += 1
            except OSError as ex:
                logger.warning("Could not remove stale partial {}: {}", p, ex)
        if removed:
            logger.info("Removed {} stale partial media files", removed)
        return removed

    # Internal helpers
    def _new_target(self, extension: str) -> tuple[Path, str]:
        name = f"{uuid.uuid4()}{extension}"
        return self._documents_dir / f"{name}{PARTIAL_SUFFIX}", name

    def _copy_video(self, source: str) -> tuple[Path, str]:
        extension = Path(source).suffix.lower() or ".mov"
        temp, name = self._new_target(extension)
        try:
            shutil.copyfile(source, temp)
        except OSError as ex:
            _discard(temp)
            logger.error("Copy video {} failed: {}", source, ex)
            raise CopyError(ex) from ex
        return temp, name

    def _decode_picked_image(self, source: str) -> Image.Image:
        try:
            with Image.open(source) as im:
                im.load()
                return ImageOps.exif_transpose(im).convert("RGB")
        except (OSError, ValueError) as ex:
            logger.error("Decode picked image {} failed: {}", source, ex)
            raise ReadingError(ex) from ex

    def _write_jpeg(self, image: Image.Image) -> tuple[Path, str]:
        temp, name = self._new_target(".jpg")
        try:
            image.save(temp, "JPEG", quality=self._jpeg_quality)
        except (OSError, ValueError) as ex:
            _discard(temp)
            logger.error("Write JPEG {} failed: {}", name, ex)
            raise CopyError(ex) from ex
        return temp, name

    def _commit(
        self,
        kind: MediaKind,
        temp: Path,
        name: str,
        owner_id: str | None,
        token: CancellationToken | None,
    ) -> MediaItem:
        if token is not None and token.cancelled:
            _discard(temp)
            raise OperationCancelled(f"import of {name}")

        try:
            media = self._storage.create_media_item(kind, name, owner_id)
        except StorageError as ex:
            _discard(temp)
            logger.error("Create media record for {} failed: {}", name, ex)
            raise MediaStorageError(ex) from ex

        try:
            os.replace(temp, self._documents_dir / name)
        except OSError as ex:
            _discard(temp)
            try:
                self._storage.delete_media_item(media.id)
            except StorageError as ex2:
                logger.error("Rollback of media record {} failed: {}", media.id, ex2)
            raise CopyError(ex) from ex

        logger.info("Imported {} {}", kind.value, name)
        return media

    def _decode_image(self, path: Path) -> Image.Image:
        try:
            with Image.open(path) as im:
                im.load()
                return ImageOps.exif_transpose(im).convert("RGB")
        except (OSError, ValueError) as ex:
            logger.debug("Decode {} failed: {}", path, ex)
            raise ReadingError(ex) from ex

    def _grab_video_frame(self, path: Path) -> Image.Image:
        """Return the frame at `video_frame_ms` of the video at `path`."""
        cap = cv2.VideoCapture(str(path))
        try:
            if not cap.isOpened():
                raise ReadingError(OSError(f"cannot open video {path.name}"))
            fps = cap.get(cv2.CAP_PROP_FPS) or 0.0
            frames = cap.get(cv2.CAP_PROP_FRAME_COUNT) or 0.0
            if fps > 0 and frames > 0 and frames / fps * 1000.0 < self._frame_ms:
                raise ReadingError(ValueError(f"video shorter than {self._frame_ms} ms"))
            cap.set(cv2.CAP_PROP_POS_MSEC, float(self._frame_ms))
            ok, frame = cap.read()
            if not ok or frame is None:
                raise ReadingError(ValueError(f"no frame at {self._frame_ms} ms"))
            return Image.fromarray(cv2.cvtColor(frame, cv2.COLOR_BGR2RGB))
        except cv2.error as ex:
            logger.debug("OpenCV failed on {}: {}", path, ex)
            raise ReadingError(ex) from ex
        finally:
            cap.release()
