"""ViewModel for creating or editing a memory entry.

Media picked or captured while editing are imported immediately. In edit
mode they are linked to the entry right away; in create mode they stay
unowned until `save()` links them. Discarding the editor deletes whatever
was imported during the session.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from PIL import Image
from PySide6.QtCore import Signal
from loguru import logger

from app.tasks import TaskRunner
from app.viewmodels.base_vm import BaseVM, describe_error
from core.errors import InvalidInputError
from core.models import Coordinate, MediaItem, MemoryEntry, PickerItem
from core.services.interfaces import ImportOutcome
from core.services.validation import EntryValidator
from infrastructure.media_service import MediaFileWorker
from infrastructure.storage_service import StorageService


@dataclass
class _ImportBatch:
    remaining: int
    outcomes: list[ImportOutcome] = field(default_factory=list)


class EntryEditorVM(BaseVM):
    """Editable state of one entry plus its media grid.

    Signals:
        mediaChanged(list): the media list after an import or removal.
        mediaFailed(str, str): source path and message of a failed import.
        importFinished(list): every `ImportOutcome` of a picker batch.
        validationFailed(str): inline message for rejected input.
        saveFailed(str): message for a storage failure on save.
        saved(object): the persisted `MemoryEntry`.
    """

    mediaChanged = Signal(object)  # list[MediaItem]
    mediaFailed = Signal(str, str)
    importFinished = Signal(object)  # list[ImportOutcome]
    validationFailed = Signal(str)
    saveFailed = Signal(str)
    saved = Signal(object)

    def __init__(
        self,
        storage: StorageService,
        media_worker: MediaFileWorker,
        runner: TaskRunner,
        entry: MemoryEntry | None = None,
        validator: EntryValidator | None = None,
    ) -> None:
        super().__init__(runner)
        self._storage = storage
        self._worker = media_worker
        self._validator = validator or EntryValidator()
        self.entry = entry
        self.title = entry.title if entry else ""
        self.description = entry.description if entry else ""
        self.coordinate: Coordinate | None = entry.coordinate if entry else None
        self.media: list[MediaItem] = list(entry.media) if entry else []
        self._imported: list[MediaItem] = []
        self.is_saving = False
        self._pending_imports = 0
        self._save_requested = False

    @property
    def is_edit_mode(self) -> bool:
        return self.entry is not None

    @property
    def window_title(self) -> str:
        return "Edit memory" if self.is_edit_mode else "New memory"

    @property
    def _owner_id(self) -> str | None:
        return self.entry.id if self.entry is not None else None

    @property
    def is_importing(self) -> bool:
        return self._pending_imports > 0

    # Media
    def add_picker_items(self, items: list[PickerItem]) -> None:
        """Import each picked item; one failure never aborts the rest."""
        if not items:
            return
        if self._reject_while_saving([item.path for item in items]):
            return
        batch = _ImportBatch(remaining=len(items))
        owner_id = self._owner_id
        for item in items:
            self._submit_import(
                item.path,
                lambda token, item=item: self._worker.import_from_picker(item, owner_id, token),
                batch,
            )

    def add_camera_image(self, image: Image.Image) -> None:
        """Import a captured still."""
        if self._reject_while_saving(["camera"]):
            return
        owner_id = self._owner_id
        self._submit_import(
            "camera",
            lambda token: self._worker.import_from_camera(image, owner_id, token),
            _ImportBatch(remaining=1),
        )

    def remove_media(self, media: MediaItem) -> None:
        """Drop `media` from the grid and delete its record and file."""
        self.media = [m for m in self.media if m.id != media.id]
        self._imported = [m for m in self._imported if m.id != media.id]
        self.mediaChanged.emit(self.media)
        self._runner.submit(
            f"delete media {media.id}", lambda _token: self._worker.delete_media_item(media)
        )

    # Save / discard
    def save(self) -> None:
        """Validate inline, then create or update the entry in the background.

        While imports are still running the save is deferred until the last
        one settles, so the stored media set matches the grid.
        """
        if self.coordinate is None:
            self.validationFailed.emit("Choose a location for this memory")
            return
        try:
            self._validator.validate(
                self.title, self.coordinate.latitude, self.coordinate.longitude
            )
        except InvalidInputError as ex:
            self.validationFailed.emit(ex.message)
            return
        if self.is_closed:
            return
        if self.is_importing:
            logger.debug("Save deferred until {} imports settle", self._pending_imports)
            self._save_requested = True
            return

        title, description, coordinate = self.title, self.description, self.coordinate
        media = list(self.media)
        if self.entry is None:

            def work(_token) -> MemoryEntry:
                return self._storage.create_memory_entry(
                    title, description, coordinate, initial_media=[m.id for m in media]
                )

        else:
            updated = MemoryEntry(
                id=self.entry.id,
                title=title,
                description=description,
                latitude=coordinate.latitude,
                longitude=coordinate.longitude,
                media=media,
            )

            def work(_token) -> MemoryEntry:
                return self._storage.update_memory_entry(updated)

        self.is_saving = True
        self._submit("save memory entry", work, self._on_saved, self._on_save_failed)

    def discard(self) -> None:
        """Cancel pending work and delete media imported in this session.

        Imports that commit after this call are deleted when their result
        comes back.
        """
        self._save_requested = False
        self.close()
        leftovers, self._imported = self._imported, []
        for media in leftovers:
            self._discard_media(media)
        if leftovers:
            logger.info("Discarding {} unsaved media items", len(leftovers))

    def _discard_media(self, media: MediaItem) -> None:
        self._runner.submit(
            f"discard media {media.id}", lambda _token: self._worker.delete_media_item(media)
        )

    def _submit_import(self, source: str, work, batch: _ImportBatch) -> None:
        self._pending_imports += 1
        self._submit(
            f"import {source}",
            work,
            lambda media: self._on_imported(batch, source, media),
            lambda error: self._on_import_failed(batch, source, error),
            on_cancelled=self._discard_media,
        )

    def _reject_while_saving(self, sources: list[str]) -> bool:
        if not self.is_saving:
            return False
        for source in sources:
            self.mediaFailed.emit(source, "Wait for the memory to finish saving")
        return True

    # Callbacks
    def _on_imported(self, batch: _ImportBatch, source: str, media: MediaItem) -> None:
        self.media.append(media)
        self._imported.append(media)
        self.mediaChanged.emit(self.media)
        self._settle(batch, ImportOutcome(source_path=source, media=media))

    def _on_import_failed(self, batch: _ImportBatch, source: str, error: Exception) -> None:
        message = describe_error(error)
        self.mediaFailed.emit(source, message)
        self._settle(batch, ImportOutcome(source_path=source, error=message))

    def _settle(self, batch: _ImportBatch, outcome: ImportOutcome) -> None:
        self._pending_imports -= 1
        batch.outcomes.append(outcome)
        batch.remaining -= 1
        if batch.remaining == 0:
            self.importFinished.emit(batch.outcomes)
        if self._save_requested and not self.is_importing:
            self._save_requested = False
            self.save()

    def _on_saved(self, entry: MemoryEntry) -> None:
        self.is_saving = False
        self.entry = entry
        self.media = list(entry.media)
        self._imported = []
        self.saved.emit(entry)

    def _on_save_failed(self, error: Exception) -> None:
        self.is_saving = False
        if isinstance(error, InvalidInputError):
            self.validationFailed.emit(error.message)
        else:
            self.saveFailed.emit(describe_error(error))
