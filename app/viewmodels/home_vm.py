"""ViewModel for the map/listing screen."""

from __future__ import annotations

from PySide6.QtCore import Signal
from loguru import logger

from app.tasks import TaskRunner
from app.viewmodels.base_vm import BaseVM, describe_error
from core.models import MemoryEntry
from infrastructure.media_service import MediaFileWorker
from infrastructure.storage_service import StorageService


class HomeVM(BaseVM):
    """Loads all memories and deletes them on request.

    Signals:
        entriesChanged(list): the current entries after a load or delete.
        loadFailed(str, bool): message and whether a retry is offered.
        entryDeleted(str): id of a deleted entry.
    """

    entriesChanged = Signal(object)  # list[MemoryEntry]
    loadFailed = Signal(str, bool)
    entryDeleted = Signal(str)

    def __init__(
        self, storage: StorageService, media_worker: MediaFileWorker, runner: TaskRunner
    ) -> None:
        super().__init__(runner)
        self._storage = storage
        self._media = media_worker
        self.entries: list[MemoryEntry] = []
        self.is_loading = False

    def load(self) -> None:
        """Fetch every entry in the background."""
        self.is_loading = True
        self._submit(
            "list_memory_entries",
            lambda _token: self._storage.list_memory_entries(),
            self._on_loaded,
            self._on_load_failed,
        )

    def retry(self) -> None:
        self.load()

    def delete_entry(self, entry: MemoryEntry) -> None:
        """Delete the entry's media (records and files), then the entry."""

        def work(_token) -> str:
            for media in entry.media:
                self._media.delete_media_item(media)
            self._storage.delete_memory_entry(entry.id)
            return entry.id

        self._submit("delete_memory_entry", work, self._on_deleted, self._on_delete_failed)

    def _on_loaded(self, entries: list[MemoryEntry]) -> None:
        self.is_loading = False
        self.entries = list(entries)
        logger.info("Loaded {} memory entries", len(self.entries))
        self.entriesChanged.emit(self.entries)

    def _on_load_failed(self, error: Exception) -> None:
        self.is_loading = False
        self.loadFailed.emit(describe_error(error), True)

    def _on_deleted(self, entry_id: str) -> None:
        self.entries = [e for e in self.entries if e.id != entry_id]
        self.entryDeleted.emit(entry_id)
        self.entriesChanged.emit(self.entries)

    def _on_delete_failed(self, error: Exception) -> None:
        self.loadFailed.emit(describe_error(error), False)
