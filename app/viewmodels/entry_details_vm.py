"""ViewModel for the read-only details of a memory entry."""

from __future__ import annotations

from PySide6.QtCore import Signal

from app.tasks import TaskRunner
from app.viewmodels.base_vm import BaseVM, describe_error
from core.models import Coordinate, MediaItem, MemoryEntry
from infrastructure.media_service import MediaFileWorker
from infrastructure.wikipedia_service import WikipediaService


class EntryDetailsVM(BaseVM):
    """Shows an entry, its media thumbnails and a Wikipedia description.

    Signals:
        wikiDescriptionChanged(object): the description text, or None.
        thumbnailLoaded(str, object): media id and PIL image.
        thumbnailFailed(str, str): media id and message.
    """

    wikiDescriptionChanged = Signal(object)
    thumbnailLoaded = Signal(str, object)
    thumbnailFailed = Signal(str, str)

    def __init__(
        self,
        entry: MemoryEntry,
        wikipedia: WikipediaService,
        media_worker: MediaFileWorker,
        runner: TaskRunner,
    ) -> None:
        super().__init__(runner)
        self._entry = entry
        self._wikipedia = wikipedia
        self._worker = media_worker
        self.wiki_description: str | None = None

    @property
    def entry(self) -> MemoryEntry:
        return self._entry

    @property
    def title(self) -> str:
        return self._entry.title

    @property
    def description(self) -> str:
        return self._entry.description

    @property
    def coordinate(self) -> Coordinate:
        return self._entry.coordinate

    @property
    def media(self) -> list[MediaItem]:
        return list(self._entry.media)

    def load_wiki_description(self) -> None:
        coordinate = self.coordinate
        self._submit(
            "describe location",
            lambda _token: self._wikipedia.describe_location(coordinate),
            self._on_description,
            lambda _error: self._on_description(None),
        )

    def load_thumbnails(self) -> None:
        for media in self._entry.media:
            self.load_thumbnail(media)

    def load_thumbnail(self, media: MediaItem) -> None:
        self._submit(
            f"thumbnail {media.id}",
            lambda token: self._worker.load_thumbnail(media, token),
            lambda image: self.thumbnailLoaded.emit(media.id, image),
            lambda error: self.thumbnailFailed.emit(media.id, describe_error(error)),
        )

    def _on_description(self, text: str | None) -> None:
        self.wiki_description = text
        self.wikiDescriptionChanged.emit(text)
