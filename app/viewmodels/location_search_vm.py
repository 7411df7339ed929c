"""ViewModel for picking a location by free-text search."""

from __future__ import annotations

from PySide6.QtCore import Signal

from app.tasks import TaskRunner
from app.viewmodels.base_vm import BaseVM
from core.models import LocationCandidate
from core.services.interfaces import IGeocoder


class LocationSearchVM(BaseVM):
    """Runs one search at a time; a new query cancels the previous one."""

    resultsChanged = Signal(object)  # list[LocationCandidate]

    def __init__(self, geocoder: IGeocoder, runner: TaskRunner) -> None:
        super().__init__(runner)
        self._geocoder = geocoder
        self.query = ""
        self.results: list[LocationCandidate] = []

    def search(self, query: str) -> None:
        self.cancel_pending()
        self.query = (query or "").strip()
        if not self.query:
            self._on_results([])
            return
        q = self.query
        self._submit(
            f"search {q}",
            lambda _token: self._geocoder.search(q),
            self._on_results,
            lambda _error: self._on_results([]),
        )

    def _on_results(self, results: list[LocationCandidate]) -> None:
        self.results = list(results)
        self.resultsChanged.emit(self.results)
