"""Tests for the view-models, driven through an inline task runner."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

from PIL import Image
import pytest

from app.viewmodels.entry_details_vm import EntryDetailsVM
from app.viewmodels.entry_editor_vm import EntryEditorVM
from app.viewmodels.home_vm import HomeVM
from app.viewmodels.location_search_vm import LocationSearchVM
from conftest import create_test_image
from core.errors import PersistenceFailure
from core.models import Coordinate, LocationCandidate, MediaKind, PickerItem
from core.services.interfaces import IGeocoder
from infrastructure.media_service import MediaFileWorker
from infrastructure.storage_service import StorageService
from infrastructure.wikipedia_service import WikipediaService


def _record(signal) -> list:
    calls: list = []
    signal.connect(lambda *args: calls.append(args))
    return calls


# =============================================================================
# HomeVM
# =============================================================================


class TestHomeVM:
    def test_load(self, storage, media_worker, runner, paris) -> None:
        storage.create_memory_entry("Eiffel Tower", "", paris)
        vm = HomeVM(storage, media_worker, runner)
        changed = _record(vm.entriesChanged)

        vm.load()

        assert [e.title for e in vm.entries] == ["Eiffel Tower"]
        assert len(changed) == 1
        assert not vm.is_loading

    def test_load_failure_offers_retry(self, storage, media_worker, runner, paris) -> None:
        vm = HomeVM(storage, media_worker, runner)
        failed = _record(vm.loadFailed)

        with patch.object(
            StorageService, "list_memory_entries", side_effect=PersistenceFailure(RuntimeError("db"))
        ):
            vm.load()
        assert failed == [("db", True)]

        storage.create_memory_entry("t", "", paris)
        vm.retry()
        assert len(vm.entries) == 1

    def test_delete_removes_media_files(
        self, storage, media_worker, runner, paris, picked_image
    ) -> None:
        entry = storage.create_memory_entry("t", "", paris)
        media = media_worker.import_from_picker(PickerItem(str(picked_image)), owner_id=entry.id)
        vm = HomeVM(storage, media_worker, runner)
        vm.load()
        deleted = _record(vm.entryDeleted)

        vm.delete_entry(vm.entries[0])

        assert deleted == [(entry.id,)]
        assert vm.entries == []
        assert storage.list_memory_entries() == []
        assert storage.list_media_items() == []
        assert not media_worker.resolve_path(media).exists()

    def test_finished_work_is_not_tracked(self, storage, media_worker, runner) -> None:
        vm = HomeVM(storage, media_worker, runner)

        for _ in range(5):
            vm.load()

        assert vm.pending_tokens == []
        assert len(vm._tokens) <= 1


# =============================================================================
# EntryEditorVM
# =============================================================================


class TestEntryEditorCreate:
    def test_window_title(self, storage, media_worker, runner, paris) -> None:
        assert EntryEditorVM(storage, media_worker, runner).window_title == "New memory"
        entry = storage.create_memory_entry("t", "", paris)
        assert EntryEditorVM(storage, media_worker, runner, entry).window_title == "Edit memory"

    def test_save_links_imported_media(
        self, storage, media_worker, runner, paris, picked_image
    ) -> None:
        vm = EntryEditorVM(storage, media_worker, runner)
        saved = _record(vm.saved)
        vm.add_picker_items([PickerItem(str(picked_image))])
        assert vm.media[0].owner_id is None

        vm.title, vm.description, vm.coordinate = "Sunset", "Lovely", paris
        vm.save()

        assert len(saved) == 1
        entry = saved[0][0]
        assert entry.media_ids == [vm.media[0].id]
        assert storage.get_memory_entry(entry.id).media[0].owner_id == entry.id
        assert vm.is_edit_mode

    def test_batch_keeps_successes(self, storage, media_worker, runner, tmp_path) -> None:
        good = create_test_image(tmp_path / "good.png")
        bad = tmp_path / "bad.txt"
        bad.write_text("nope")
        broken = tmp_path / "broken.jpg"
        broken.write_bytes(b"xx")
        vm = EntryEditorVM(storage, media_worker, runner)
        failures = _record(vm.mediaFailed)
        finished = _record(vm.importFinished)

        vm.add_picker_items([PickerItem(str(bad)), PickerItem(str(good)), PickerItem(str(broken))])

        assert len(vm.media) == 1
        assert [f[0] for f in failures] == [str(bad), str(broken)]
        (outcomes,) = finished[0]
        assert [o.ok for o in outcomes] == [False, True, False]
        assert outcomes[0].error

    def test_camera_image(self, storage, media_worker, runner) -> None:
        vm = EntryEditorVM(storage, media_worker, runner)
        vm.add_camera_image(Image.new("RGB", (20, 20), "blue"))
        assert vm.media[0].kind is MediaKind.IMAGE

    @pytest.mark.parametrize(
        "title, coordinate, message",
        [
            ("", Coordinate(0, 0), "Title cannot be empty"),
            ("ok", Coordinate(95, 0), "Latitude must be between -90 and 90 degrees"),
            ("ok", None, "Choose a location for this memory"),
        ],
    )
    def test_validation_inline(self, storage, media_worker, runner, title, coordinate, message):
        vm = EntryEditorVM(storage, media_worker, runner)
        errors = _record(vm.validationFailed)
        vm.title, vm.coordinate = title, coordinate

        vm.save()

        assert errors == [(message,)]
        assert storage.list_memory_entries() == []

    def test_save_failure(self, storage, media_worker, runner, paris) -> None:
        vm = EntryEditorVM(storage, media_worker, runner)
        errors = _record(vm.saveFailed)
        vm.title, vm.coordinate = "t", paris
        with patch.object(
            StorageService,
            "create_memory_entry",
            side_effect=PersistenceFailure(RuntimeError("locked")),
        ):
            vm.save()
        assert errors == [("locked",)]
        assert not vm.is_saving

    def test_discard_deletes_unsaved_media(
        self, storage, media_worker, runner, picked_image
    ) -> None:
        vm = EntryEditorVM(storage, media_worker, runner)
        vm.add_picker_items([PickerItem(str(picked_image))])
        path = media_worker.resolve_path(vm.media[0])

        vm.discard()

        assert storage.list_media_items() == []
        assert not path.exists()
        assert vm.is_closed

    def test_remove_media(self, storage, media_worker, runner, picked_image) -> None:
        vm = EntryEditorVM(storage, media_worker, runner)
        vm.add_picker_items([PickerItem(str(picked_image))])
        changed = _record(vm.mediaChanged)

        vm.remove_media(vm.media[0])

        assert vm.media == []
        assert changed == [([],)]
        assert storage.list_media_items() == []

    def test_discard_during_import_deletes_committed_media(
        self, storage, media_worker, runner, documents_dir, picked_image
    ) -> None:
        vm = EntryEditorVM(storage, media_worker, runner)
        real_import = MediaFileWorker.import_from_picker

        def import_then_discard(worker, *args, **kwargs):
            media = real_import(worker, *args, **kwargs)
            vm.discard()
            return media

        with patch.object(MediaFileWorker, "import_from_picker", import_then_discard):
            vm.add_picker_items([PickerItem(str(picked_image))])

        assert vm.media == []
        assert storage.list_media_items() == []
        assert list(documents_dir.iterdir()) == []

    def test_imports_rejected_while_saving(self, storage, media_worker, runner, picked_image):
        vm = EntryEditorVM(storage, media_worker, runner)
        failures = _record(vm.mediaFailed)
        vm.is_saving = True

        vm.add_picker_items([PickerItem(str(picked_image))])
        vm.add_camera_image(Image.new("RGB", (20, 20), "blue"))

        assert [f[0] for f in failures] == [str(picked_image), "camera"]
        assert vm.media == []
        assert storage.list_media_items() == []


class TestEntryEditorEdit:
    def test_update_drops_removed_media(
        self, storage, media_worker, runner, paris, tokyo, picked_image
    ) -> None:
        entry = storage.create_memory_entry("Paris", "", paris)
        media_worker.import_from_picker(PickerItem(str(picked_image)), owner_id=entry.id)
        entry = storage.get_memory_entry(entry.id)
        vm = EntryEditorVM(storage, media_worker, runner, entry)
        saved = _record(vm.saved)

        vm.remove_media(vm.media[0])
        vm.title, vm.coordinate = "Tokyo", tokyo
        vm.save()

        stored = storage.get_memory_entry(entry.id)
        assert stored.title == "Tokyo"
        assert stored.coordinate == tokyo
        assert stored.media == []
        assert saved[0][0] == stored

    def test_imports_link_immediately(
        self, storage, media_worker, runner, paris, picked_image
    ) -> None:
        entry = storage.create_memory_entry("Paris", "", paris)
        vm = EntryEditorVM(storage, media_worker, runner, entry)
        vm.add_picker_items([PickerItem(str(picked_image))])
        assert storage.get_memory_entry(entry.id).media_ids == [vm.media[0].id]

    def test_save_during_import_waits_for_media(
        self, storage, media_worker, runner, paris, picked_image
    ) -> None:
        entry = storage.create_memory_entry("Paris", "", paris)
        vm = EntryEditorVM(storage, media_worker, runner, entry)
        saved = _record(vm.saved)
        real_import = MediaFileWorker.import_from_picker

        def import_then_save(worker, *args, **kwargs):
            media = real_import(worker, *args, **kwargs)
            vm.save()
            assert vm.is_importing
            assert saved == []
            return media

        with patch.object(MediaFileWorker, "import_from_picker", import_then_save):
            vm.add_picker_items([PickerItem(str(picked_image))])

        stored = storage.get_memory_entry(entry.id)
        assert len(saved) == 1
        assert stored.media_ids == [m.id for m in vm.media]
        assert len(stored.media) == 1
        (record,) = storage.list_media_items()
        assert record.owner_id == entry.id
        assert not vm.is_importing


# =============================================================================
# EntryDetailsVM / LocationSearchVM
# =============================================================================


class TestEntryDetailsVM:
    def test_exposes_entry(self, storage, media_worker, runner, paris) -> None:
        entry = storage.create_memory_entry("Eiffel", "Tall", paris)
        vm = EntryDetailsVM(entry, MagicMock(spec=WikipediaService), media_worker, runner)
        assert (vm.title, vm.description, vm.coordinate, vm.media) == ("Eiffel", "Tall", paris, [])

    def test_wiki_description(self, storage, media_worker, runner, paris) -> None:
        entry = storage.create_memory_entry("Eiffel", "", paris)
        wikipedia = MagicMock(spec=WikipediaService)
        wikipedia.describe_location.return_value = "Paris is the capital."
        vm = EntryDetailsVM(entry, wikipedia, media_worker, runner)
        changed = _record(vm.wikiDescriptionChanged)

        vm.load_wiki_description()

        wikipedia.describe_location.assert_called_once_with(paris)
        assert vm.wiki_description == "Paris is the capital."
        assert changed == [("Paris is the capital.",)]

    def test_wiki_failure_gives_none(self, storage, media_worker, runner, paris) -> None:
        entry = storage.create_memory_entry("Eiffel", "", paris)
        wikipedia = MagicMock(spec=WikipediaService)
        wikipedia.describe_location.side_effect = RuntimeError("boom")
        vm = EntryDetailsVM(entry, wikipedia, media_worker, runner)
        changed = _record(vm.wikiDescriptionChanged)

        vm.load_wiki_description()

        assert changed == [(None,)]

    def test_thumbnails(self, storage, media_worker, runner, paris, picked_image) -> None:
        entry = storage.create_memory_entry("t", "", paris)
        media = media_worker.import_from_picker(PickerItem(str(picked_image)), owner_id=entry.id)
        entry = storage.get_memory_entry(entry.id)
        vm = EntryDetailsVM(entry, MagicMock(spec=WikipediaService), media_worker, runner)
        loaded = _record(vm.thumbnailLoaded)

        vm.load_thumbnails()

        assert [args[0] for args in loaded] == [media.id]
        assert isinstance(loaded[0][1], Image.Image)

    def test_thumbnail_failure(self, storage, media_worker, runner, paris) -> None:
        entry = storage.create_memory_entry("t", "", paris)
        media = storage.create_media_item(MediaKind.IMAGE, "missing.jpg", owner_id=entry.id)
        vm = EntryDetailsVM(entry, MagicMock(spec=WikipediaService), media_worker, runner)
        failed = _record(vm.thumbnailFailed)

        vm.load_thumbnail(media)

        assert failed[0][0] == media.id
        assert failed[0][1].startswith("Failed to decode media file")

    def test_close_cancels_pending(self, storage, media_worker, runner, paris) -> None:
        entry = storage.create_memory_entry("t", "", paris)
        vm = EntryDetailsVM(entry, MagicMock(spec=WikipediaService), media_worker, runner)
        vm.close()
        assert vm.is_closed


class TestLocationSearchVM:
    def test_search(self, runner, paris) -> None:
        geocoder = MagicMock(spec=IGeocoder)
        geocoder.search.return_value = [LocationCandidate("Eiffel", paris, ["Paris"])]
        vm = LocationSearchVM(geocoder, runner)
        results = _record(vm.resultsChanged)

        vm.search(" eiffel ")

        geocoder.search.assert_called_once_with("eiffel")
        assert [c.name for c in results[0][0]] == ["Eiffel"]

    def test_blank_query(self, runner) -> None:
        geocoder = MagicMock(spec=IGeocoder)
        vm = LocationSearchVM(geocoder, runner)
        results = _record(vm.resultsChanged)

        vm.search("")

        geocoder.search.assert_not_called()
        assert results == [([],)]
