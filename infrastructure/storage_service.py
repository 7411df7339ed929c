"""Transactional CRUD over memory entries and media records.

Every public operation validates its input first (where applicable), then runs
in exactly one database transaction. Database errors never leave this module
unwrapped: they surface as `PersistenceFailure`, lookups that miss as
`NotFoundError`, and rejected input as `InvalidInputError`.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
import uuid
from typing import TypeVar

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.errors import InvalidInputError, NotFoundError, PersistenceFailure, StorageError
from core.models import Coordinate, MediaItem, MediaKind, MemoryEntry
from core.services.validation import EntryValidator
from infrastructure.db import Database, GeoEntryRow, MediaEntryRow
from infrastructure.queries import QueryBuilder

T = TypeVar("T")


def _to_media(row: MediaEntryRow) -> MediaItem:
    try:
        kind = MediaKind(row.media_kind)
    except ValueError as ex:
        raise PersistenceFailure(ex) from ex
    return MediaItem(id=row.id, path=row.media_path, kind=kind, owner_id=row.geo_entry_id)


def _to_entry(row: GeoEntryRow) -> MemoryEntry:
    return MemoryEntry(
        id=row.id,
        title=row.title,
        description=row.entry_description or "",
        latitude=row.latitude,
        longitude=row.longitude,
        media=[_to_media(m) for m in row.media_entries],
    )


class StorageService:
    """Validated, atomic create/read/update/delete for the memory store."""

    def __init__(
        self,
        database: Database,
        validator: EntryValidator | None = None,
        queries: QueryBuilder | None = None,
    ) -> None:
        self._db = database
        self._validator = validator or EntryValidator()
        self._queries = queries or QueryBuilder()

    # Memory entries
    def create_memory_entry(
        self,
        title: str,
        description: str,
        coordinate: Coordinate,
        initial_media: Iterable[str] = (),
        entry_id: str | None = None,
    ) -> MemoryEntry:
        """Insert a new entry, link `initial_media` ids to it, return the snapshot."""
        self._validator.validate(title, coordinate.latitude, coordinate.longitude)
        new_id = entry_id or str(uuid.uuid4())
        media_ids = list(initial_media)

        def work(session: Session) -> MemoryEntry:
            row = GeoEntryRow(
                id=new_id,
                title=title,
                entry_description=description or "",
                latitude=coordinate.latitude,
                longitude=coordinate.longitude,
            )
            session.add(row)
            session.flush()
            self._set_media_links(session, row, media_ids)
            session.flush()
            session.refresh(row)
            return _to_entry(row)

        entry = self._run("create_memory_entry", work)
        logger.info("Created memory entry {} ({} media)", entry.id, len(entry.media))
        return entry

    def add_memory_entries(self, entries: Iterable[MemoryEntry]) -> list[MemoryEntry]:
        """Insert several entries in one transaction; all commit or none do.

        Media listed on the entries must already exist and are linked.
        """
        batch = list(entries)
        for entry in batch:
            self._validator.validate(entry.title, entry.latitude, entry.longitude)
        seen: set[str] = set()
        for entry in batch:
            if entry.id in seen:
                logger.error("Duplicate memory entry id {} in batch", entry.id)
                raise PersistenceFailure(ValueError(f"Duplicate memory entry id: {entry.id}"))
            seen.add(entry.id)

        def work(session: Session) -> list[MemoryEntry]:
            rows: list[GeoEntryRow] = []
            for entry in batch:
                row = GeoEntryRow(
                    id=entry.id,
                    title=entry.title,
                    entry_description=entry.description or "",
                    latitude=entry.latitude,
                    longitude=entry.longitude,
                )
                session.add(row)
                session.flush()
                self._set_media_links(session, row, entry.media_ids)
                rows.append(row)
            session.flush()
            for row in rows:
                session.refresh(row)
            return [_to_entry(r) for r in rows]

        created = self._run("add_memory_entries", work)
        logger.info("Inserted {} memory entries", len(created))
        return created

    def list_memory_entries(self) -> list[MemoryEntry]:
        """Return all entries in storage-iteration order."""

        def work(session: Session) -> list[MemoryEntry]:
            rows = session.scalars(self._queries.fetch_all_entries()).all()
            return [_to_entry(r) for r in rows]

        return self._run("list_memory_entries", work)

    def get_memory_entry(self, entry_id: str) -> MemoryEntry:
        def work(session: Session) -> MemoryEntry:
            row = session.scalars(self._queries.fetch_entry_by_id(entry_id)).first()
            if row is None:
                raise NotFoundError("Memory entry")
            return _to_entry(row)

        return self._run("get_memory_entry", work)

    def update_memory_entry(self, entry: MemoryEntry) -> MemoryEntry:
        """Overwrite every mutable field and the media association set of `entry.id`."""
        self._validator.validate(entry.title, entry.latitude, entry.longitude)
        media_ids = entry.media_ids

        def work(session: Session) -> MemoryEntry:
            row = session.scalars(self._queries.fetch_entry_by_id(entry.id)).first()
            if row is None:
                raise NotFoundError("Memory entry")
            row.title = entry.title
            row.entry_description = entry.description or ""
            row.latitude = entry.latitude
            row.longitude = entry.longitude
            self._set_media_links(session, row, media_ids)
            session.flush()
            session.refresh(row)
            return _to_entry(row)

        updated = self._run("update_memory_entry", work)
        logger.info("Updated memory entry {}", updated.id)
        return updated

    def delete_memory_entry(self, entry_id: str) -> None:
        """Delete by id; an unknown id is a successful no-op.

        Media owned by the entry are unlinked, not deleted.
        """

        def work(session: Session) -> int:
            session.execute(self._queries.unlink_media_of_entry(entry_id))
            result = session.execute(self._queries.delete_entry_by_id(entry_id))
            return result.rowcount or 0

        count = self._run("delete_memory_entry", work)
        logger.info("Deleted memory entry {} (rows={})", entry_id, count)

    # Media records
    def create_media_item(
        self, kind: MediaKind, path: str, owner_id: str | None = None
    ) -> MediaItem:
        """Insert a media record for `path`, optionally linked to `owner_id`."""
        try:
            kind = MediaKind(kind)
        except ValueError as ex:
            raise InvalidInputError(f"Unknown media kind: {kind}") from ex

        def work(session: Session) -> MediaItem:
            if owner_id is not None:
                self._require_entry(session, owner_id)
            row = MediaEntryRow(
                id=str(uuid.uuid4()),
                media_path=path,
                media_kind=kind.value,
                geo_entry_id=owner_id,
            )
            session.add(row)
            session.flush()
            return _to_media(row)

        media = self._run("create_media_item", work)
        logger.info("Created {} media {} -> {}", media.kind.value, media.id, media.path)
        return media

    def link_media_item(self, media_id: str, owner_id: str) -> MediaItem:
        """Attach an existing media record to an existing entry."""

        def work(session: Session) -> MediaItem:
            row = session.scalars(self._queries.fetch_media_by_id(media_id)).first()
            if row is None:
                raise NotFoundError("Media item")
            self._require_entry(session, owner_id)
            row.geo_entry_id = owner_id
            session.flush()
            return _to_media(row)

        return self._run("link_media_item", work)

    def delete_media_item(self, media_id: str) -> None:
        """Delete a media record by id; an unknown id is a no-op."""

        def work(session: Session) -> None:
            session.execute(self._queries.delete_media_by_id(media_id))

        self._run("delete_media_item", work)
        logger.debug("Deleted media record {}", media_id)

    def list_media_items(self, owner_id: str | None = None) -> list[MediaItem]:
        def work(session: Session) -> list[MediaItem]:
            rows = session.scalars(self._queries.fetch_media(owner_id)).all()
            return [_to_media(r) for r in rows]

        return self._run("list_media_items", work)

    # Internal helpers
    def _require_entry(self, session: Session, entry_id: str) -> GeoEntryRow:
        row = session.scalars(self._queries.fetch_entry_by_id(entry_id)).first()
        if row is None:
            raise NotFoundError("Memory entry")
        return row

    def _set_media_links(self, session: Session, row: GeoEntryRow, media_ids: list[str]) -> None:
        """Make `media_ids` exactly the media set owned by `row`."""
        wanted = set(media_ids)
        found: list[MediaEntryRow] = []
        if wanted:
            found = list(session.scalars(self._queries.fetch_media_by_ids(list(wanted))).all())
            if len(found) != len(wanted):
                raise NotFoundError("Media item")
        for current in list(session.scalars(self._queries.fetch_media(row.id)).all()):
            if current.id not in wanted:
                current.geo_entry_id = None
        for media in found:
            media.geo_entry_id = row.id

    @contextmanager
    def _transaction(self) -> Iterator[Session]:
        with self._db.session_scope() as session:
            yield session

    def _run(self, op: str, work: Callable[[Session], T]) -> T:
        try:
            with self._transaction() as session:
                return work(session)
        except StorageError:
            raise
        except SQLAlchemyError as ex:
            logger.error("{} failed: {}", op, ex)
            raise PersistenceFailure(ex) from ex
