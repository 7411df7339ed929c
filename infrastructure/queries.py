"""Statement builders for fetch/delete predicates by identifier."""

from __future__ import annotations

from sqlalchemy import Delete, Select, Update, delete, select, update

from infrastructure.db import GeoEntryRow, MediaEntryRow


class QueryBuilder:
    """Builds the SQLAlchemy statements used by `StorageService`."""

    def fetch_all_entries(self) -> Select:
        return select(GeoEntryRow)

    def fetch_entry_by_id(self, entry_id: str) -> Select:
        return select(GeoEntryRow).where(GeoEntryRow.id == entry_id)

    def delete_entry_by_id(self, entry_id: str) -> Delete:
        return delete(GeoEntryRow).where(GeoEntryRow.id == entry_id)

    def fetch_media_by_id(self, media_id: str) -> Select:
        return select(MediaEntryRow).where(MediaEntryRow.id == media_id)

    def fetch_media_by_ids(self, media_ids: list[str]) -> Select:
        return select(MediaEntryRow).where(MediaEntryRow.id.in_(media_ids))

    def fetch_media_by_path(self, path: str) -> Select:
        return select(MediaEntryRow).where(MediaEntryRow.media_path == path)

    def fetch_media(self, owner_id: str | None = None) -> Select:
        stmt = select(MediaEntryRow)
        if owner_id is not None:
            stmt = stmt.where(MediaEntryRow.geo_entry_id == owner_id)
        return stmt

    def delete_media_by_id(self, media_id: str) -> Delete:
        return delete(MediaEntryRow).where(MediaEntryRow.id == media_id)

    def unlink_media_of_entry(self, entry_id: str) -> Update:
        return (
            update(MediaEntryRow)
            .where(MediaEntryRow.geo_entry_id == entry_id)
            .values(geo_entry_id=None)
        )
