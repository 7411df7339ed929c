"""SQLAlchemy schema and session management for the local memory store.

Two tables back the domain model:

- `geo_entries`: one row per memory entry, keyed by its UUID string.
- `media_entries`: one row per stored photo/video, keyed by a surrogate UUID,
  with a unique file path and a nullable link to its owning entry.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from loguru import logger
from sqlalchemy import Column, Float, ForeignKey, String, Text, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, relationship, sessionmaker
from sqlalchemy.pool import StaticPool

Base = declarative_base()


class GeoEntryRow(Base):
    __tablename__ = "geo_entries"

    id = Column(String(36), primary_key=True)
    title = Column(Text, nullable=False)
    entry_description = Column(Text, nullable=False, default="")
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)

    media_entries = relationship(
        "MediaEntryRow", back_populates="linked_geo_entry", order_by="MediaEntryRow.media_path"
    )


class MediaEntryRow(Base):
    __tablename__ = "media_entries"

    id = Column(String(36), primary_key=True)
    media_path = Column(Text, nullable=False, unique=True)
    media_kind = Column(String(16), nullable=False)  # image|video
    geo_entry_id = Column(
        String(36), ForeignKey("geo_entries.id", ondelete="SET NULL"), nullable=True, index=True
    )

    linked_geo_entry = relationship("GeoEntryRow", back_populates="media_entries")


def _enable_sqlite_foreign_keys(dbapi_connection, _record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """Owns the engine and hands out transactional sessions."""

    def __init__(self, url: str, echo: bool = False) -> None:
        self.url = url
        self._is_sqlite = url.startswith("sqlite")
        kwargs: dict = {"echo": echo}
        if self._is_sqlite:
            kwargs["connect_args"] = {"check_same_thread": False}
            if url in ("sqlite://", "sqlite:///:memory:"):
                # One shared connection, otherwise every session sees an empty database
                kwargs["poolclass"] = StaticPool
        self.engine: Engine = create_engine(url, **kwargs)
        if self._is_sqlite:
            event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)
        self._session_factory = sessionmaker(
            bind=self.engine, autoflush=False, expire_on_commit=False
        )

    @classmethod
    def in_memory(cls) -> Database:
        return cls("sqlite://")

    @classmethod
    def at_path(cls, db_path: str | Path) -> Database:
        path = Path(db_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        return cls(f"sqlite:///{path}")

    def init_db(self) -> None:
        """Create all tables; safe to run multiple times."""
        Base.metadata.create_all(bind=self.engine)
        logger.info("Database ready: {}", self.engine.url.render_as_string(hide_password=True))

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """Run the enclosed block in one transaction.

        Commits when the block finishes, rolls back and re-raises on any error.
        """
        session: Session = self._session_factory()
        try:
            yield session
            session.commit()
        except BaseException:
            session.rollback()
            raise
        finally:
            session.close()

    def dispose(self) -> None:
        self.engine.dispose()
