from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import sys

import click
from loguru import logger

from core.errors import MediaError, StorageError
from core.models import Coordinate, MemoryEntry, PickerItem
from infrastructure.db import Database
from infrastructure.geocoding import NominatimGeocoder
from infrastructure.logging import find_latest_log_file, init_logging
from infrastructure.media_service import MediaFileWorker
from infrastructure.settings import JsonSettings
from infrastructure.storage_service import StorageService
from infrastructure.wikipedia_service import WikipediaService

BASE_DIR = Path(__file__).parent


@dataclass
class Services:
    settings: JsonSettings
    database: Database
    storage: StorageService
    media: MediaFileWorker
    geocoder: NominatimGeocoder
    wikipedia: WikipediaService

    def close(self) -> None:
        self.database.dispose()


def open_database(settings: JsonSettings) -> Database:
    url = str(settings.get("storage.database_url", "") or "")
    if url:
        return Database(url)
    return Database.at_path(settings.get_path("storage.database_file"))


def build_services(settings: JsonSettings) -> Services:
    """Wire every service from `settings`; nothing is global."""
    database = open_database(settings)
    database.init_db()
    storage = StorageService(database)
    media = MediaFileWorker(storage, settings.get_path("storage.documents_dir"), settings)
    media.remove_stale_partials()
    geocoder = NominatimGeocoder(settings)
    wikipedia = WikipediaService(geocoder, settings=settings)
    return Services(settings, database, storage, media, geocoder, wikipedia)


def _format_entry(entry: MemoryEntry) -> str:
    line = f"{entry.id}  {entry.title}  ({entry.coordinate.as_text()})"
    if entry.media:
        line += f"  [{len(entry.media)} media]"
    return line


def _fail(message: str) -> None:
    raise click.ClickException(message)


@click.group()
@click.option(
    "--settings",
    "settings_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=BASE_DIR / "settings.json",
    show_default=True,
    help="Path to settings.json.",
)
@click.pass_context
def cli(ctx: click.Context, settings_path: Path) -> None:
    """GeoMemories: geotagged memories with photos and videos."""
    try:
        settings = JsonSettings(settings_path)
    except (OSError, ValueError) as ex:
        raise click.ClickException(f"Cannot read settings: {ex}") from ex

    log_dir = settings.get_path("logging.dir")
    init_logging(
        str(log_dir) if log_dir else None,
        level=str(settings.get("logging.level", "INFO")),
        console=True,
    )
    try:
        services = build_services(settings)
    except StorageError as ex:
        raise click.ClickException(str(ex)) from ex
    ctx.obj = services
    ctx.call_on_close(services.close)


@cli.command("list")
@click.pass_obj
def list_entries(services: Services) -> None:
    """List every memory entry."""
    try:
        entries = services.storage.list_memory_entries()
    except StorageError as ex:
        _fail(str(ex))
        return
    if not entries:
        click.echo("No memories yet.")
        return
    for entry in entries:
        click.echo(_format_entry(entry))


def _import_all(services: Services, paths: tuple[Path, ...], owner_id: str | None) -> list[str]:
    """Import each file; failures are reported and skipped."""
    media_ids: list[str] = []
    for p in paths:
        try:
            media = services.media.import_from_picker(PickerItem(str(p)), owner_id)
        except (MediaError, StorageError) as ex:
            click.echo(f"Skipped {p}: {ex}", err=True)
            continue
        click.echo(f"Imported {p.name} as {media.kind.value} {media.id}")
        media_ids.append(media.id)
    return media_ids


@cli.command("add")
@click.argument("title")
@click.option("--lat", "latitude", type=float, required=True, help="Latitude in degrees.")
@click.option("--lon", "longitude", type=float, required=True, help="Longitude in degrees.")
@click.option("--description", "-d", default="", help="Free-form description.")
@click.option(
    "--media",
    "media_paths",
    multiple=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Photo or video to attach (repeatable).",
)
@click.pass_obj
def add_entry(
    services: Services,
    title: str,
    latitude: float,
    longitude: float,
    description: str,
    media_paths: tuple[Path, ...],
) -> None:
    """Create a memory entry, optionally with media."""
    coordinate = Coordinate(latitude, longitude)
    try:
        entry = services.storage.create_memory_entry(title, description, coordinate)
    except StorageError as ex:
        _fail(str(ex))
        return
    # Media link straight to the new entry so a bad file never orphans the others.
    _import_all(services, media_paths, entry.id)
    entry = services.storage.get_memory_entry(entry.id)
    click.echo(_format_entry(entry))


@cli.command("delete")
@click.argument("entry_id")
@click.pass_obj
def delete_entry(services: Services, entry_id: str) -> None:
    """Delete an entry together with its media files."""
    try:
        entry = services.storage.get_memory_entry(entry_id)
    except StorageError as ex:
        click.echo(f"Nothing to delete: {ex}")
        return
    for media in entry.media:
        services.media.delete_media_item(media)
    try:
        services.storage.delete_memory_entry(entry_id)
    except StorageError as ex:
        _fail(str(ex))
        return
    click.echo(f"Deleted {entry.title}")


@cli.command("import-media")
@click.argument("entry_id")
@click.argument(
    "paths", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False, path_type=Path)
)
@click.pass_obj
def import_media(services: Services, entry_id: str, paths: tuple[Path, ...]) -> None:
    """Attach photos or videos to an existing entry."""
    try:
        services.storage.get_memory_entry(entry_id)
    except StorageError as ex:
        _fail(str(ex))
        return
    imported = _import_all(services, paths, entry_id)
    click.echo(f"{len(imported)} of {len(paths)} files imported")


@cli.command("describe")
@click.argument("entry_id", required=False)
@click.option("--lat", "latitude", type=float, help="Latitude when no entry is given.")
@click.option("--lon", "longitude", type=float, help="Longitude when no entry is given.")
@click.pass_obj
def describe(
    services: Services, entry_id: str | None, latitude: float | None, longitude: float | None
) -> None:
    """Print the Wikipedia description for an entry or coordinate."""
    if entry_id:
        try:
            coordinate = services.storage.get_memory_entry(entry_id).coordinate
        except StorageError as ex:
            _fail(str(ex))
            return
    elif latitude is not None and longitude is not None:
        coordinate = Coordinate(latitude, longitude)
    else:
        _fail("Give an entry id or both --lat and --lon")
        return

    text = services.wikipedia.describe_location(coordinate)
    if text is None:
        click.echo(f"No description found for {coordinate.as_text()}")
        return
    click.echo(text)


@cli.command("search")
@click.argument("query")
@click.pass_obj
def search(services: Services, query: str) -> None:
    """Search for a location by name."""
    results = services.geocoder.search(query)
    if not results:
        click.echo("No locations found.")
        return
    for candidate in results:
        click.echo(f"{candidate.coordinate.as_text()}  {candidate.name}")
        click.echo(f"    {candidate.description}")


@cli.command("log-path")
@click.pass_obj
def log_path(services: Services) -> None:
    """Print the most recent log file."""
    log_dir = services.settings.get_path("logging.dir")
    latest = find_latest_log_file(str(log_dir) if log_dir else None)
    click.echo(str(latest) if latest else "No log file yet.")


def main() -> int:
    try:
        cli.main(standalone_mode=False)
    except click.ClickException as ex:
        ex.show()
        return ex.exit_code
    except click.Abort:
        return 1
    logger.complete()
    return 0


if __name__ == "__main__":
    sys.exit(main())
