"""Ticket file post-processing: delete or archive after a successful publish."""

import logging
import shutil
from datetime import UTC, datetime
from pathlib import Path

LOG = logging.getLogger("branchpilot.tickets.files")


def delete_ticket_file(path: Path, log: logging.Logger | None = None) -> None:
    Path(path).unlink()
    (log or LOG).debug("Deleted ticket file %s", path)


def resolve_archive_dir(ticket_file: Path, archive_dir: str) -> Path:
    """Archive directory for a ticket: absolute or ~ paths as given, relative
    paths next to the ticket file."""
    p = Path(archive_dir).expanduser()
    if p.is_absolute():
        return p
    return Path(ticket_file).resolve().parent / p


def _timestamp_suffix(now: datetime | None = None) -> str:
    now = now or datetime.now(UTC)
    return now.strftime("%Y%m%dT%H%M%S%fZ")


def archive_ticket_file(
    path: Path,
    archive_dir: Path,
    now: datetime | None = None,
    log: logging.Logger | None = None,
) -> Path:
    """Move a ticket file into archive_dir, creating it if needed.

    An existing file with the same name is never overwritten: the archived
    name gets a UTC timestamp suffix (name-<timestamp>.md).

    Returns:
        Path of the archived file.
    """
    src = Path(path)
    archive_dir = Path(archive_dir)
    archive_dir.mkdir(parents=True, exist_ok=True)
    dest = archive_dir / src.name
    if dest.exists():
        dest = archive_dir / f"{src.stem}-{_timestamp_suffix(now)}{src.suffix}"
    shutil.move(str(src), str(dest))
    (log or LOG).debug("Archived ticket file %s -> %s", src, dest)
    return dest
