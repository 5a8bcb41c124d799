"""Ticket parsing and validation: Markdown with YAML front matter to Ticket.

A ticket file looks like::

    ---
    branch: feature/login
    when: 2025-08-12T09:30 Europe/London
    title: Add login form
    labels: [feature]
    ---
    PR body in Markdown.

Documents without front matter, or whose front matter has neither `branch`
nor `when`, are unrelated notes and produce no ticket. Every other document
produces exactly one ticket, valid or invalid.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime
from pathlib import Path
from typing import Annotated, Any, List

import frontmatter
import yaml
from pydantic import BaseModel, BeforeValidator, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from branchpilot.errors import TicketValidationError, WhenParseError
from branchpilot.models import INVALID, PENDING, OnProcessed, PushMode, Ticket
from branchpilot.tickets.when import parse_when_to_utc_iso
from branchpilot.utils import expand_path

LOG = logging.getLogger("branchpilot.tickets.parser")

REQUIRED_FIELDS = ("branch", "when")
WHEN_ERROR = "Invalid 'when' format"


def _coerce_when(value: Any) -> Any:
    """YAML loads bare timestamps as date/datetime; turn them back into ISO strings."""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


class TicketFront(BaseModel):
    """Front matter schema. Unknown keys are accepted and ignored."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    branch: str
    when: Annotated[str, BeforeValidator(_coerce_when)]
    title: str | None = None
    timezone: str | None = None
    base: str | None = None
    rebase: bool | None = None
    push_mode: PushMode | None = None
    labels: List[str] | None = None
    reviewers: List[str] | None = None
    assignees: List[str] | None = None
    repository: str | None = None
    draft: bool | None = None
    auto_merge: bool | None = None
    delete_local_branch: bool | None = None
    on_processed: OnProcessed | None = None
    archive_dir: str | None = None


def _is_present(value: Any) -> bool:
    return value is not None and value != ""


def _display(value: Any) -> str:
    if not _is_present(value):
        return ""
    return str(_coerce_when(value))


def format_validation_error(err: ValidationError) -> str:
    """Render pydantic issues as 'field.path: message' joined by ', '."""
    parts = []
    for issue in err.errors():
        field_path = ".".join(str(p) for p in issue.get("loc", ()))
        msg = issue.get("msg", "")
        parts.append(f"{field_path}: {msg}" if field_path else msg)
    return ", ".join(parts)


def validate_front_matter(meta: dict[str, Any]) -> TicketFront:
    """Validate ticket front matter.

    Raises:
        TicketValidationError: Required fields are missing or a field has
            the wrong type; the message lists every problem.
    """
    missing = [name for name in REQUIRED_FIELDS if not _is_present(meta.get(name))]
    if missing:
        raise TicketValidationError(f"Missing required fields: {', '.join(missing)}")
    try:
        return TicketFront.model_validate(meta)
    except ValidationError as e:
        raise TicketValidationError(format_validation_error(e)) from e


def parse_ticket_document(
    text: str,
    file: Path,
    fallback_zone: str | None = None,
) -> Ticket | None:
    """Parse one ticket document.

    Args:
        text: Raw file content.
        file: Source path (kept on the ticket).
        fallback_zone: Zone for 'when' when neither the expression nor the
            ticket's own timezone field names one.

    Returns:
        A Ticket in state pending (valid) or invalid (with error set), or
        None when the document is not a ticket at all.
    """
    file = Path(file)
    try:
        post = frontmatter.loads(text)
    except yaml.YAMLError as e:
        return Ticket(file=file, state=INVALID, error=f"Failed to parse front matter: {e}")

    meta = post.metadata or {}
    has_branch = _is_present(meta.get("branch"))
    has_when = _is_present(meta.get("when"))
    if not has_branch and not has_when:
        return None

    body = post.content.strip() or None
    try:
        front = validate_front_matter(meta)
    except TicketValidationError as e:
        return Ticket(
            file=file,
            branch=_display(meta.get("branch")),
            when=_display(meta.get("when")),
            body=body,
            state=INVALID,
            error=str(e),
        )

    ticket = Ticket(
        file=file,
        body=body,
        state=PENDING,
        **front.model_dump(exclude_none=True),
    )
    try:
        ticket.due_utc = parse_when_to_utc_iso(front.when, front.timezone or fallback_zone)
    except WhenParseError as e:
        ticket.mark_invalid(f"{WHEN_ERROR}: {e}")
    return ticket


def load_ticket_file(path: Path, fallback_zone: str | None = None) -> Ticket | None:
    """Read and parse a ticket file; read failures become invalid tickets."""
    try:
        text = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        return Ticket(file=Path(path), state=INVALID, error=f"Failed to read file: {e}")
    return parse_ticket_document(text, Path(path), fallback_zone=fallback_zone)


def load_tickets_from_directory(
    directory: str | Path,
    fallback_zone: str | None = None,
    log: logging.Logger | None = None,
) -> List[Ticket]:
    """Load tickets from *.md files directly inside directory (sorted by name)."""
    log = log or LOG
    dir_path = expand_path(directory)
    try:
        entries = sorted(p for p in dir_path.iterdir() if p.suffix.lower() == ".md" and p.is_file())
    except OSError as e:
        log.debug("Could not read directory %s: %s", dir_path, e)
        return []

    tickets: List[Ticket] = []
    for path in entries:
        ticket = load_ticket_file(path, fallback_zone=fallback_zone)
        if ticket is None:
            log.debug("Skipping %s: no ticket front matter", path.name)
            continue
        tickets.append(ticket)
    return tickets


def scan_directories(
    directories: List[str | Path],
    fallback_zone: str | None = None,
    log: logging.Logger | None = None,
) -> List[Ticket]:
    """Scan directories in parallel; results keep the order of directories."""
    if not directories:
        return []
    workers = min(len(directories), 8)
    with ThreadPoolExecutor(max_workers=workers) as pool:
        results = pool.map(
            lambda d: load_tickets_from_directory(d, fallback_zone=fallback_zone, log=log),
            directories,
        )
        return [ticket for tickets in results for ticket in tickets]
