"""Tickets: parsing, due-time resolution, repository resolution and file post-processing."""

from branchpilot.tickets.parser import (
    load_ticket_file,
    load_tickets_from_directory,
    parse_ticket_document,
    scan_directories,
    validate_front_matter,
)
from branchpilot.tickets.when import is_valid_timezone, parse_when_to_utc_iso

__all__ = [
    "is_valid_timezone",
    "load_ticket_file",
    "load_tickets_from_directory",
    "parse_ticket_document",
    "parse_when_to_utc_iso",
    "scan_directories",
    "validate_front_matter",
]
