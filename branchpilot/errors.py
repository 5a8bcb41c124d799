"""Error taxonomy for the ticket lifecycle.

Validation and resolution errors mark a single ticket invalid. Synchronization
errors are fatal to one ticket only; the ticket file stays in place so the
next run retries it. Publish warnings never fail a ticket.
"""


class TicketValidationError(Exception):
    """Raised when ticket front matter is missing required fields or has bad types."""

    pass


class WhenParseError(ValueError):
    """Raised when a due-time expression matches none of the accepted shapes."""

    def __init__(self, when: str, message: str | None = None) -> None:
        self.when = when
        super().__init__(message or f"Invalid 'when': {when}")


class InvalidTimezoneError(WhenParseError):
    """Raised when an explicit zone name is not a valid IANA zone."""

    def __init__(self, zone: str, when: str) -> None:
        self.zone = zone
        super().__init__(when, f"Invalid timezone '{zone}' in 'when': {when}")


class ResolutionError(Exception):
    """Raised when a ticket's repository path is missing or not a git working tree."""

    pass


class SynchronizationError(Exception):
    """Raised when a branch cannot be reconciled with or pushed to its remote."""

    pass


class RebaseError(SynchronizationError):
    """Raised when rebasing onto the base branch fails."""

    pass


class PublishWarning(Exception):
    """Non-fatal failure after the pull request was created (labels, auto-merge...)."""

    pass
