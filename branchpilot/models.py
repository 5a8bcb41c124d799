"""Data models for tickets, lifecycle states and status resolution results."""

from datetime import datetime
from pathlib import Path
from typing import List, Literal

from pydantic import BaseModel, Field

PushMode = Literal["force-with-lease", "ff-only", "force"]
OnProcessed = Literal["keep", "delete", "archive"]

# Lifecycle: pending -> ready (clock) -> pr-exists | merged | ready (queries).
# invalid is only reachable from the initial state.
TicketState = Literal["pending", "ready", "pr-exists", "merged", "invalid"]

PENDING: TicketState = "pending"
READY: TicketState = "ready"
PR_EXISTS: TicketState = "pr-exists"
MERGED: TicketState = "merged"
INVALID: TicketState = "invalid"


def parse_utc_iso(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class Ticket(BaseModel):
    """One scheduling declaration loaded from a Markdown ticket file.

    Created fresh on every scan; the status resolver attaches repo_root,
    base and state during a single pass.
    """

    file: Path = Field(..., description="Ticket source file")
    branch: str = Field(default="", description="Branch to publish")
    title: str | None = Field(default=None, description="PR title; generated from commits when absent")
    body: str | None = Field(default=None, description="PR body (Markdown content of the ticket)")
    when: str = Field(default="", description="Raw due-time expression")
    due_utc: str | None = Field(default=None, description="Resolved due instant, UTC ISO-8601 with milliseconds")
    timezone: str | None = Field(default=None, description="Ticket-level fallback zone for 'when'")

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

    state: TicketState = PENDING
    error: str | None = None
    repo_root: Path | None = None
    inconclusive: List[str] = Field(
        default_factory=list,
        description="Status queries that failed; state was assumed rather than proven",
    )

    @property
    def due_at(self) -> datetime | None:
        """Due instant as an aware datetime, or None for invalid tickets."""
        if not self.due_utc:
            return None
        return parse_utc_iso(self.due_utc)

    def is_due(self, now: datetime) -> bool:
        """True when the due instant is at or before now."""
        due = self.due_at
        return due is not None and due <= now

    def mark_invalid(self, error: str) -> None:
        self.state = INVALID
        self.error = error


class StatusResolution(BaseModel):
    """Result of classifying a due ticket.

    conclusive is False when at least one collaborator query failed and the
    state was assumed (always toward ready) instead of proven.
    """

    state: TicketState
    base: str
    inconclusive: List[str] = Field(default_factory=list)

    @property
    def conclusive(self) -> bool:
        return not self.inconclusive


class MergeStrategies(BaseModel):
    """Merge methods allowed on the repository."""

    squash: bool = False
    merge: bool = False
    rebase: bool = False


class PullRequest(BaseModel):
    """Pull request as returned by the code-review service."""

    number: int
    url: str
    head_branch: str = ""
    base_branch: str = ""
    node_id: str | None = None
    state: str = "open"
