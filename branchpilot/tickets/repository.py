"""Resolve the git working tree (and its owner/name slug) a ticket belongs to."""

import logging
from pathlib import Path

from branchpilot.errors import ResolutionError
from branchpilot.models import Ticket
from branchpilot.services.git import GitRunnerError, get_git_root, is_git_repository, remote_url
from branchpilot.utils import expand_path, repo_slug_from_remote_url


def resolve_ticket_repo_root(ticket: Ticket, log: logging.Logger | None = None) -> Path:
    """Repository root for a ticket.

    The ticket's `repository` path wins (it must exist and be a git
    repository); otherwise the working tree containing the ticket file.

    Raises:
        ResolutionError: The path is missing, not a repository, or the
            ticket lives outside any repository and names none.
    """
    if ticket.repository:
        path = expand_path(ticket.repository)
        if not path.exists():
            raise ResolutionError(f"Repository path does not exist: {path}")
        if not is_git_repository(path, log=log):
            raise ResolutionError(f"Path is not a git repository: {path}")
        return get_git_root(path, log=log) or path

    tickets_dir = Path(ticket.file).parent
    root = get_git_root(tickets_dir, log=log)
    if root is None:
        raise ResolutionError(
            f"Directory {tickets_dir} is not in a git repository and ticket doesn't specify repository field"
        )
    return root


def resolve_repo_slug(
    repo_root: Path,
    remote: str,
    configured: str | None = None,
    log: logging.Logger | None = None,
) -> str:
    """owner/name on the code-review service: configured value, else parsed from the remote URL.

    Raises:
        ResolutionError: No slug is configured and the remote URL has none.
    """
    if configured:
        return configured
    try:
        url = remote_url(repo_root, remote, log=log)
    except GitRunnerError as e:
        raise ResolutionError(f"Cannot read URL of remote {remote!r} in {repo_root}: {e}") from e
    slug = repo_slug_from_remote_url(url)
    if not slug:
        raise ResolutionError(f"Cannot derive owner/repo from remote URL {url!r}; set 'repo' in config")
    return slug
