"""Shared utilities (path expansion, repository slug parsing)."""

import re
from pathlib import Path

# git@github.com:owner/repo.git, ssh://git@github.com/owner/repo, https://github.com/owner/repo.git
_REMOTE_SLUG_RE = re.compile(r"[:/](?P<owner>[^/:]+)/(?P<name>[^/]+?)(?:\.git)?/?$")


def expand_path(p: str | Path) -> Path:
    """Expand ~ and make the path absolute."""
    return Path(p).expanduser().resolve()


def repo_slug_from_remote_url(url: str) -> str | None:
    """Extract owner/name from a git remote URL.

    Args:
        url: Remote URL as printed by `git remote get-url`.

    Returns:
        "owner/name", or None if the URL has no recognizable owner/name tail.
    """
    if not url or not url.strip():
        return None
    m = _REMOTE_SLUG_RE.search(url.strip())
    if not m:
        return None
    return f"{m.group('owner')}/{m.group('name')}"
