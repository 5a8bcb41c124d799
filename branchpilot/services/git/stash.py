"""Stash local changes under a unique tag and pop them back by tag."""

import logging
import re
import time
import uuid
from pathlib import Path

from branchpilot.services.git._run import GitRunnerError, _run_git

STASH_PREFIX = "branchpilot"

_STASH_REF_RE = re.compile(r"^(stash@\{\d+\})")


def make_stash_tag() -> str:
    return f"{STASH_PREFIX}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"


def stash_push(repo_dir: Path, tag: str, log: logging.Logger | None = None) -> None:
    """Stash all changes, including untracked files, with tag as message."""
    _run_git(["stash", "push", "--include-untracked", "-m", tag], cwd=Path(repo_dir), log=log)
    if log:
        log.debug("Stashed local changes as %s", tag)


def find_stash(repo_dir: Path, tag: str, log: logging.Logger | None = None) -> str | None:
    """Return the stash@{n} ref whose message contains tag, or None."""
    out = _run_git(["stash", "list", "--format=%gd %s"], cwd=Path(repo_dir), log=log)
    for line in out.splitlines():
        m = _STASH_REF_RE.match(line.strip())
        if m and tag in line:
            return m.group(1)
    return None


def stash_pop(repo_dir: Path, tag: str, log: logging.Logger | None = None) -> None:
    """Pop the stash entry created with tag.

    Raises:
        GitRunnerError: The entry is gone or the pop failed (e.g. conflicts).
    """
    ref = find_stash(repo_dir, tag, log=log)
    if ref is None:
        raise GitRunnerError(f"stash {tag} not found")
    _run_git(["stash", "pop", ref], cwd=Path(repo_dir), log=log)
    if log:
        log.debug("Restored stashed changes %s", tag)
