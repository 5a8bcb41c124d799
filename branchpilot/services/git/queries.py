"""Read-only queries: working tree state, merge status, commit history."""

import logging
from pathlib import Path

from branchpilot.services.git._run import GitRunnerError, _run_git


def has_uncommitted_changes(repo_dir: Path, log: logging.Logger | None = None) -> bool:
    """True if the working tree has changes or untracked files.

    When status cannot be read, the tree is treated as dirty so local work
    is stashed rather than risked.
    """
    try:
        out = _run_git(["status", "--porcelain"], cwd=Path(repo_dir), log=log)
    except GitRunnerError:
        return True
    return bool(out.strip())


def _ref_exists(ref: str, cwd: Path, log: logging.Logger | None) -> bool:
    try:
        _run_git(["rev-parse", "--verify", "--quiet", ref], cwd=cwd, log=log)
        return True
    except GitRunnerError:
        return False


def is_branch_merged(
    repo_dir: Path,
    branch: str,
    base_ref: str,
    log: logging.Logger | None = None,
) -> bool:
    """True if branch appears in `git branch --merged <base_ref>`.

    A branch that does not exist locally is not merged. Raises
    GitRunnerError when the listing itself fails (e.g. unknown base_ref).
    """
    cwd = Path(repo_dir)
    if not _ref_exists(branch, cwd, log):
        return False
    out = _run_git(["branch", "--merged", base_ref, "--format=%(refname:short)"], cwd=cwd, log=log)
    return branch in {line.strip() for line in out.splitlines()}


def ahead_count(
    repo_dir: Path,
    branch: str,
    base_ref: str,
    log: logging.Logger | None = None,
) -> int:
    """Number of commits on branch that are not in base_ref.

    Raises GitRunnerError when either ref is missing or the count fails.
    """
    cwd = Path(repo_dir)
    for ref in (branch, base_ref):
        if not _ref_exists(ref, cwd, log):
            raise GitRunnerError(f"unknown ref {ref}")
    out = _run_git(["rev-list", "--count", f"{base_ref}..{branch}"], cwd=cwd, log=log)
    try:
        return int(out.strip())
    except ValueError as e:
        raise GitRunnerError(f"unexpected rev-list output: {out!r}") from e


def commit_messages(
    repo_dir: Path,
    branch: str,
    base_ref: str,
    log: logging.Logger | None = None,
) -> list[tuple[str, str]]:
    """(subject, body) of commits in base_ref..branch, oldest first."""
    out = _run_git(
        ["log", "--reverse", "--format=%s%x1f%b%x1e", f"{base_ref}..{branch}"],
        cwd=Path(repo_dir),
        log=log,
    )
    messages = []
    for record in out.split("\x1e"):
        record = record.strip("\n")
        if not record.strip():
            continue
        subject, _, body = record.partition("\x1f")
        messages.append((subject.strip(), body.strip()))
    return messages
