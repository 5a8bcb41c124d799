"""Branch queries and local branch operations (checkout, upstream, cleanup)."""

import logging
from pathlib import Path

from branchpilot.services.git._run import GitRunnerError, _run_git


def current_branch(repo_dir: Path, log: logging.Logger | None = None) -> str:
    """Return the checked-out branch name, or "" when it cannot be determined."""
    try:
        return _run_git(["rev-parse", "--abbrev-ref", "HEAD"], cwd=Path(repo_dir), log=log)
    except GitRunnerError:
        return ""


def get_git_root(path: Path, log: logging.Logger | None = None) -> Path | None:
    """Return the working tree root containing path, or None outside a repository."""
    try:
        out = _run_git(["rev-parse", "--show-toplevel"], cwd=Path(path), log=log)
    except GitRunnerError:
        return None
    return Path(out) if out else None


def is_git_repository(path: Path, log: logging.Logger | None = None) -> bool:
    try:
        _run_git(["rev-parse", "--git-dir"], cwd=Path(path), log=log)
        return True
    except GitRunnerError:
        return False


def checkout_branch(
    branch_name: str,
    repo_dir: Path,
    log: logging.Logger | None = None,
) -> None:
    """Checkout the given local branch."""
    _run_git(["checkout", branch_name], cwd=Path(repo_dir), log=log)
    if log:
        log.debug("Checked out branch %s", branch_name)


def remote_branch_exists(
    repo_dir: Path,
    remote: str,
    branch: str,
    log: logging.Logger | None = None,
) -> bool:
    """True if `git ls-remote --heads <remote> <branch>` lists the branch."""
    out = _run_git(["ls-remote", "--heads", remote, branch], cwd=Path(repo_dir), log=log)
    return bool(out.strip())


def unset_upstream(branch: str, repo_dir: Path, log: logging.Logger | None = None) -> None:
    """Drop upstream tracking for branch; raises GitRunnerError when none is set."""
    _run_git(["branch", "--unset-upstream", branch], cwd=Path(repo_dir), log=log)


def delete_local_branch(
    branch: str,
    fallback_branch: str,
    repo_dir: Path,
    log: logging.Logger | None = None,
) -> None:
    """Delete a local branch, moving to fallback_branch first if it is checked out."""
    cwd = Path(repo_dir)
    if current_branch(cwd, log=log) == branch:
        _run_git(["checkout", fallback_branch], cwd=cwd, log=log)
    _run_git(["branch", "-D", branch], cwd=cwd, log=log)
    if log:
        log.debug("Deleted local branch %s", branch)


def remote_url(repo_dir: Path, remote: str, log: logging.Logger | None = None) -> str:
    return _run_git(["remote", "get-url", remote], cwd=Path(repo_dir), log=log)


def remote_default_branch(repo_dir: Path, remote: str, log: logging.Logger | None = None) -> str | None:
    """Default branch from refs/remotes/<remote>/HEAD, or None if unknown."""
    try:
        out = _run_git(["symbolic-ref", f"refs/remotes/{remote}/HEAD"], cwd=Path(repo_dir), log=log)
    except GitRunnerError:
        return None
    prefix = f"refs/remotes/{remote}/"
    return out[len(prefix) :] if out.startswith(prefix) else None
