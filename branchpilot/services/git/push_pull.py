"""Fetch, fast-forward, rebase and push against a remote."""

import logging
from pathlib import Path

from branchpilot.models import PushMode
from branchpilot.services.git._run import GitRunnerError, _run_git


def fetch(repo_dir: Path, remote: str, ref: str, log: logging.Logger | None = None) -> None:
    _run_git(["fetch", remote, ref], cwd=Path(repo_dir), log=log)


def fast_forward_merge(repo_dir: Path, ref: str, log: logging.Logger | None = None) -> None:
    """Merge ref into the current branch, refusing anything but a fast-forward."""
    _run_git(["merge", "--ff-only", ref], cwd=Path(repo_dir), log=log)


def rebase_onto(repo_dir: Path, target: str, log: logging.Logger | None = None) -> str | None:
    """Replay the current branch onto target with `rebase --onto <target> <target>`.

    Returns:
        None on success, or the failure reason. A failed rebase is aborted
        so the working tree is left as it was.
    """
    cwd = Path(repo_dir)
    try:
        _run_git(["rebase", "--onto", target, target], cwd=cwd, log=log)
        return None
    except GitRunnerError as e:
        try:
            _run_git(["rebase", "--abort"], cwd=cwd, log=log)
        except GitRunnerError:
            pass  # nothing in progress
        return str(e)


def build_push_args(remote: str, branch: str, push_mode: PushMode, remote_exists: bool) -> list[str]:
    """Git push arguments for the push mode.

    Lease and force flags only apply to a branch that already has remote
    history; a new branch is pushed plainly unless force was requested.
    git push has no --ff-only option; ff-only pushes an explicit refspec
    without the leading "+", which git only accepts as a fast-forward even
    when the remote is configured with a forcing refspec.
    """
    args = ["push"]
    if push_mode == "ff-only":
        return args + [remote, f"refs/heads/{branch}:refs/heads/{branch}"]
    if remote_exists:
        if push_mode == "force-with-lease":
            args.append("--force-with-lease")
        elif push_mode == "force":
            args.append("--force")
    elif push_mode == "force":
        args.append("--force")
    args.extend([remote, branch])
    return args


def push_branch(
    repo_dir: Path,
    remote: str,
    branch: str,
    push_mode: PushMode,
    remote_exists: bool,
    log: logging.Logger | None = None,
) -> None:
    """Push branch to remote using the mode-appropriate flags."""
    _run_git(build_push_args(remote, branch, push_mode, remote_exists), cwd=Path(repo_dir), log=log)
    if log:
        log.debug("Pushed branch %s to %s (%s)", branch, remote, push_mode)
