"""Branch synchronization: reconcile a local branch with its remote and push it.

The order of steps matters; getting it wrong loses uncommitted work or
pushes the wrong branch:

1. remember the branch checked out in the repository (once per run)
2. stash a dirty working tree (untracked files included) under a unique tag
3. checkout the target branch
4. if the branch exists on the remote: fetch + fast-forward-only merge;
   otherwise drop any stale upstream tracking
5. optionally rebase onto <remote>/<base>
6. push with the push-mode flags
7. always: checkout the remembered branch, then pop the tagged stash
"""

import logging
from pathlib import Path

from branchpilot.errors import RebaseError, SynchronizationError
from branchpilot.models import PushMode
from branchpilot.services.git import (
    GitRunnerError,
    checkout_branch,
    current_branch,
    fast_forward_merge,
    fetch,
    has_uncommitted_changes,
    make_stash_tag,
    push_branch,
    rebase_onto,
    remote_branch_exists,
    stash_pop,
    stash_push,
    unset_upstream,
)

LOG = logging.getLogger("branchpilot.services.sync")


class OriginalBranches:
    """Branch checked out in each repository when the run first touched it.

    Keyed by resolved repository path; recorded once per run, never updated.
    """

    def __init__(self) -> None:
        self._branches: dict[Path, str] = {}

    def record(self, repo_root: Path, log: logging.Logger | None = None) -> str:
        key = Path(repo_root).resolve()
        if key not in self._branches:
            self._branches[key] = current_branch(key, log=log)
        return self._branches[key]


def _restore(
    repo_root: Path,
    branch: str,
    original: str,
    stash_tag: str | None,
    log: logging.Logger,
) -> None:
    if original in ("", "HEAD"):
        log.warning(
            "Original branch in %s is unknown (detached HEAD or git error); staying on %s",
            repo_root.name,
            branch,
        )
    elif original != branch:
        try:
            checkout_branch(original, repo_root, log=log)
        except GitRunnerError as e:
            log.warning("Could not restore branch %s in %s: %s", original, repo_root.name, e)
    if stash_tag:
        try:
            stash_pop(repo_root, stash_tag, log=log)
        except GitRunnerError as e:
            log.warning(
                "Could not restore stashed changes in %s (stash message %s): %s",
                repo_root.name,
                stash_tag,
                e,
            )


def sync_branch(
    repo_root: Path,
    branch: str,
    remote: str,
    push_mode: PushMode,
    base: str | None = None,
    rebase: bool = False,
    original_branches: OriginalBranches | None = None,
    log: logging.Logger | None = None,
) -> bool:
    """Synchronize branch with remote and push it.

    Args:
        repo_root: Repository working tree.
        branch: Branch to publish.
        remote: Effective remote name.
        push_mode: force-with-lease, ff-only or force.
        base: Base branch (used only when rebase is requested).
        rebase: Rebase onto <remote>/<base> before pushing.
        original_branches: Per-run record of the branches to restore.
        log: Optional logger.

    Returns:
        True if the branch already existed on the remote.

    Raises:
        RebaseError: The rebase onto the base failed (it is aborted first).
        SynchronizationError: Stash, checkout, fast-forward or push failed.
    """
    log = log or LOG
    cwd = Path(repo_root)
    if original_branches is None:
        original_branches = OriginalBranches()
    original = original_branches.record(cwd, log=log)
    stash_tag: str | None = None

    try:
        if has_uncommitted_changes(cwd, log=log):
            tag = make_stash_tag()
            try:
                stash_push(cwd, tag, log=log)
            except GitRunnerError as e:
                raise SynchronizationError(f"Could not stash local changes: {e}") from e
            stash_tag = tag

        try:
            checkout_branch(branch, cwd, log=log)
        except GitRunnerError as e:
            raise SynchronizationError(f"Could not checkout {branch}: {e}") from e

        try:
            remote_exists = remote_branch_exists(cwd, remote, branch, log=log)
        except GitRunnerError as e:
            raise SynchronizationError(f"Could not query {remote} for {branch}: {e}") from e

        if remote_exists:
            try:
                fetch(cwd, remote, branch, log=log)
                fast_forward_merge(cwd, f"{remote}/{branch}", log=log)
            except GitRunnerError as e:
                raise SynchronizationError(
                    f"{branch} has diverged from {remote}/{branch}; resolve manually: {e}"
                ) from e
        else:
            try:
                unset_upstream(branch, cwd, log=log)
            except GitRunnerError:
                pass  # no upstream configured

        if rebase and base:
            try:
                fetch(cwd, remote, base, log=log)
            except GitRunnerError as e:
                raise SynchronizationError(f"Could not fetch {remote}/{base}: {e}") from e
            reason = rebase_onto(cwd, f"{remote}/{base}", log=log)
            if reason is not None:
                raise RebaseError(f"Rebase failed: {reason}")

        try:
            push_branch(cwd, remote, branch, push_mode, remote_exists, log=log)
        except GitRunnerError as e:
            raise SynchronizationError(f"Push rejected: {e}") from e
        return remote_exists
    finally:
        _restore(cwd, branch, original, stash_tag, log)
