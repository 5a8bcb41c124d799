"""Git operations: branch queries, stash, fetch/rebase/push."""

from branchpilot.services.git._run import GitRunnerError
from branchpilot.services.git.branches import (
    checkout_branch,
    current_branch,
    delete_local_branch,
    get_git_root,
    is_git_repository,
    remote_branch_exists,
    remote_default_branch,
    remote_url,
    unset_upstream,
)
from branchpilot.services.git.push_pull import (
    build_push_args,
    fast_forward_merge,
    fetch,
    push_branch,
    rebase_onto,
)
from branchpilot.services.git.queries import (
    ahead_count,
    commit_messages,
    has_uncommitted_changes,
    is_branch_merged,
)
from branchpilot.services.git.stash import find_stash, make_stash_tag, stash_pop, stash_push

__all__ = [
    "GitRunnerError",
    "ahead_count",
    "build_push_args",
    "checkout_branch",
    "commit_messages",
    "current_branch",
    "delete_local_branch",
    "fast_forward_merge",
    "fetch",
    "find_stash",
    "get_git_root",
    "has_uncommitted_changes",
    "is_branch_merged",
    "is_git_repository",
    "make_stash_tag",
    "push_branch",
    "rebase_onto",
    "remote_branch_exists",
    "remote_default_branch",
    "remote_url",
    "stash_pop",
    "stash_push",
    "unset_upstream",
]
