"""Status resolution: classify a due ticket as pr-exists, merged or ready.

Checks run in a fixed order and stop at the first match:

1. an open PR whose head is the branch -> pr-exists
2. resolve the base (ticket base, else the repository default branch)
3. branch listed by `git branch --merged <remote>/<base>` -> merged
4. zero commits in <remote>/<base>..<branch> -> merged
5. otherwise -> ready

A failing query never aborts resolution. It is recorded as an inconclusive
reason and evaluation continues, so the result leans toward ready: an extra
no-op push is preferred over a ticket that is silently never processed.
"""

import logging
from pathlib import Path
from typing import List

from branchpilot.adapters.base import CodeReviewAdapter, GitPlatformError
from branchpilot.models import MERGED, PR_EXISTS, READY, StatusResolution, Ticket
from branchpilot.services.git import GitRunnerError, ahead_count, is_branch_merged, remote_default_branch

LOG = logging.getLogger("branchpilot.services.status")

FALLBACK_DEFAULT_BRANCH = "main"


def detect_default_branch(
    repo_root: Path,
    remote: str,
    adapter: CodeReviewAdapter | None = None,
    repo_slug: str | None = None,
    configured: str | None = None,
    reasons: List[str] | None = None,
    log: logging.Logger | None = None,
) -> str:
    """Default base branch: configured defaultBase, code-review service,
    refs/remotes/<remote>/HEAD, then "main"."""
    if configured:
        return configured
    if adapter is not None and repo_slug:
        try:
            return adapter.get_default_branch(repo_slug)
        except GitPlatformError as e:
            if reasons is not None:
                reasons.append(f"default branch lookup failed: {e}")
    branch = remote_default_branch(repo_root, remote, log=log)
    if branch:
        return branch
    return FALLBACK_DEFAULT_BRANCH


def resolve_ticket_status(
    ticket: Ticket,
    repo_root: Path,
    remote: str,
    adapter: CodeReviewAdapter | None = None,
    repo_slug: str | None = None,
    default_base: str | None = None,
    log: logging.Logger | None = None,
) -> StatusResolution:
    """Classify a due ticket against the code-review service and git.

    Args:
        ticket: Valid, due ticket.
        repo_root: Its repository root.
        remote: Effective remote name.
        adapter: Code-review adapter; None skips the open-PR check (inconclusive).
        repo_slug: owner/name on the code-review service.
        default_base: Configured default base branch, if any.
        log: Optional logger.

    Returns:
        StatusResolution with state, resolved base and inconclusive reasons.
    """
    log = log or LOG
    reasons: List[str] = []
    base = ticket.base

    def _base() -> str:
        nonlocal base
        if not base:
            base = detect_default_branch(
                repo_root,
                remote,
                adapter=adapter,
                repo_slug=repo_slug,
                configured=default_base,
                reasons=reasons,
                log=log,
            )
        return base

    if adapter is None or not repo_slug:
        reasons.append("open PR check skipped: code-review service not configured")
    else:
        try:
            prs = adapter.list_open_pull_requests(repo_slug, ticket.branch)
        except GitPlatformError as e:
            reasons.append(f"open PR check failed: {e}")
        else:
            if prs:
                return StatusResolution(state=PR_EXISTS, base=_base(), inconclusive=reasons)

    base_ref = f"{remote}/{_base()}"

    try:
        if is_branch_merged(repo_root, ticket.branch, base_ref, log=log):
            return StatusResolution(state=MERGED, base=base, inconclusive=reasons)
    except GitRunnerError as e:
        reasons.append(f"merged check failed: {e}")

    try:
        if ahead_count(repo_root, ticket.branch, base_ref, log=log) == 0:
            return StatusResolution(state=MERGED, base=base, inconclusive=reasons)
    except GitRunnerError as e:
        reasons.append(f"ahead count failed: {e}")

    if reasons:
        log.debug("Assuming %s is ready (%s)", ticket.branch, "; ".join(reasons))
    return StatusResolution(state=READY, base=base, inconclusive=reasons)
