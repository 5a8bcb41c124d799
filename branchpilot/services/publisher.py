"""PR publishing: create the pull request, attach metadata, negotiate auto-merge."""

import logging
from pathlib import Path
from typing import Callable, List

from branchpilot.adapters.base import CodeReviewAdapter, GitPlatformError
from branchpilot.errors import PublishWarning
from branchpilot.models import MergeStrategies, PullRequest
from branchpilot.services.git import GitRunnerError, commit_messages

LOG = logging.getLogger("branchpilot.services.publisher")

# Preference order when several merge methods are allowed
MERGE_STRATEGY_PREFERENCE = ("squash", "merge", "rebase")


class PublishResult:
    """Outcome of a successful publish; warnings never fail the ticket."""

    def __init__(
        self,
        pr: PullRequest,
        merge_strategy: str | None = None,
        auto_merge_enabled: bool = False,
        warnings: List[PublishWarning] | None = None,
    ) -> None:
        self.pr = pr
        self.merge_strategy = merge_strategy
        self.auto_merge_enabled = auto_merge_enabled
        self.warnings = warnings or []

    @property
    def url(self) -> str:
        return self.pr.url


def choose_merge_strategy(allowed: MergeStrategies) -> str | None:
    """Pick squash, then merge, then rebase; None if nothing is allowed."""
    for strategy in MERGE_STRATEGY_PREFERENCE:
        if getattr(allowed, strategy):
            return strategy
    return None


def fill_from_commits(
    repo_root: Path,
    branch: str,
    base_ref: str,
    log: logging.Logger | None = None,
) -> tuple[str, str]:
    """Title and body from commit history, like `gh pr create --fill`.

    One commit: its subject and body. Several: the branch name and a list of
    subjects. No history available: the branch name and an empty body.
    """
    try:
        messages = commit_messages(repo_root, branch, base_ref, log=log)
    except GitRunnerError as e:
        if log:
            log.debug("Cannot read commits %s..%s: %s", base_ref, branch, e)
        messages = []
    if not messages:
        return branch, ""
    if len(messages) == 1:
        return messages[0]
    return branch, "\n".join(f"- {subject}" for subject, _ in messages)


def _follow_up(
    action: str,
    call: Callable[[], None],
    warnings: List[PublishWarning],
    log: logging.Logger,
) -> bool:
    try:
        call()
        return True
    except GitPlatformError as e:
        warning = PublishWarning(f"Could not {action}: {e}")
        warnings.append(warning)
        log.warning("%s", warning)
        return False


def publish_pull_request(
    adapter: CodeReviewAdapter,
    repo: str,
    repo_root: Path,
    branch: str,
    base: str,
    remote: str = "origin",
    title: str | None = None,
    body: str | None = None,
    labels: List[str] | None = None,
    reviewers: List[str] | None = None,
    assignees: List[str] | None = None,
    draft: bool = False,
    auto_merge: bool = False,
    log: logging.Logger | None = None,
) -> PublishResult:
    """Create the pull request for branch and apply optional metadata.

    Labels, reviewers and assignees are follow-up calls made only for
    non-empty lists. Their failures, and any auto-merge failure, are
    collected as PublishWarning; the PR still counts as published.

    Raises:
        GitPlatformError: The pull request itself could not be created.
    """
    log = log or LOG
    if not title and not body:
        title, body = fill_from_commits(repo_root, branch, f"{remote}/{base}", log=log)
    elif not title:
        title, _ = fill_from_commits(repo_root, branch, f"{remote}/{base}", log=log)

    pr = adapter.create_pr(repo, head=branch, base=base, title=title, body=body or "", draft=bool(draft))
    log.debug("Created PR #%s for %s -> %s", pr.number, branch, base)

    warnings: List[PublishWarning] = []
    if labels:
        _follow_up("add labels", lambda: adapter.add_labels(repo, pr.number, labels), warnings, log)
    if reviewers:
        _follow_up("request reviewers", lambda: adapter.request_reviewers(repo, pr.number, reviewers), warnings, log)
    if assignees:
        _follow_up("add assignees", lambda: adapter.add_assignees(repo, pr.number, assignees), warnings, log)

    strategy: str | None = None
    enabled = False
    if auto_merge:
        try:
            strategy = choose_merge_strategy(adapter.get_merge_strategies(repo))
        except GitPlatformError as e:
            warning = PublishWarning(f"Could not read allowed merge methods: {e}")
            warnings.append(warning)
            log.warning("%s", warning)
        else:
            if strategy is None:
                warning = PublishWarning(f"No merge method allowed on {repo}; auto-merge not enabled")
                warnings.append(warning)
                log.warning("%s", warning)
            else:
                enabled = _follow_up(
                    f"enable auto-merge ({strategy})",
                    lambda: adapter.enable_auto_merge(pr, strategy),
                    warnings,
                    log,
                )

    return PublishResult(pr, merge_strategy=strategy, auto_merge_enabled=enabled, warnings=warnings)
