"""Pipeline pass: scan, classify, synchronize, publish, post-process.

One pass builds fresh per-pass caches (repository config, original branch
per repository), loads every ticket, classifies the due ones and then
processes the ready batch strictly one ticket at a time. A ticket's failure
never aborts the batch; the pass exit code is 1 if any ticket failed.
"""

import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Callable, List

from branchpilot.adapters import CodeReviewAdapter, GitHubAdapter, GitPlatformError
from branchpilot.config import (
    AppConfig,
    EffectiveConfig,
    RepoConfigCache,
    load_global_config,
    load_repo_config,
    resolve_dirs,
    resolve_effective_config,
)
from branchpilot.errors import ResolutionError, SynchronizationError, WhenParseError
from branchpilot.models import INVALID, PENDING, READY, Ticket
from branchpilot.scheduler import plan_next_wake
from branchpilot.services.git import GitRunnerError, delete_local_branch
from branchpilot.services.publisher import PublishResult, publish_pull_request
from branchpilot.services.status import FALLBACK_DEFAULT_BRANCH, resolve_ticket_status
from branchpilot.services.sync import OriginalBranches, sync_branch
from branchpilot.tickets.files import archive_ticket_file, delete_ticket_file, resolve_archive_dir
from branchpilot.tickets.parser import WHEN_ERROR, scan_directories
from branchpilot.tickets.repository import resolve_repo_slug, resolve_ticket_repo_root
from branchpilot.tickets.when import parse_when_to_utc_iso
from branchpilot.utils import expand_path

LOG = logging.getLogger("branchpilot.services.pipeline")


def make_adapter(config: AppConfig) -> CodeReviewAdapter | None:
    """GitHub adapter from config, or None when no token is available."""
    token = config.github_token_resolved
    if not token:
        return None
    return GitHubAdapter(token=token, api_url=config.github.api_url)


def _needs_repo_zone(ticket: Ticket) -> bool:
    """Invalid only because 'when' failed under the global fallback zone."""
    return (
        ticket.state == INVALID
        and not ticket.timezone
        and bool(ticket.when)
        and (ticket.error or "").startswith(WHEN_ERROR)
    )


def load_all_tickets(
    dirs: List[str],
    config: AppConfig,
    adapter: CodeReviewAdapter | None = None,
    now: datetime | None = None,
    repo_configs: RepoConfigCache | None = None,
    log: logging.Logger | None = None,
) -> List[Ticket]:
    """Scan dirs and classify every ticket.

    Invalid tickets keep their error; tickets outside a git repository
    become invalid; tickets not yet due stay pending; due tickets are
    resolved to pr-exists, merged or ready with their base filled in.
    """
    log = log or LOG
    now = now or datetime.now(UTC)
    repo_configs = repo_configs or RepoConfigCache(log=log)
    tickets = scan_directories(dirs, fallback_zone=config.defaults.timezone, log=log)

    for ticket in tickets:
        # Rejected under the global zone only; the repository zone may still resolve it
        zone_retry = _needs_repo_zone(ticket)
        if ticket.state == INVALID and not zone_retry:
            continue
        try:
            root = resolve_ticket_repo_root(ticket, log=log)
        except ResolutionError as e:
            if not zone_retry:
                ticket.mark_invalid(str(e))
            continue
        ticket.repo_root = root
        repo_cfg = repo_configs.get(root)

        # A repository timezone overrides the global one for tickets without their own
        repo_zone_applies = zone_retry or repo_cfg.timezone != config.defaults.timezone
        if not ticket.timezone and repo_cfg.timezone and repo_zone_applies:
            try:
                ticket.due_utc = parse_when_to_utc_iso(ticket.when, repo_cfg.timezone)
            except WhenParseError as e:
                ticket.mark_invalid(f"{WHEN_ERROR}: {e}")
                continue
            ticket.state = PENDING
            ticket.error = None
        elif zone_retry:
            continue

        if not ticket.is_due(now):
            continue

        ticket.state = READY
        eff = resolve_effective_config(ticket, repo_cfg, config.defaults)
        slug = None
        try:
            slug = resolve_repo_slug(root, eff.remote, eff.repo, log=log)
        except ResolutionError as e:
            log.debug("%s: %s", ticket.file.name, e)
        resolution = resolve_ticket_status(
            ticket,
            root,
            eff.remote,
            adapter=adapter,
            repo_slug=slug,
            default_base=eff.default_base,
            log=log,
        )
        ticket.state = resolution.state
        ticket.base = resolution.base
        ticket.inconclusive = resolution.inconclusive
        if not resolution.conclusive:
            log.info(
                "%s: status %s is assumed (%s)", ticket.branch, resolution.state, "; ".join(resolution.inconclusive)
            )
    return tickets


def _post_process(ticket: Ticket, eff: EffectiveConfig, log: logging.Logger) -> None:
    """Local branch and ticket file cleanup; failures are warnings."""
    repo_root = ticket.repo_root
    if eff.delete_local_branch and repo_root is not None:
        fallback = ticket.base or eff.default_base or FALLBACK_DEFAULT_BRANCH
        try:
            delete_local_branch(ticket.branch, fallback, repo_root, log=log)
            log.info("Deleted local branch %s", ticket.branch)
        except GitRunnerError as e:
            log.warning("Could not delete local branch %s: %s", ticket.branch, e)

    if eff.on_processed == "delete":
        try:
            delete_ticket_file(ticket.file, log=log)
            log.info("Deleted ticket %s", ticket.file.name)
        except OSError as e:
            log.warning("Could not delete ticket %s: %s", ticket.file, e)
    elif eff.on_processed == "archive":
        try:
            dest = archive_ticket_file(ticket.file, resolve_archive_dir(ticket.file, eff.archive_dir), log=log)
            log.info("Archived ticket %s to %s", ticket.file.name, dest.parent)
        except OSError as e:
            log.warning("Could not archive ticket %s: %s", ticket.file, e)


def process_ticket(
    ticket: Ticket,
    config: AppConfig,
    adapter: CodeReviewAdapter,
    repo_configs: RepoConfigCache,
    original_branches: OriginalBranches,
    log: logging.Logger | None = None,
) -> PublishResult:
    """Synchronize, publish and post-process one ready ticket.

    Raises:
        ResolutionError: No owner/name slug for the repository.
        SynchronizationError: Stash, checkout, fast-forward, rebase or push failed.
        GitPlatformError: The pull request could not be created.
    """
    log = log or LOG
    repo_root = ticket.repo_root
    if repo_root is None:
        raise ResolutionError(f"No repository resolved for {ticket.file}")
    eff = resolve_effective_config(ticket, repo_configs.get(repo_root), config.defaults)
    slug = resolve_repo_slug(repo_root, eff.remote, eff.repo, log=log)
    base = ticket.base or eff.default_base or FALLBACK_DEFAULT_BRANCH

    sync_branch(
        repo_root,
        ticket.branch,
        eff.remote,
        eff.push_mode,
        base=base,
        rebase=bool(ticket.rebase),
        original_branches=original_branches,
        log=log,
    )
    result = publish_pull_request(
        adapter,
        slug,
        repo_root,
        ticket.branch,
        base,
        remote=eff.remote,
        title=ticket.title,
        body=ticket.body,
        labels=ticket.labels,
        reviewers=ticket.reviewers,
        assignees=ticket.assignees,
        draft=bool(ticket.draft),
        auto_merge=bool(ticket.auto_merge),
        log=log,
    )
    log.info("PR for %s: %s", ticket.branch, result.url)
    if result.auto_merge_enabled:
        log.info("Auto-merge enabled (%s)", result.merge_strategy)
    _post_process(ticket, eff, log)
    return result


class Pipeline:
    """One configuration source and the passes run against it.

    Config files are re-read on every load(), so watch mode picks up edits
    without a restart.

    Args:
        config_path: Explicit global config path (None = default location).
        cli_dirs: --dir values; empty means use config dirs or '.'.
        adapter_factory: Builds the code-review adapter from config.
        cwd: Directory whose repository config may name dirs.
        log: Optional logger.
    """

    def __init__(
        self,
        config_path: Path | None = None,
        cli_dirs: List[str] | None = None,
        adapter_factory: Callable[[AppConfig], CodeReviewAdapter | None] = make_adapter,
        cwd: Path | None = None,
        log: logging.Logger | None = None,
    ) -> None:
        self._config_path = config_path
        self._cli_dirs = list(cli_dirs or [])
        self._adapter_factory = adapter_factory
        self._cwd = cwd or Path.cwd()
        self._log = log or LOG
        self.config: AppConfig | None = None
        self.adapter: CodeReviewAdapter | None = None
        self._repo_configs = RepoConfigCache(log=self._log)
        self._original_branches = OriginalBranches()

    def load_config(self) -> AppConfig:
        self.config = load_global_config(self._config_path, log=self._log)
        return self.config

    def dirs(self) -> List[str]:
        """Directories to scan for the current config."""
        config = self.config or self.load_config()
        local = load_repo_config(self._cwd, log=self._log)
        return [str(expand_path(d)) for d in resolve_dirs(self._cli_dirs, local, config.defaults)]

    def load(self, now: datetime | None = None) -> List[Ticket]:
        """Start a pass: fresh config and caches, then load and classify tickets."""
        config = self.load_config()
        self.adapter = self._adapter_factory(config)
        self._repo_configs = RepoConfigCache(log=self._log)
        self._original_branches = OriginalBranches()
        return load_all_tickets(
            self.dirs(),
            config,
            adapter=self.adapter,
            now=now,
            repo_configs=self._repo_configs,
            log=self._log,
        )

    def process(self, tickets: List[Ticket]) -> int:
        """Process ready tickets sequentially; 1 if any failed, else 0."""
        log = self._log
        ready = [t for t in tickets if t.state == READY]
        if not ready:
            return 0
        if self.adapter is None:
            log.error("GitHub token not configured (set GITHUB_TOKEN); cannot publish %d ticket(s)", len(ready))
            return 1

        failed = 0
        for ticket in ready:
            log.info("Processing %s (%s)", ticket.file.name, ticket.branch)
            for reason in ticket.inconclusive:
                log.debug("%s: %s", ticket.branch, reason)
            try:
                process_ticket(
                    ticket,
                    self.config or AppConfig(),
                    self.adapter,
                    self._repo_configs,
                    self._original_branches,
                    log=log,
                )
            except (ResolutionError, SynchronizationError, GitPlatformError) as e:
                failed += 1
                log.error("Failed to process %s: %s", ticket.file.name, e)
            except Exception:
                failed += 1
                log.exception("Unexpected error processing %s", ticket.file.name)
        if failed:
            log.error("%d of %d ticket(s) failed", failed, len(ready))
            return 1
        return 0

    def run_once(self, now: datetime | None = None) -> int:
        """One-shot run: classify everything and process the due batch."""
        now = now or datetime.now(UTC)
        tickets = self.load(now=now)
        for ticket in tickets:
            if ticket.state == INVALID:
                self._log.warning("Invalid ticket %s: %s", ticket.file.name, ticket.error)
        plan = plan_next_wake(now, tickets)
        if not plan.due:
            self._log.info("No tickets due")
            return 0
        return self.process(plan.due)
