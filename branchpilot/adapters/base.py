"""Abstract base for code-review service adapters."""

from abc import ABC, abstractmethod
from typing import List

from branchpilot.models import MergeStrategies, PullRequest


class GitPlatformError(Exception):
    """Raised when a code-review service API call fails."""

    pass


class CodeReviewAdapter(ABC):
    """Abstract interface for the code-review service (GitHub).

    Expected outcomes are return values ("no open PR" is an empty list);
    only failed calls raise GitPlatformError.
    """

    @abstractmethod
    def list_open_pull_requests(self, repo: str, head_branch: str) -> List[PullRequest]:
        """Open PRs whose head is head_branch."""
        ...

    @abstractmethod
    def get_default_branch(self, repo: str) -> str:
        """Return default branch name (e.g. main)."""
        ...

    @abstractmethod
    def create_pr(
        self,
        repo: str,
        head: str,
        base: str,
        title: str,
        body: str,
        draft: bool = False,
    ) -> PullRequest:
        """Create a pull request."""
        ...

    @abstractmethod
    def add_labels(self, repo: str, pr_number: int, labels: List[str]) -> None:
        ...

    @abstractmethod
    def request_reviewers(self, repo: str, pr_number: int, reviewers: List[str]) -> None:
        ...

    @abstractmethod
    def add_assignees(self, repo: str, pr_number: int, assignees: List[str]) -> None:
        ...

    @abstractmethod
    def get_merge_strategies(self, repo: str) -> MergeStrategies:
        """Merge methods the repository allows."""
        ...

    @abstractmethod
    def enable_auto_merge(self, pr: PullRequest, strategy: str) -> None:
        """Enable auto-merge on pr with strategy squash, merge or rebase."""
        ...

    def check_auth(self) -> str:
        """Return the authenticated login. Override if needed."""
        raise NotImplementedError("check_auth")
