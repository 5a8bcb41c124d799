"""Code-review service adapters."""

from branchpilot.adapters.base import CodeReviewAdapter, GitPlatformError
from branchpilot.adapters.github import GitHubAdapter

__all__ = ["CodeReviewAdapter", "GitPlatformError", "GitHubAdapter"]
