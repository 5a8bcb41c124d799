"""Tests for branchpilot.services.publisher (PR creation, metadata, auto-merge)."""

import logging
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from branchpilot.adapters.base import GitPlatformError
from branchpilot.errors import PublishWarning
from branchpilot.models import MergeStrategies, PullRequest
from branchpilot.services.git import GitRunnerError
from branchpilot.services.publisher import choose_merge_strategy, fill_from_commits, publish_pull_request

REPO = Path("/tmp/repo")


@pytest.fixture
def adapter() -> MagicMock:
    a = MagicMock()
    a.create_pr.return_value = PullRequest(
        number=7, url="https://github.com/acme/w/pull/7", head_branch="feature/x", node_id="PR_kw"
    )
    a.get_merge_strategies.return_value = MergeStrategies(squash=True, merge=True, rebase=True)
    return a


def _publish(adapter: MagicMock, **kwargs: object):
    params = {"title": "Add login", "body": "Body"}
    params.update(kwargs)
    return publish_pull_request(adapter, "acme/w", REPO, "feature/x", "main", **params)


class TestChooseMergeStrategy:
    """squash > merge > rebase."""

    @pytest.mark.parametrize(
        "allowed,expected",
        [
            (MergeStrategies(squash=True, merge=True, rebase=True), "squash"),
            (MergeStrategies(squash=False, merge=True, rebase=True), "merge"),
            (MergeStrategies(squash=False, merge=False, rebase=True), "rebase"),
            (MergeStrategies(squash=True, merge=False, rebase=False), "squash"),
            (MergeStrategies(), None),
        ],
    )
    def test_preference(self, allowed: MergeStrategies, expected: str | None) -> None:
        assert choose_merge_strategy(allowed) == expected


class TestPublishPullRequest:
    """publish_pull_request: creation, follow-ups, warnings."""

    def test_creates_pr(self, adapter: MagicMock) -> None:
        result = _publish(adapter, draft=True)
        adapter.create_pr.assert_called_once_with(
            "acme/w", head="feature/x", base="main", title="Add login", body="Body", draft=True
        )
        assert result.url == "https://github.com/acme/w/pull/7"
        assert result.warnings == []
        assert result.auto_merge_enabled is False

    def test_empty_lists_skip_follow_ups(self, adapter: MagicMock) -> None:
        """Empty or absent labels, reviewers and assignees make no calls."""
        _publish(adapter, labels=[], reviewers=None, assignees=[])
        adapter.add_labels.assert_not_called()
        adapter.request_reviewers.assert_not_called()
        adapter.add_assignees.assert_not_called()

    def test_metadata_applied(self, adapter: MagicMock) -> None:
        _publish(adapter, labels=["feature"], reviewers=["alice"], assignees=["bob"])
        adapter.add_labels.assert_called_once_with("acme/w", 7, ["feature"])
        adapter.request_reviewers.assert_called_once_with("acme/w", 7, ["alice"])
        adapter.add_assignees.assert_called_once_with("acme/w", 7, ["bob"])

    def test_follow_up_failure_is_warning(self, adapter: MagicMock, caplog: pytest.LogCaptureFixture) -> None:
        """A failed label call is a warning; later follow-ups still run."""
        adapter.add_labels.side_effect = GitPlatformError("422: label missing")
        with caplog.at_level(logging.WARNING):
            result = _publish(adapter, labels=["nope"], assignees=["bob"])
        assert len(result.warnings) == 1
        assert isinstance(result.warnings[0], PublishWarning)
        assert "label missing" in str(result.warnings[0])
        adapter.add_assignees.assert_called_once()
        assert "Could not add labels" in caplog.text

    def test_create_failure_propagates(self, adapter: MagicMock) -> None:
        adapter.create_pr.side_effect = GitPlatformError("422: A pull request already exists")
        with pytest.raises(GitPlatformError):
            _publish(adapter, labels=["x"])
        adapter.add_labels.assert_not_called()

    def test_auto_merge_prefers_squash(self, adapter: MagicMock) -> None:
        result = _publish(adapter, auto_merge=True)
        adapter.enable_auto_merge.assert_called_once_with(adapter.create_pr.return_value, "squash")
        assert result.auto_merge_enabled is True
        assert result.merge_strategy == "squash"

    def test_auto_merge_none_allowed(self, adapter: MagicMock) -> None:
        """No allowed method: published without auto-merge, with a warning."""
        adapter.get_merge_strategies.return_value = MergeStrategies()
        result = _publish(adapter, auto_merge=True)
        adapter.enable_auto_merge.assert_not_called()
        assert result.auto_merge_enabled is False
        assert result.url
        assert len(result.warnings) == 1

    def test_auto_merge_enable_failure_is_warning(self, adapter: MagicMock) -> None:
        adapter.get_merge_strategies.return_value = MergeStrategies(rebase=True)
        adapter.enable_auto_merge.side_effect = GitPlatformError("auto-merge not allowed")
        result = _publish(adapter, auto_merge=True)
        assert result.merge_strategy == "rebase"
        assert result.auto_merge_enabled is False
        assert "auto-merge" in str(result.warnings[0])

    def test_auto_merge_not_requested(self, adapter: MagicMock) -> None:
        _publish(adapter)
        adapter.get_merge_strategies.assert_not_called()

    def test_title_and_body_filled_from_commits(self, adapter: MagicMock) -> None:
        with patch(
            "branchpilot.services.publisher.commit_messages", return_value=[("Add login form", "Details here")]
        ) as commits:
            _publish(adapter, title=None, body=None, remote="upstream")
        assert commits.call_args[0][2] == "upstream/main"
        kwargs = adapter.create_pr.call_args[1]
        assert kwargs["title"] == "Add login form"
        assert kwargs["body"] == "Details here"

    def test_missing_title_only(self, adapter: MagicMock) -> None:
        with patch("branchpilot.services.publisher.commit_messages", return_value=[("Subject", "ignored")]):
            _publish(adapter, title=None, body="My body")
        kwargs = adapter.create_pr.call_args[1]
        assert kwargs["title"] == "Subject"
        assert kwargs["body"] == "My body"


class TestFillFromCommits:
    def test_several_commits(self) -> None:
        with patch("branchpilot.services.publisher.commit_messages", return_value=[("One", ""), ("Two", "b")]):
            assert fill_from_commits(REPO, "feature/x", "origin/main") == ("feature/x", "- One\n- Two")

    def test_history_unavailable(self) -> None:
        with patch("branchpilot.services.publisher.commit_messages", side_effect=GitRunnerError("x")):
            assert fill_from_commits(REPO, "feature/x", "origin/main") == ("feature/x", "")
