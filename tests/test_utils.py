"""Tests for branchpilot.utils (path expansion, repository slugs)."""

from pathlib import Path

import pytest

from branchpilot.utils import expand_path, repo_slug_from_remote_url


@pytest.mark.parametrize(
    "url,expected",
    [
        ("git@github.com:acme/widgets.git", "acme/widgets"),
        ("git@github.com:acme/widgets", "acme/widgets"),
        ("https://github.com/acme/widgets.git", "acme/widgets"),
        ("https://github.com/acme/widgets", "acme/widgets"),
        ("https://github.com/acme/widgets/", "acme/widgets"),
        ("ssh://git@github.com/acme/widgets.git", "acme/widgets"),
        ("https://ghe.example.com/team/my.repo.git", "team/my.repo"),
        ("  git@github.com:acme/widgets.git\n", "acme/widgets"),
    ],
)
def test_repo_slug_from_remote_url(url: str, expected: str) -> None:
    """owner/name is taken from the tail of SSH and HTTPS URLs."""
    assert repo_slug_from_remote_url(url) == expected


@pytest.mark.parametrize("url", ["", "   ", "not-a-url"])
def test_repo_slug_unrecognized(url: str) -> None:
    assert repo_slug_from_remote_url(url) is None


def test_expand_path(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("HOME", str(tmp_path))
    assert expand_path("~/tickets") == (tmp_path / "tickets").resolve()
    assert expand_path("relative").is_absolute()
