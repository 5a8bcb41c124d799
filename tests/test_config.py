"""Tests for branchpilot.config (YAML layers, precedence, secrets)."""

import logging
from pathlib import Path
from unittest.mock import patch

import pytest

from branchpilot.config import (
    DEFAULT_ARCHIVE_DIR,
    DEFAULT_PUSH_MODE,
    DEFAULT_REMOTE,
    REPO_CONFIG_NAME,
    RepoConfig,
    RepoConfigCache,
    global_config_path,
    load_global_config,
    load_repo_config,
    resolve_dirs,
    resolve_effective_config,
)
from branchpilot.models import Ticket


class TestLoadGlobalConfig:
    """load_global_config: defaults, camelCase keys, warnings."""

    def test_missing_file_gives_defaults_silently(self, tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING):
            config = load_global_config(tmp_path / "absent.yaml")
        assert config.defaults == RepoConfig()
        assert config.github.api_url == "https://api.github.com"
        assert caplog.text == ""

    def test_reads_camel_case_keys(self, tmp_path: Path) -> None:
        path = tmp_path / "branchpilot.yaml"
        path.write_text(
            "dirs: [~/tickets, /srv/tickets]\n"
            "defaultBase: develop\n"
            "timezone: Europe/Paris\n"
            "pushMode: ff-only\n"
            "remote: upstream\n"
            "deleteLocalBranch: true\n"
            "onProcessed: archive\n"
            "archiveDir: done\n"
            "logging:\n  level: DEBUG\n"
            "github:\n  api_url: https://ghe.example.com/api/v3\n",
            encoding="utf-8",
        )
        config = load_global_config(path)
        d = config.defaults
        assert d.dirs == ["~/tickets", "/srv/tickets"]
        assert d.default_base == "develop"
        assert d.timezone == "Europe/Paris"
        assert d.push_mode == "ff-only"
        assert d.remote == "upstream"
        assert d.delete_local_branch is True
        assert d.on_processed == "archive"
        assert d.archive_dir == "done"
        assert config.logging.level == "DEBUG"
        assert config.github.api_url == "https://ghe.example.com/api/v3"

    def test_invalid_yaml_warns_and_uses_defaults(self, tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
        path = tmp_path / "branchpilot.yaml"
        path.write_text("dirs: [unclosed\n", encoding="utf-8")
        with caplog.at_level(logging.WARNING):
            config = load_global_config(path)
        assert config.defaults == RepoConfig()
        assert "Invalid YAML syntax" in caplog.text

    def test_invalid_schema_warns_with_field_path(self, tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
        path = tmp_path / "branchpilot.yaml"
        path.write_text("pushMode: sideways\n", encoding="utf-8")
        with caplog.at_level(logging.WARNING):
            config = load_global_config(path)
        assert config.defaults.push_mode is None
        assert "Invalid configuration" in caplog.text
        assert "pushMode" in caplog.text

    def test_non_mapping_warns(self, tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
        path = tmp_path / "branchpilot.yaml"
        path.write_text("- just\n- a list\n", encoding="utf-8")
        with caplog.at_level(logging.WARNING):
            config = load_global_config(path)
        assert config.defaults == RepoConfig()
        assert "expected a mapping" in caplog.text

    def test_env_substitution_for_token(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """${VAR} values are replaced from the environment."""
        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        monkeypatch.delenv("GH_TOKEN", raising=False)
        monkeypatch.setenv("MY_BP_TOKEN", "secret-123")
        path = tmp_path / "branchpilot.yaml"
        path.write_text("github:\n  token: ${MY_BP_TOKEN}\n", encoding="utf-8")
        config = load_global_config(path)
        assert config.github_token_resolved == "secret-123"

    def test_token_from_env(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GITHUB_TOKEN", "env-token")
        config = load_global_config(tmp_path / "absent.yaml")
        assert config.github_token_resolved == "env-token"

    def test_token_from_secret_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        secret = tmp_path / "token"
        secret.write_text("file-token\n", encoding="utf-8")
        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        monkeypatch.delenv("GH_TOKEN", raising=False)
        monkeypatch.setenv("GITHUB_TOKEN_FILE", str(secret))
        config = load_global_config(tmp_path / "absent.yaml")
        assert config.github_token_resolved == "file-token"

    def test_no_token(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        for key in ("GITHUB_TOKEN", "GITHUB_TOKEN_FILE", "GH_TOKEN", "GH_TOKEN_FILE"):
            monkeypatch.delenv(key, raising=False)
        config = load_global_config(tmp_path / "absent.yaml")
        assert config.github_token_resolved is None


class TestGlobalConfigPath:
    def test_xdg_config_home(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("branchpilot.config.sys.platform", "linux")
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
        assert global_config_path() == tmp_path / "branchpilot.yaml"


class TestRepoConfig:
    """Per-repository layer and its cache."""

    def test_load_repo_config(self, tmp_path: Path) -> None:
        (tmp_path / REPO_CONFIG_NAME).write_text("repo: acme/widgets\npushMode: force\n", encoding="utf-8")
        cfg = load_repo_config(tmp_path)
        assert cfg.repo == "acme/widgets"
        assert cfg.push_mode == "force"

    def test_missing_repo_config_is_empty_layer(self, tmp_path: Path) -> None:
        assert load_repo_config(tmp_path) == RepoConfig()

    def test_cache_reads_each_repository_once(self, tmp_path: Path) -> None:
        cache = RepoConfigCache()
        with patch("branchpilot.config.load_repo_config", return_value=RepoConfig(remote="up")) as load:
            assert cache.get(tmp_path).remote == "up"
            assert cache.get(tmp_path).remote == "up"
            assert cache.get(tmp_path / "." / "").remote == "up"
        load.assert_called_once()


class TestEffectiveConfig:
    """resolve_effective_config: ticket, repo, global, default."""

    def _ticket(self, **kwargs: object) -> Ticket:
        return Ticket(file=Path("t.md"), branch="b", when="2025-01-01", **kwargs)

    def test_defaults(self) -> None:
        eff = resolve_effective_config(None, None, None)
        assert eff.push_mode == DEFAULT_PUSH_MODE
        assert eff.remote == DEFAULT_REMOTE
        assert eff.on_processed == "keep"
        assert eff.archive_dir == DEFAULT_ARCHIVE_DIR
        assert eff.delete_local_branch is False
        assert eff.repo is None

    def test_ticket_beats_repo_beats_global(self) -> None:
        global_cfg = RepoConfig(push_mode="force", remote="g", on_processed="delete", default_base="g-base")
        repo_cfg = RepoConfig(push_mode="ff-only", remote="r")
        eff = resolve_effective_config(self._ticket(push_mode="force-with-lease"), repo_cfg, global_cfg)
        assert eff.push_mode == "force-with-lease"
        assert eff.remote == "r"
        assert eff.on_processed == "delete"
        assert eff.default_base == "g-base"

    def test_repo_beats_global(self) -> None:
        eff = resolve_effective_config(self._ticket(), RepoConfig(push_mode="ff-only"), RepoConfig(push_mode="force"))
        assert eff.push_mode == "ff-only"

    def test_false_in_ticket_overrides_true_in_config(self) -> None:
        """An explicit false is a value, not an absence."""
        eff = resolve_effective_config(
            self._ticket(delete_local_branch=False), RepoConfig(delete_local_branch=True), None
        )
        assert eff.delete_local_branch is False


class TestResolveDirs:
    def test_cli_dirs_win(self) -> None:
        assert resolve_dirs(["a"], RepoConfig(dirs=["b"]), RepoConfig(dirs=["c"])) == ["a"]

    def test_local_then_global_then_cwd(self) -> None:
        assert resolve_dirs([], RepoConfig(dirs=["b"]), RepoConfig(dirs=["c"])) == ["b"]
        assert resolve_dirs(None, RepoConfig(), RepoConfig(dirs=["c"])) == ["c"]
        assert resolve_dirs(None, RepoConfig(), RepoConfig()) == ["."]
