"""Configuration loading from YAML and environment.

Two files feed the effective configuration of a ticket:

- global: $XDG_CONFIG_HOME/branchpilot.yaml (or an explicit --config path)
- per repository: <repo root>/.branchpilot.yaml

Values are merged field by field: ticket field, repository config, global
config, built-in default. Secrets (tokens) are taken from environment
variables or from files (Docker secrets); never put real tokens in config
files committed to a repo.
"""

import logging
import os
import sys
from pathlib import Path
from typing import Any, List

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel
from pydantic_settings import BaseSettings, SettingsConfigDict

from branchpilot.models import OnProcessed, PushMode, Ticket

GLOBAL_CONFIG_NAME = "branchpilot.yaml"
REPO_CONFIG_NAME = ".branchpilot.yaml"

DEFAULT_PUSH_MODE: PushMode = "force-with-lease"
DEFAULT_REMOTE = "origin"
DEFAULT_ON_PROCESSED: OnProcessed = "keep"
DEFAULT_ARCHIVE_DIR = "processed"

LOG = logging.getLogger("branchpilot.config")


def _read_secret(env_key: str, file_env_key: str) -> str | None:
    """Read secret from env var or from file path in env (e.g. Docker
    secrets)."""
    value = _current_env.get(env_key)
    if value:
        return value.strip()
    file_path = _current_env.get(file_env_key)
    if file_path:
        return Path(file_path).read_text().strip()
    return None


# Injected by load_global_config so secrets and ${VAR} substitution read the same env
_current_env: dict[str, str] = {}


class RepoConfig(BaseModel):
    """One configuration layer (global defaults or a single repository).

    Keys are written in camelCase in YAML files (pushMode, defaultBase...);
    snake_case is accepted too.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    dirs: List[str] | None = Field(default=None, description="Ticket directories to scan")
    default_base: str | None = Field(default=None, description="Base branch when a ticket sets none")
    timezone: str | None = Field(default=None, description="Fallback IANA zone for 'when'")
    push_mode: PushMode | None = Field(default=None, description="force-with-lease, ff-only or force")
    remote: str | None = Field(default=None, description="Git remote name")
    repo: str | None = Field(default=None, description="Explicit owner/name on the code-review service")
    delete_local_branch: bool | None = Field(default=None, description="Delete the local branch after the PR")
    on_processed: OnProcessed | None = Field(default=None, description="keep, delete or archive the ticket")
    archive_dir: str | None = Field(default=None, description="Archive directory for onProcessed=archive")


class GitHubConfig(BaseSettings):
    """GitHub API settings."""

    model_config = SettingsConfigDict(env_prefix="GITHUB_", extra="ignore")

    token: str | None = Field(default=None, description="PAT or app token; use env or secret file")
    api_url: str = Field(default="https://api.github.com", description="API base URL")


class LoggingConfig(BaseSettings):
    """Logging settings."""

    model_config = SettingsConfigDict(env_prefix="LOGGING_", extra="ignore")

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format",
    )


class AppConfig(BaseSettings):
    """Root application config from the global YAML file + env."""

    model_config = SettingsConfigDict(extra="ignore")

    defaults: RepoConfig = Field(default_factory=RepoConfig)
    github: GitHubConfig = Field(default_factory=GitHubConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @property
    def github_token_resolved(self) -> str | None:
        """Resolve GitHub token from config, env or Docker secret file."""
        t = self.github.token
        if t and not t.startswith("${"):
            return t
        return _read_secret("GITHUB_TOKEN", "GITHUB_TOKEN_FILE") or _read_secret("GH_TOKEN", "GH_TOKEN_FILE")


class EffectiveConfig(BaseModel):
    """Per-ticket merge of ticket, repository, global and built-in values."""

    push_mode: PushMode = DEFAULT_PUSH_MODE
    remote: str = DEFAULT_REMOTE
    repo: str | None = None
    default_base: str | None = None
    delete_local_branch: bool = False
    on_processed: OnProcessed = DEFAULT_ON_PROCESSED
    archive_dir: str = DEFAULT_ARCHIVE_DIR


def _first(*values: Any) -> Any:
    """Return the first value that is not None (None if all are)."""
    for value in values:
        if value is not None:
            return value
    return None


def resolve_effective_config(
    ticket: Ticket | None,
    repo_cfg: RepoConfig | None,
    global_cfg: RepoConfig | None,
) -> EffectiveConfig:
    """Merge the four layers field by field: ticket, repo, global, default."""
    t = ticket
    r = repo_cfg or RepoConfig()
    g = global_cfg or RepoConfig()
    return EffectiveConfig(
        push_mode=_first(t.push_mode if t else None, r.push_mode, g.push_mode, DEFAULT_PUSH_MODE),
        remote=_first(r.remote, g.remote, DEFAULT_REMOTE),
        repo=_first(r.repo, g.repo),
        default_base=_first(r.default_base, g.default_base),
        delete_local_branch=_first(
            t.delete_local_branch if t else None, r.delete_local_branch, g.delete_local_branch, False
        ),
        on_processed=_first(t.on_processed if t else None, r.on_processed, g.on_processed, DEFAULT_ON_PROCESSED),
        archive_dir=_first(t.archive_dir if t else None, r.archive_dir, g.archive_dir, DEFAULT_ARCHIVE_DIR),
    )


def global_config_path() -> Path:
    """Default location of the global config file."""
    home = Path.home()
    if sys.platform == "win32":
        app_data = os.environ.get("APPDATA") or str(home / "AppData" / "Roaming")
        return Path(app_data) / GLOBAL_CONFIG_NAME
    xdg = os.environ.get("XDG_CONFIG_HOME") or str(home / ".config")
    return Path(xdg) / GLOBAL_CONFIG_NAME


def _substitute_env(value: Any) -> Any:
    """Replace ${VAR} and $VAR in strings with os.environ."""
    if isinstance(value, str):
        if value.startswith("${") and value.endswith("}"):
            key = value[2:-1].strip()
            return _current_env.get(key, value)
        if value.startswith("$") and not value.startswith("${"):
            key = value[1:].strip()
            return _current_env.get(key, value)
        return value
    if isinstance(value, dict):
        return {k: _substitute_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_substitute_env(v) for v in value]
    return value


def _format_validation_error(err: ValidationError) -> str:
    lines = []
    for issue in err.errors():
        field_path = ".".join(str(p) for p in issue.get("loc", ()))
        lines.append(f"  - {field_path}: {issue.get('msg', '')}" if field_path else f"  - {issue.get('msg', '')}")
    return "\n".join(lines)


def _read_yaml(path: Path, kind: str, log: logging.Logger | None) -> dict[str, Any] | None:
    """Read a YAML mapping; None when the file is missing or unusable."""
    log = log or LOG
    if not path.is_file():
        return None
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except OSError as e:
        log.debug("Cannot read %s config %s: %s", kind, path, e)
        return None
    except yaml.YAMLError as e:
        log.warning("Invalid YAML syntax in %s config (%s): %s", kind, path, e)
        return None
    if not isinstance(raw, dict):
        log.warning("Invalid configuration in %s config (%s): expected a mapping", kind, path)
        return None
    return _substitute_env(raw)


def load_global_config(config_path: Path | None = None, log: logging.Logger | None = None) -> AppConfig:
    """Load the global config from YAML and environment.

    A missing file yields defaults silently. Invalid YAML or schema is
    logged as a warning and defaults are used.

    Secrets: GITHUB_TOKEN or GITHUB_TOKEN_FILE (GH_TOKEN also accepted).
    """
    global _current_env
    _current_env = dict(os.environ)
    log = log or LOG

    path = config_path or global_config_path()
    raw = _read_yaml(path, "global", log)
    if raw is None:
        return AppConfig()

    try:
        github = GitHubConfig(**(raw.pop("github", None) or {}))
        logging_cfg = LoggingConfig(**(raw.pop("logging", None) or {}))
        defaults = RepoConfig.model_validate(raw)
    except ValidationError as e:
        log.warning("Invalid configuration in global config (%s):\n%s", path, _format_validation_error(e))
        return AppConfig()

    return AppConfig(defaults=defaults, github=github, logging=logging_cfg)


def load_repo_config(repo_root: Path, log: logging.Logger | None = None) -> RepoConfig:
    """Load <repo_root>/.branchpilot.yaml; empty layer when missing or invalid."""
    log = log or LOG
    path = Path(repo_root) / REPO_CONFIG_NAME
    raw = _read_yaml(path, "repo", log)
    if raw is None:
        return RepoConfig()
    try:
        return RepoConfig.model_validate(raw)
    except ValidationError as e:
        log.warning("Invalid configuration in repo config (%s):\n%s", path, _format_validation_error(e))
        return RepoConfig()


class RepoConfigCache:
    """Per-pass cache of repository config layers keyed by repository root.

    Populated lazily and never invalidated; each pipeline pass (including
    every watch-mode pass) builds a new cache, so on-disk edits are picked
    up by the next pass.
    """

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._configs: dict[Path, RepoConfig] = {}
        self._log = log

    def get(self, repo_root: Path) -> RepoConfig:
        key = Path(repo_root).resolve()
        if key not in self._configs:
            self._configs[key] = load_repo_config(key, log=self._log)
        return self._configs[key]


def resolve_dirs(cli_dirs: List[str] | None, local_cfg: RepoConfig, global_cfg: RepoConfig) -> List[str]:
    """Directories to scan: --dir flags, then current repo config, then global, then '.'."""
    if cli_dirs:
        return list(cli_dirs)
    if local_cfg.dirs:
        return list(local_cfg.dirs)
    if global_cfg.dirs:
        return list(global_cfg.dirs)
    return ["."]
