"""Internal helpers: run git commands, GitRunnerError."""

import logging
import subprocess
from pathlib import Path

GIT_TIMEOUT_SECONDS = 120


class GitRunnerError(Exception):
    """Raised when a git command fails."""

    pass


def _run_git(args: list[str], cwd: Path, log: logging.Logger | None = None) -> str:
    """Run git command and return stripped stdout; raise GitRunnerError on non-zero exit."""
    cmd = ["git"] + args
    if log:
        log.debug("git %s (cwd=%s)", " ".join(args), cwd)
    try:
        result = subprocess.run(
            cmd,
            cwd=cwd,
            check=True,
            capture_output=True,
            text=True,
            timeout=GIT_TIMEOUT_SECONDS,
        )
    except subprocess.CalledProcessError as e:
        err = (e.stderr or e.stdout or "").strip()
        if log:
            log.debug("Git %s failed: %s", args, err)
        raise GitRunnerError(f"git {' '.join(args)}: {err}") from e
    except subprocess.TimeoutExpired as e:
        raise GitRunnerError(f"git {' '.join(args)}: timed out after {GIT_TIMEOUT_SECONDS}s") from e
    except FileNotFoundError as e:
        if not Path(cwd).is_dir():
            raise GitRunnerError(f"directory not found: {cwd}") from e
        raise GitRunnerError("git not found") from e
    return (result.stdout or "").strip()
