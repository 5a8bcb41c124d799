"""branchpilot entry point.

Subcommands: run (one pass), list (show ticket states), watch (run as tickets
become due), doctor (check git and the GitHub token).
Usage: branchpilot run | list | watch | doctor [--dir DIR] [--config PATH] [--verbose]
"""

import argparse
import logging
import shutil
import sys
from datetime import UTC, datetime
from pathlib import Path
from typing import List

from branchpilot import __version__
from branchpilot.adapters import GitPlatformError
from branchpilot.config import load_global_config
from branchpilot.logging import BranchpilotLogging
from branchpilot.models import Ticket
from branchpilot.scheduler import WatchScheduler
from branchpilot.services.pipeline import Pipeline, make_adapter

SUBCOMMANDS = ("run", "list", "watch", "doctor")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(
        prog="branchpilot",
        description="branchpilot - open pull requests for branches when their tickets come due",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        "-c",
        type=Path,
        default=None,
        help="Path to global YAML config file",
    )
    common.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Log git and API commands (DEBUG)",
    )
    dirs = argparse.ArgumentParser(add_help=False)
    dirs.add_argument(
        "--dir",
        "-d",
        dest="dirs",
        action="append",
        default=[],
        help="Ticket directory to scan (repeatable)",
    )

    sub = parser.add_subparsers(dest="subcommand", required=True)
    sub.add_parser("run", parents=[common, dirs], help="Process due tickets once")
    sub.add_parser("list", parents=[common, dirs], help="List tickets and their states")
    sub.add_parser("watch", parents=[common, dirs], help="Process tickets as they become due")
    sub.add_parser("doctor", parents=[common], help="Check git and GitHub access")
    return parser.parse_args(argv)


def setup_logging(config_path: Path | None, verbose: bool) -> logging.Logger:
    """Configure root logger once from the global config and --verbose."""
    config = load_global_config(config_path)
    BranchpilotLogging(config.logging, verbose=verbose).setup()
    return logging.getLogger("branchpilot")


def format_ticket(ticket: Ticket) -> str:
    """One line per ticket: state, branch, due instant, file, and error if any."""
    line = f"{ticket.state:<10} {ticket.branch or '-':<30} {ticket.due_utc or ticket.when or '-':<26} {ticket.file}"
    if ticket.error:
        line += f"\n{'':<10} error: {ticket.error}"
    return line


def list_tickets(pipeline: Pipeline, now: datetime | None = None) -> int:
    tickets = pipeline.load(now=now or datetime.now(UTC))
    if not tickets:
        print("No tickets found")
        return 0
    for ticket in tickets:
        print(format_ticket(ticket))
    return 0


def doctor(config_path: Path | None, log: logging.Logger) -> int:
    """Check that git is on PATH and the GitHub token is accepted."""
    ok = True
    git = shutil.which("git")
    if git:
        print(f"git: {git}")
    else:
        print("git: not found on PATH")
        ok = False

    config = load_global_config(config_path, log=log)
    adapter = make_adapter(config)
    if adapter is None:
        print("github: no token (set GITHUB_TOKEN or github.token)")
        ok = False
    else:
        try:
            print(f"github: authenticated as {adapter.check_auth()} ({config.github.api_url})")
        except GitPlatformError as e:
            print(f"github: token rejected: {e}")
            ok = False
    return 0 if ok else 1


def _require_git(log: logging.Logger) -> bool:
    if shutil.which("git"):
        return True
    log.error("git not found on PATH")
    return False


def main(argv: List[str] | None = None) -> int:
    """Entry point: dispatch to run, list, watch or doctor."""
    args = parse_args(argv)
    log = setup_logging(args.config, args.verbose)

    if args.subcommand == "doctor":
        return doctor(args.config, log)

    if not _require_git(log):
        return 1

    pipeline = Pipeline(config_path=args.config, cli_dirs=args.dirs, log=log)
    try:
        if args.subcommand == "list":
            return list_tickets(pipeline)
        if args.subcommand == "watch":
            scheduler = WatchScheduler(
                [Path(d) for d in pipeline.dirs()],
                load=pipeline.load,
                process=pipeline.process,
                log=log,
            )
            scheduler.run()
            return 0
        return pipeline.run_once()
    except KeyboardInterrupt:
        return 0
    except Exception as e:
        log.exception("Fatal error: %s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
