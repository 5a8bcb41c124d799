"""Due-time scheduling: plan the next wake-up and run the watch loop.

plan_next_wake is pure and shared by the one-shot run and watch mode. The
watch loop is a single thread of control driven by three triggers:

- the wake timer, armed for the soonest pending ticket
- an hourly fallback timer that forces a recompute
- filesystem changes under the ticket directories, debounced into a recompute

Filesystem events never run the pipeline directly, and triggers arriving
while a pass is in flight are dropped.
"""

import logging
import queue
import signal
import threading
import time
from datetime import UTC, datetime
from pathlib import Path
from typing import Callable, List

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from branchpilot.models import PENDING, READY, Ticket

LOG = logging.getLogger("branchpilot.scheduler")

# Largest delay a platform timer accepts (2^31 - 1 ms); longer waits are re-armed
MAX_TIMER_DELAY = (2**31 - 1) / 1000.0
DEBOUNCE_SECONDS = 1.0
FALLBACK_INTERVAL_SECONDS = 3600.0
# Upper bound for a single blocking wait so stop requests are noticed
POLL_SECONDS = 1.0

_FS_CHANGE = "fs-change"


class SchedulePlan:
    """What to do now: run `due` immediately, then wait `delay` seconds."""

    def __init__(self, due: List[Ticket], next_wake: datetime | None, delay: float | None) -> None:
        self.due = due
        self.next_wake = next_wake
        self.delay = delay

    @property
    def immediate(self) -> bool:
        return bool(self.due)

    def __repr__(self) -> str:
        return f"SchedulePlan(due={len(self.due)}, next_wake={self.next_wake}, delay={self.delay})"


def plan_next_wake(now: datetime, tickets: List[Ticket]) -> SchedulePlan:
    """Split tickets into the batch to run now and the next wake-up.

    Args:
        now: Current instant (aware).
        tickets: Classified tickets of one pass.

    Returns:
        SchedulePlan whose due list holds the ready tickets and whose delay
        is the time until the soonest pending ticket, capped at
        MAX_TIMER_DELAY; delay is None when nothing is pending.
    """
    due = [t for t in tickets if t.state == READY]
    pending = [t.due_at for t in tickets if t.state == PENDING and t.due_at is not None]
    if not pending:
        return SchedulePlan(due, None, None)
    soonest = min(pending)
    delay = max(0.0, (soonest - now).total_seconds())
    return SchedulePlan(due, soonest, min(delay, MAX_TIMER_DELAY))


class _TicketDirHandler(FileSystemEventHandler):
    """Forwards changes to Markdown files to the scheduler."""

    def __init__(self, notify: Callable[[], None]) -> None:
        self._notify = notify

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        paths = [event.src_path, getattr(event, "dest_path", "") or ""]
        if any(str(p).lower().endswith(".md") for p in paths):
            self._notify()


class WatchScheduler:
    """Single-threaded watch loop over a load/process pair.

    Args:
        dirs: Ticket directories to observe.
        load: Runs one classification pass and returns the tickets.
        process: Processes a due batch; returns an exit code.
        now: Clock returning an aware datetime.
        monotonic: Monotonic clock for timers.
        observer_factory: Builds the watchdog observer.
        log: Optional logger.
    """

    def __init__(
        self,
        dirs: List[Path],
        load: Callable[[], List[Ticket]],
        process: Callable[[List[Ticket]], int],
        now: Callable[[], datetime] | None = None,
        monotonic: Callable[[], float] = time.monotonic,
        observer_factory: Callable[[], object] = Observer,
        log: logging.Logger | None = None,
    ) -> None:
        self._dirs = [Path(d) for d in dirs]
        self._load = load
        self._process = process
        self._now = now or (lambda: datetime.now(UTC))
        self._monotonic = monotonic
        self._observer_factory = observer_factory
        self._observer = None
        self._log = log or LOG
        self._events: queue.Queue[str] = queue.Queue()
        self._deadlines: dict[str, float] = {}
        self._busy = False
        self._stopping = False

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def deadlines(self) -> dict[str, float]:
        return dict(self._deadlines)

    def notify_change(self) -> None:
        """Called from the observer thread; dropped while a pass is running."""
        if self._busy or self._stopping:
            return
        self._events.put(_FS_CHANGE)

    def stop(self, *_args: object) -> None:
        """Request shutdown; a pass in flight is allowed to finish."""
        self._stopping = True

    def recompute(self) -> SchedulePlan | None:
        """Load and classify tickets, run the due batch, re-arm timers."""
        self._busy = True
        plan = None
        try:
            tickets = self._load()
            plan = plan_next_wake(self._now(), tickets)
            if plan.due:
                self._log.info("Processing %d due ticket(s)", len(plan.due))
                if self._process(plan.due) != 0:
                    self._log.warning("Some tickets failed; they are retried on the next trigger")
        except Exception as e:
            self._log.exception("Watch pass error: %s", e)
        finally:
            self._busy = False
        self._arm(plan)
        return plan

    def _arm(self, plan: SchedulePlan | None) -> None:
        now = self._monotonic()
        self._deadlines.pop("wake", None)
        if plan is not None and plan.delay is not None:
            self._deadlines["wake"] = now + plan.delay
            self._log.info("Next ticket due at %s", plan.next_wake.isoformat() if plan.next_wake else "?")
        else:
            self._log.info("No pending tickets; waiting for changes")
        self._deadlines["fallback"] = now + FALLBACK_INTERVAL_SECONDS

    def _next_timeout(self) -> float:
        if not self._deadlines:
            return POLL_SECONDS
        remaining = min(self._deadlines.values()) - self._monotonic()
        return max(0.0, min(remaining, POLL_SECONDS))

    def step(self) -> bool:
        """Wait for the next trigger and handle it. Returns True if a recompute ran."""
        if self._stopping:
            return False
        try:
            event = self._events.get(timeout=self._next_timeout())
        except queue.Empty:
            event = None
        if self._stopping:
            return False
        if event == _FS_CHANGE:
            self._deadlines["debounce"] = self._monotonic() + DEBOUNCE_SECONDS
            return False
        now = self._monotonic()
        fired = [name for name, at in self._deadlines.items() if at <= now]
        if not fired:
            return False
        for name in fired:
            del self._deadlines[name]
        self._log.debug("Recompute triggered by %s", ", ".join(sorted(fired)))
        self.recompute()
        return True

    def _start_observer(self) -> None:
        observer = self._observer_factory()
        handler = _TicketDirHandler(self.notify_change)
        for d in self._dirs:
            if d.is_dir():
                observer.schedule(handler, str(d), recursive=False)
            else:
                self._log.warning("Not watching %s: directory does not exist", d)
        observer.start()
        self._observer = observer

    def _stop_observer(self) -> None:
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join(timeout=5)
        self._observer = None

    def run(self, install_signals: bool = True) -> None:
        """Block until SIGINT/SIGTERM or stop()."""
        if install_signals and threading.current_thread() is threading.main_thread():
            signal.signal(signal.SIGINT, self.stop)
            signal.signal(signal.SIGTERM, self.stop)
        self._start_observer()
        self._log.info("Watching %s", ", ".join(str(d) for d in self._dirs))
        try:
            self.recompute()
            while not self._stopping:
                self.step()
        finally:
            self._deadlines.clear()
            self._stop_observer()
            self._log.info("Watch stopped")
