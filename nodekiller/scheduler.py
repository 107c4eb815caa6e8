"""
Refresh scheduling.

A RefreshScheduler owns the latest process snapshot and the timer that keeps
it fresh. Passes are single-flight: a request made while a pass runs is
remembered and served by exactly one extra pass once the current one ends.
The timer is one-shot and re-armed after each pass, so a slow scan never
overlaps the next tick.
"""
import functools
import re
import threading

from . import classifier, config, discovery, terminator
from .logs import debug_log
from .models import ScheduleState


def _noop(*args, **kwargs):
    pass


def rules_from_config():
    pattern = config.get_vite_pattern()
    if not pattern:
        return classifier.RULES
    try:
        return classifier.build_rules(pattern)
    except re.error as e:
        debug_log(f"CONFIG: Invalid vite_pattern {pattern!r}: {e}")
        return classifier.RULES


def scan_from_config():
    """One discovery pass using the current preferences."""
    return discovery.scan_all(
        config.get_enabled_categories(),
        restrict_to_current_user=not config.get_all_users(),
        rules=rules_from_config(),
    )


class RefreshScheduler:

    def __init__(self, scan=None, publish=None, notify=None, get_interval=None,
                 timer_factory=threading.Timer, terminate=None, terminate_all=None):
        self.scan = scan or scan_from_config
        self.publish = publish or _noop
        self.notify = notify or _noop
        self.get_interval = get_interval or config.get_refresh_ms
        self.timer_factory = timer_factory
        self.terminate = terminate or terminator.terminate
        self.terminate_all = terminate_all or terminator.terminate_all
        self.state = ScheduleState()
        self._lock = threading.Lock()
        self._latest = ()

    @property
    def latest(self):
        """The snapshot produced by the last completed pass."""
        with self._lock:
            return self._latest

    # --------------------------------------------------
    # Passes
    # --------------------------------------------------
    def trigger_refresh(self):
        """
        Run a discovery pass unless one is already running.

        Returns False when the request was queued behind a running pass or the
        pass failed, True when this call ran a pass that published a snapshot.
        """
        with self._lock:
            if self.state.in_flight:
                self.state.queued_rerun = True
                return False
            self.state.in_flight = True

        ok = self._run_pass()
        while True:
            with self._lock:
                if not self.state.queued_rerun:
                    self.state.in_flight = False
                    return ok
                self.state.queued_rerun = False
            self._run_pass()

    def _run_pass(self):
        try:
            procs = tuple(self.scan())
        except Exception as e:
            debug_log(f"REFRESH: Refresh failed: {e}")
            return False
        with self._lock:
            self._latest = procs
        try:
            self.publish(procs)
        except Exception as e:
            debug_log(f"REFRESH: Publishing snapshot failed: {e}")
        return True

    # --------------------------------------------------
    # Timer
    # --------------------------------------------------
    def schedule_next(self):
        """Arm the one-shot refresh timer from the current interval preference."""
        with self._lock:
            if self.state.quitting:
                return
            self._cancel_timer()
            interval = self.get_interval()
            if interval == config.PAUSED:
                return
            delay_ms = config.parse_refresh(interval)
            if delay_ms is None:
                debug_log(f"REFRESH: Invalid interval {interval!r}, using default")
                delay_ms = config.set_refresh_ms(config.DEFAULT_REFRESH_MS)
            timer = self.timer_factory(
                delay_ms / 1000.0, functools.partial(self._on_timer, self.state.generation)
            )
            timer.daemon = True
            self.state.timer = timer
            timer.start()

    def _on_timer(self, generation):
        with self._lock:
            # A cancelled timer may still fire; only the current one re-arms
            if self.state.quitting or generation != self.state.generation:
                return
            self.state.timer = None
        try:
            self.trigger_refresh()
        finally:
            self.schedule_next()

    def _cancel_timer(self):
        self.state.generation += 1
        if self.state.timer is not None:
            self.state.timer.cancel()
            self.state.timer = None

    def refresh_now(self):
        """Out-of-band refresh that also restarts the timer."""
        ok = self.trigger_refresh()
        self.schedule_next()
        return ok

    def start(self):
        self.refresh_now()

    def shutdown(self):
        with self._lock:
            self.state.quitting = True
            self._cancel_timer()

    # --------------------------------------------------
    # Termination
    # --------------------------------------------------
    def kill(self, pid):
        """Terminate one pid, notify once, then refresh."""
        outcome = self.terminate(pid)
        if outcome.succeeded:
            self.notify("✅ Process terminated", f"PID {pid} ({outcome.termination_step})")
        else:
            self.notify(
                "❌ Could not terminate",
                f"PID {pid} - {outcome.termination_step} - {outcome.error_detail or ''}",
            )
        self.refresh_now()
        return outcome

    def kill_all(self):
        """Terminate every process of the current snapshot, notify once, then refresh."""
        snapshot = list(self.latest)
        result = self.terminate_all(snapshot)
        if result.failed == 0:
            self.notify("✅ Kill all", f"{result.succeeded} processes terminated.")
        else:
            self.notify(
                "⚠️ Kill all with issues",
                f"{result.succeeded} succeeded, {result.failed} failed - {', '.join(result.failure_details)}",
            )
        self.refresh_now()
        return result
