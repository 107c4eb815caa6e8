"""
Two-phase termination: SIGTERM, wait, SIGKILL, wait, verify.

The protocol is a small state machine. Each state handler returns either the
next state or a finished KillOutcome; the waits are plain sleeps so the whole
thing can be driven with fake clocks in tests.
"""
import os
import signal
import time

import psutil

from .logs import debug_log
from .models import STEP_FORCEFUL, STEP_GRACEFUL, BulkKillOutcome, KillOutcome

GRACEFUL_WAIT_SECONDS = 0.5
FORCEFUL_WAIT_SECONDS = 0.3

SEND_GRACEFUL = "SEND_GRACEFUL"
WAIT_GRACEFUL = "WAIT_GRACEFUL"
SEND_FORCEFUL = "SEND_FORCEFUL"
WAIT_FORCEFUL = "WAIT_FORCEFUL"

STILL_ALIVE_ERROR = "Process still alive after SIGKILL"


def is_pid_alive(pid):
    """Existence probe; a pid we may not signal (EPERM) still counts as alive."""
    return psutil.pid_exists(pid)


class Termination:
    """One termination attempt against a single pid."""

    def __init__(self, pid, send_signal=os.kill, is_alive=is_pid_alive, sleep=time.sleep):
        self.pid = pid
        self.send_signal = send_signal
        self.is_alive = is_alive
        self.sleep = sleep
        self.handlers = {
            SEND_GRACEFUL: self._send_graceful,
            WAIT_GRACEFUL: self._wait_graceful,
            SEND_FORCEFUL: self._send_forceful,
            WAIT_FORCEFUL: self._wait_forceful,
        }

    def run(self):
        state = SEND_GRACEFUL
        while True:
            result = self.handlers[state]()
            if isinstance(result, KillOutcome):
                return result
            state = result

    def _outcome(self, ok, step, error=None):
        return KillOutcome(self.pid, ok, step, error)

    def _send_graceful(self):
        try:
            self.send_signal(self.pid, signal.SIGTERM)
        except ProcessLookupError:
            # Gone already: the snapshot was stale, nothing left to do
            return self._outcome(True, STEP_GRACEFUL)
        except OSError as e:
            return self._outcome(False, STEP_GRACEFUL, e.strerror or str(e))
        return WAIT_GRACEFUL

    def _wait_graceful(self):
        self.sleep(GRACEFUL_WAIT_SECONDS)
        if not self.is_alive(self.pid):
            return self._outcome(True, STEP_GRACEFUL)
        return SEND_FORCEFUL

    def _send_forceful(self):
        try:
            self.send_signal(self.pid, signal.SIGKILL)
        except ProcessLookupError:
            return self._outcome(True, STEP_FORCEFUL)
        except OSError as e:
            return self._outcome(False, STEP_FORCEFUL, e.strerror or str(e))
        return WAIT_FORCEFUL

    def _wait_forceful(self):
        self.sleep(FORCEFUL_WAIT_SECONDS)
        if not self.is_alive(self.pid):
            return self._outcome(True, STEP_FORCEFUL)
        return self._outcome(False, STEP_FORCEFUL, STILL_ALIVE_ERROR)


def terminate(pid, **kwargs):
    """Terminate `pid` gracefully, escalating to SIGKILL. Returns a KillOutcome."""
    if not isinstance(pid, int) or isinstance(pid, bool) or pid <= 0:
        return KillOutcome(pid, False, STEP_GRACEFUL, "Invalid PID")
    outcome = Termination(pid, **kwargs).run()
    if outcome.succeeded:
        debug_log(f"KILL: PID {pid} terminated ({outcome.termination_step})")
    else:
        debug_log(f"KILL: PID {pid} failed at {outcome.termination_step}: {outcome.error_detail}")
    return outcome


def terminate_all(processes, **kwargs):
    """Terminate every process of a snapshot, one after the other."""
    snapshot = list(processes)
    ok = 0
    failed = []
    for proc in snapshot:
        outcome = terminate(proc.process_id, **kwargs)
        if outcome.succeeded:
            ok += 1
        else:
            failed.append(f"{proc.process_id} ({outcome.termination_step})")
    return BulkKillOutcome(ok, len(failed), tuple(failed))
