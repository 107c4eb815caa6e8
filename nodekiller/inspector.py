"""
Listener inspector: asks lsof which processes hold TCP sockets in LISTEN state.

Two output encodings are understood. The field encoding (-F) is compact and
unambiguous, so it is tried first; the human table is the fallback when the
field run fails for any reason other than "nothing matched".
"""
import getpass
import os
import pwd
import re
from collections import namedtuple

from .commands import run_command
from .errors import InvocationError
from .logs import debug_log
from .models import DiscoveredProcess

LSOF_BIN = "lsof"
LSOF_NO_MATCH_STATUS = 1

# lsof -F may or may not append the TCP state to the name field
FIELD_PORT_RE = re.compile(r":(\d+)(?:\s*\(LISTEN\))?\s*$")
TABLE_PORT_RE = re.compile(r"TCP \S*:(\d+) \(LISTEN\)")

# Word-boundary command filters for the table encoding
COMMAND_PATTERNS = {
    "node": re.compile(r"\bnode(js)?\b"),
    "bun": re.compile(r"\bbun\b"),
}

Strategy = namedtuple("Strategy", ["name", "extra_args", "parse", "timeout"])


def current_user():
    try:
        return pwd.getpwuid(os.getuid()).pw_name
    except KeyError:
        return getpass.getuser()


def _new_record(records, pid, user=None):
    if pid not in records:
        records[pid] = {"user": user, "ports": set()}
    elif user and not records[pid]["user"]:
        records[pid]["user"] = user
    return records[pid]


def _to_processes(records):
    return [
        DiscoveredProcess(pid, rec["user"], tuple(sorted(rec["ports"])))
        for pid, rec in records.items()
    ]


def _parse_pid(text):
    try:
        pid = int(text.strip())
    except ValueError:
        return None
    return pid if pid > 0 else None


# --------------------------------------------------
# Parsers
# --------------------------------------------------
# scan_target is unused here (lsof -c already filtered by command) but keeps
# the signature shared by every Strategy.parse
def parse_lsof_fields(stdout, scan_target=None):
    """
    Parse `lsof -F pcLPn` output.

    A `p` line opens a record; `L` sets its login name and every `n` line
    whose address ends in a port adds it. Anything else is ignored.
    """
    records = {}
    current = None
    for line in stdout.splitlines():
        if not line:
            continue
        key, val = line[0], line[1:]
        if key == "p":
            pid = _parse_pid(val)
            current = _new_record(records, pid) if pid else None
        elif current is None:
            continue
        elif key == "L":
            if val and not current["user"]:
                current["user"] = val
        elif key == "n":
            m = FIELD_PORT_RE.search(val)
            if m:
                current["ports"].add(int(m.group(1)))
    return _to_processes(records)


def command_matches(command, scan_target):
    if command == scan_target:
        return True
    pattern = COMMAND_PATTERNS.get(scan_target)
    if pattern is None:
        pattern = re.compile(r"\b%s\b" % re.escape(scan_target))
    return bool(pattern.search(command))


def parse_lsof_table(stdout, scan_target):
    """Parse the default lsof table (COMMAND PID USER FD TYPE DEVICE SIZE/OFF NODE NAME)."""
    records = {}
    for line in stdout.splitlines():
        if not line or line.startswith("COMMAND") or "LISTEN" not in line:
            continue
        parts = line.split()
        if len(parts) < 2:
            continue
        command = parts[0]
        if not command_matches(command, scan_target):
            continue
        pid = _parse_pid(parts[1])
        if pid is None:
            continue
        user = parts[2] if len(parts) > 2 else None
        rec = _new_record(records, pid, user)
        m = TABLE_PORT_RE.search(line)
        if m:
            rec["ports"].add(int(m.group(1)))
    return _to_processes(records)


STRATEGIES = (
    Strategy("fields", ["-F", "pcLPn"], parse_lsof_fields, 4),
    Strategy("table", [], parse_lsof_table, 3),
)


def build_lsof_args(scan_target, restrict_to_current_user, extra_args=()):
    args = [LSOF_BIN, "-nP", "-iTCP", "-sTCP:LISTEN", "-a", "-c", scan_target]
    args.extend(extra_args)
    if restrict_to_current_user:
        args.extend(["-u", current_user()])
    return args


def discover(scan_target, restrict_to_current_user=True, strategies=STRATEGIES):
    """
    Return the processes named `scan_target` that listen on TCP ports.

    Never raises: lsof reporting no matches is an empty result, and any other
    failure moves on to the next strategy until none are left.
    """
    for strategy in strategies:
        argv = build_lsof_args(scan_target, restrict_to_current_user, strategy.extra_args)
        try:
            stdout = run_command(argv, timeout=strategy.timeout)
        except InvocationError as e:
            if e.returncode == LSOF_NO_MATCH_STATUS:
                return []
            debug_log(f"LSOF: {strategy.name} scan for {scan_target} failed: {e}")
            continue
        try:
            return strategy.parse(stdout, scan_target)
        except (ValueError, IndexError) as e:
            debug_log(f"LSOF: could not parse {strategy.name} output for {scan_target}: {e}")
            return []
    debug_log(f"LSOF: all scan strategies failed for {scan_target}")
    return []
