"""
Category classification from a process's full command line.

Rules are an ordered tuple evaluated top to bottom, so a specific rule
(vite) must sit above the general rule for the same scan target (node).
"""
import re

import psutil

from .commands import run_command
from .errors import InvocationError, ProcessGone
from .logs import debug_log
from .models import CategoryRule

PS_TIMEOUT_SECONDS = 2

# "vite" as a whole token, optionally "vite.js", bounded by separators that
# show up in paths, quoting and npm scopes. "vitest" and "vite-node" do not match.
DEFAULT_VITE_PATTERN = r"""(?:^|[=/@\s"'`])vite(?:\.js)?(?=$|[\s"'`/:@])"""


def normalize_command_line(command_line):
    return (command_line or "").lower().replace("\\", "/")


def token_matcher(pattern):
    """Build a predicate that searches a normalized command line for `pattern`."""
    regex = re.compile(pattern)

    def matches(command_line):
        if not command_line:
            return False
        return bool(regex.search(normalize_command_line(command_line)))
    return matches


looks_like_vite = token_matcher(DEFAULT_VITE_PATTERN)


def build_rules(vite_pattern=None):
    """Return the ordered category rules, optionally with a custom vite pattern."""
    is_vite = token_matcher(vite_pattern) if vite_pattern else looks_like_vite
    return (
        CategoryRule("vite", "node", lambda cmd: "vite" if is_vite(cmd) else None),
        CategoryRule("node", "node", lambda cmd: "node"),
        CategoryRule("bun", "bun", lambda cmd: "bun"),
    )


RULES = build_rules()
CATEGORY_TAGS = tuple(rule.tag for rule in RULES)


# --------------------------------------------------
# Command line lookup
# --------------------------------------------------
def _cmdline_from_psutil(pid):
    try:
        return " ".join(psutil.Process(pid).cmdline())
    except psutil.NoSuchProcess as e:
        raise ProcessGone(pid) from e
    except psutil.AccessDenied:
        return None


def _cmdline_from_ps(pid):
    try:
        out = run_command(["ps", "-p", str(pid), "-o", "command="], timeout=PS_TIMEOUT_SECONDS)
    except InvocationError as e:
        debug_log(f"CLASSIFY: ps lookup for {pid} failed: {e}")
        return None
    return out.strip()


CMDLINE_FETCHERS = (_cmdline_from_psutil, _cmdline_from_ps)


def get_command_line(pid, fetchers=CMDLINE_FETCHERS):
    """Return the full command line of `pid`, or None if it cannot be read."""
    for fetch in fetchers:
        try:
            cmdline = fetch(pid)
        except ProcessGone:
            debug_log(f"CLASSIFY: PID {pid} exited before classification")
            return None
        if cmdline is not None:
            return cmdline
    return None


def classify_command_line(command_line, scan_target, rules=RULES):
    for rule in rules:
        if rule.scan_target != scan_target:
            continue
        tag = rule.classify(command_line)
        if tag:
            return tag
    return scan_target


def classify(pid, scan_target, rules=RULES, fetchers=CMDLINE_FETCHERS):
    """Resolve the category tag of `pid`; falls back to `scan_target`."""
    command_line = get_command_line(pid, fetchers)
    if command_line is None:
        return scan_target
    return classify_command_line(command_line, scan_target, rules)
