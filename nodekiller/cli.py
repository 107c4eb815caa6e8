import argparse
import os
import sys
import threading

from . import config
from .logs import debug_log
from .scheduler import RefreshScheduler

_print_lock = threading.Lock()

# Keep in step with nodekiller/VERSION
FALLBACK_VERSION = "1.0.0"

KILL_ALL_DETAIL = "Each listed process will receive SIGTERM. If it survives, SIGKILL is sent next."

HELP_TEXT = """Commands:
  r               refresh now
  k <pid>         kill a process
  a               kill all listed processes
  p <ms|paused>   set refresh interval
  u               toggle all users / only mine
  q               quit"""


def _get_app_version():
    try:
        v_file = os.path.join(os.path.dirname(__file__), "VERSION")
        with open(v_file) as f:
            return f.read().strip()
    except OSError:
        return FALLBACK_VERSION


def _echo(msg="", out=None):
    with _print_lock:
        print(msg, file=out or sys.stdout, flush=True)


# --------------------------------------------------
# Console presentation
# --------------------------------------------------
def format_ports(ports):
    if len(ports) == 1:
        return f" (port {ports[0]})"
    if len(ports) > 1:
        return f" (ports {', '.join(str(p) for p in ports)})"
    return ""


def format_process_label(proc):
    label = f"{proc.category_tag or 'node'} {proc.process_id}{format_ports(proc.ports)}"
    if proc.owning_user:
        label += f" [{proc.owning_user}]"
    return label


def render_snapshot(procs, out=None):
    lines = [f"Node Killer - active processes: {len(procs)}"]
    lines.extend(f"  {format_process_label(p)}" for p in procs)
    _echo("\n".join(lines), out)


def notify(title, body, out=None):
    debug_log(f"NOTIFY: {title}: {body}")
    _echo(f"{title}\n{body}", out)


def confirm(question, detail=None, stdin=None):
    stdin = stdin or sys.stdin
    _echo(question if not detail else f"{question}\n{detail}")
    _echo("[y/N] ")
    answer = stdin.readline()
    return answer.strip().lower() in ("y", "yes")


# --------------------------------------------------
# Arguments
# --------------------------------------------------
def _parse_types(value):
    names = [n.strip() for n in value.split(",") if n.strip()]
    unknown = [n for n in names if n not in config.DEFAULT_PROCESS_TYPES]
    if unknown or not names:
        raise argparse.ArgumentTypeError(
            f"unknown process type(s) {unknown}; choose from {list(config.DEFAULT_PROCESS_TYPES)}"
        )
    return names


def _parse_interval(value):
    parsed = config.parse_refresh(value)
    if parsed is None:
        raise argparse.ArgumentTypeError("interval must be a positive number of ms or 'paused'")
    return parsed


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog="nodekiller",
        description="Find and kill local node, vite and bun processes listening on TCP ports",
    )
    parser.add_argument("--version", action="version", version=f"nodekiller {_get_app_version()}")
    action = parser.add_mutually_exclusive_group()
    action.add_argument("--list", action="store_true", help="Print listening processes once and exit")
    action.add_argument("--kill", type=int, metavar="PID", help="Terminate one process and exit")
    action.add_argument("--kill-all", action="store_true", help="Terminate every listed process and exit")
    parser.add_argument("-y", "--yes", action="store_true", help="Do not ask before --kill-all")
    parser.add_argument("--interval", type=_parse_interval, metavar="MS|paused",
                        help="Refresh interval in milliseconds, or 'paused' (saved)")
    users = parser.add_mutually_exclusive_group()
    users.add_argument("--all-users", dest="all_users", action="store_true", default=None,
                       help="Include processes of every user (saved)")
    users.add_argument("--mine", dest="all_users", action="store_false", default=None,
                       help="Only show processes of the current user (saved)")
    parser.add_argument("--types", type=_parse_types, metavar="node,vite,bun",
                        help="Process types to track (saved)")
    return parser.parse_args(argv)


def apply_preference_args(args):
    if args.interval is not None:
        config.set_refresh_ms(args.interval)
    if args.all_users is not None:
        config.set_all_users(args.all_users)
    if args.types is not None:
        config.set_process_types({name: True for name in args.types})


# --------------------------------------------------
# Modes
# --------------------------------------------------
def handle_command(line, scheduler, stdin=None):
    """Run one watch-mode command. Returns False when the user asked to quit."""
    parts = line.split()
    if not parts:
        return True
    cmd, rest = parts[0].lower(), parts[1:]
    if cmd in ("q", "quit", "exit"):
        return False
    if cmd in ("r", "refresh"):
        scheduler.refresh_now()
    elif cmd in ("k", "kill"):
        if not rest or not rest[0].isdigit():
            _echo("Usage: k <pid>")
        else:
            scheduler.kill(int(rest[0]))
    elif cmd in ("a", "all"):
        count = len(scheduler.latest)
        if count == 0:
            _echo("No processes to kill.")
        elif confirm(_kill_question(count), KILL_ALL_DETAIL, stdin):
            scheduler.kill_all()
    elif cmd in ("p", "interval"):
        value = config.parse_refresh(rest[0]) if rest else None
        if value is None:
            _echo("Usage: p <ms|paused>")
        else:
            config.set_refresh_ms(value)
            scheduler.refresh_now()
    elif cmd in ("u", "users"):
        all_users = config.set_all_users(not config.get_all_users())
        _echo("Showing processes of all users." if all_users else "Showing only your processes.")
        scheduler.refresh_now()
    else:
        _echo(HELP_TEXT)
    return True


def _kill_question(count):
    return "Kill 1 process?" if count == 1 else f"Kill {count} processes?"


def run_watch(scheduler, stdin=None):
    stdin = stdin or sys.stdin
    _echo("Type 'h' for help.")
    scheduler.start()
    try:
        for line in stdin:
            if not handle_command(line, scheduler, stdin):
                break
    except KeyboardInterrupt:
        pass
    finally:
        scheduler.shutdown()
        debug_log("CLI: watch mode stopped")


def run_once(args, stdin=None):
    """--list / --kill / --kill-all: a scheduler that never arms its timer."""
    scheduler = RefreshScheduler(
        publish=render_snapshot,
        notify=notify,
        get_interval=lambda: config.PAUSED,
    )
    if args.kill is not None:
        outcome = scheduler.kill(args.kill)
        return 0 if outcome.succeeded else 1

    scheduler.trigger_refresh()
    if not args.kill_all:
        return 0
    count = len(scheduler.latest)
    if count == 0:
        return 0
    if not args.yes and not confirm(_kill_question(count), KILL_ALL_DETAIL, stdin):
        _echo("Aborted.")
        return 1
    result = scheduler.kill_all()
    return 0 if result.failed == 0 else 1


def cli_entry(argv=None):
    """terminal command 'nodekiller' entry point"""
    config.init_config()
    args = parse_args(argv)
    apply_preference_args(args)

    if args.list or args.kill is not None or args.kill_all:
        sys.exit(run_once(args))

    scheduler = RefreshScheduler(publish=render_snapshot, notify=notify)
    run_watch(scheduler)
