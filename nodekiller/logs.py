import os
import time

# Debug logging
DEBUG_LOG_PATH = os.environ.get(
    "NODEKILLER_DEBUG_LOG",
    os.path.expanduser("~/.config/nodekiller/debug.log"),
)


def debug_log(msg):
    """Write a timestamped message to the debug log."""
    try:
        os.makedirs(os.path.dirname(DEBUG_LOG_PATH) or ".", exist_ok=True)
        with open(DEBUG_LOG_PATH, "a") as f:
            f.write(f"[{time.strftime('%Y-%m-%d %H:%M:%S')}] {msg}\n")
    except OSError:
        pass
