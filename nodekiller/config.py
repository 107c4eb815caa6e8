import os
import threading
from pathlib import Path

import yaml

from .logs import debug_log

CONFIG_DIR = Path(os.environ.get("NODEKILLER_CONFIG_DIR", os.path.expanduser("~/.config/nodekiller")))
PREFS_PATH = CONFIG_DIR / "preferences.yaml"

PAUSED = "paused"
DEFAULT_REFRESH_MS = 5000
REFRESH_CHOICES = [1000, 5000, 10000, PAUSED]
DEFAULT_PROCESS_TYPES = {"node": True, "vite": True, "bun": True}

CONFIG = {
    "refresh_ms": DEFAULT_REFRESH_MS,
    "all_users": False,
    "process_types": dict(DEFAULT_PROCESS_TYPES),
    "vite_pattern": None,
}
CONFIG_LOCK = threading.RLock()


def parse_refresh(value):
    """Return `value` as a refresh setting, or None when it is not one."""
    if value == PAUSED:
        return PAUSED
    if isinstance(value, bool):
        return None
    try:
        num = int(value)
    except (TypeError, ValueError):
        return None
    return num if num > 0 else None


def sanitize_refresh(value):
    parsed = parse_refresh(value)
    return DEFAULT_REFRESH_MS if parsed is None else parsed


# --------------------------------------------------
# Load / save
# --------------------------------------------------
def _apply_env_defaults(saved):
    """Seed settings from the environment, only where the file has no value."""
    if "refresh_ms" not in saved:
        env_refresh = parse_refresh(os.environ.get("REFRESH_MS"))
        if env_refresh is not None:
            CONFIG["refresh_ms"] = env_refresh
    if "all_users" not in saved and os.environ.get("NODEKILLER_ALL_USERS") == "1":
        CONFIG["all_users"] = True


def init_config():
    """Read preferences.yaml into CONFIG, creating it on first run."""
    saved = {}
    with CONFIG_LOCK:
        if PREFS_PATH.is_file():
            try:
                with open(PREFS_PATH, "r") as f:
                    saved = yaml.safe_load(f) or {}
            except (OSError, yaml.YAMLError) as e:
                debug_log(f"CONFIG: Error loading: {e}")
                saved = {}
            if not isinstance(saved, dict):
                debug_log("CONFIG: Ignoring malformed preferences file")
                saved = {}
            types = saved.pop("process_types", None)
            CONFIG.update({k: v for k, v in saved.items() if k in CONFIG})
            if isinstance(types, dict):
                CONFIG["process_types"].update(
                    {k: bool(v) for k, v in types.items() if k in DEFAULT_PROCESS_TYPES}
                )
            _apply_env_defaults(saved)
        else:
            _apply_env_defaults(saved)
            save_config()
    return CONFIG


def save_config():
    with CONFIG_LOCK:
        try:
            PREFS_PATH.parent.mkdir(parents=True, exist_ok=True)
            with open(PREFS_PATH, "w") as f:
                yaml.safe_dump(CONFIG, f, default_flow_style=False)
        except OSError as e:
            debug_log(f"CONFIG: Error saving: {e}")


def _set(key, value):
    with CONFIG_LOCK:
        CONFIG[key] = value
        save_config()
    return value


# --------------------------------------------------
# Accessors
# --------------------------------------------------
def get_refresh_ms():
    """Refresh interval in ms, or PAUSED. Repairs an invalid stored value."""
    with CONFIG_LOCK:
        value = parse_refresh(CONFIG.get("refresh_ms"))
        if value is None:
            debug_log(f"CONFIG: Invalid refresh_ms {CONFIG.get('refresh_ms')!r}, resetting")
            return _set("refresh_ms", DEFAULT_REFRESH_MS)
        return value


def set_refresh_ms(value):
    return _set("refresh_ms", sanitize_refresh(value))


def get_all_users():
    return bool(CONFIG.get("all_users"))


def set_all_users(value):
    return _set("all_users", bool(value))


def get_process_types():
    with CONFIG_LOCK:
        types = dict(DEFAULT_PROCESS_TYPES)
        stored = CONFIG.get("process_types")
        if isinstance(stored, dict):
            types.update({k: bool(v) for k, v in stored.items() if k in types})
        return types


def set_process_type(name, enabled):
    if name not in DEFAULT_PROCESS_TYPES:
        raise ValueError(f"Unknown process type '{name}'. Known types: {list(DEFAULT_PROCESS_TYPES)}")
    with CONFIG_LOCK:
        types = get_process_types()
        types[name] = bool(enabled)
        return _set("process_types", types)


def set_process_types(types):
    """Replace the enabled map; unknown names are ignored, missing names disabled."""
    with CONFIG_LOCK:
        new_types = {name: bool(types.get(name, False)) for name in DEFAULT_PROCESS_TYPES}
        return _set("process_types", new_types)


def get_enabled_categories():
    return {name for name, enabled in get_process_types().items() if enabled}


def get_vite_pattern():
    pattern = CONFIG.get("vite_pattern")
    return pattern if isinstance(pattern, str) and pattern else None
