"""
MPRIS Indicator Configuration Loader
Loads values from settings.json via the settings manager.
"""
import os
import sys
from pathlib import Path
from dotenv import load_dotenv

from settings import settings

# ==========================================
# Path Configuration
# ==========================================
if getattr(sys, 'frozen', False):
    ROOT_DIR = Path(sys.executable).parent
else:
    ROOT_DIR = Path(__file__).parent

# ==========================================
# Version
# ==========================================
VERSION = "0.4.0"

env_file = ROOT_DIR / '.env'
if env_file.exists():
    load_dotenv(env_file)


# Helper to prefer Env Var > Settings JSON > Default
def conf(key, default=None):
    # 1. Check Env Var (Highest Priority - good for dev)
    env_val = os.getenv(key.upper().replace('.', '_'))
    if env_val is not None:
        return env_val

    # 2. Check Settings JSON
    json_val = settings.get(key)
    if json_val is not None:
        return json_val

    # 3. Default
    return default


def _as_bool(value) -> bool:
    # Env vars arrive as strings
    if isinstance(value, str):
        return value.lower() in ('true', '1', 'yes', 'on')
    return bool(value)


# ==========================================
# EXPORTED CONFIG DICTS
# ==========================================

DEBUG = {
    "log_file": conf("debug.log_file", "mpris_indicator.log"),
    "log_level": conf("debug.log_level", "INFO"),
    "log_to_console": _as_bool(conf("debug.log_to_console", True)),
    "log_detailed": _as_bool(conf("debug.log_detailed", False)),
    "log_rotation": {
        "max_bytes": int(conf("debug.log_rotation.max_bytes", 1048576)),
        "backup_count": int(conf("debug.log_rotation.backup_count", 10)),
    }
}

INDICATOR = {
    "minimize_on_right_click": _as_bool(conf("indicator.minimize_on_right_click", True)),
    "scroll_controls": _as_bool(conf("indicator.scroll_controls", True)),
}

COVER_ART = {
    "timeout": int(conf("cover_art.timeout", 5)),
    "max_size_kb": int(conf("cover_art.max_size_kb", 10240)),
}

PLAYERCTL = {
    "enabled": _as_bool(conf("playerctl.enabled", True)),
    "poll_interval": float(conf("playerctl.poll_interval", 1.0)),
    "timeout": int(conf("playerctl.timeout", 2)),
}
