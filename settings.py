"""
MPRIS Indicator Settings Manager
Handles dynamic configuration management using settings.json
"""

import json
import shutil
import os
import sys
import uuid
from pathlib import Path
from typing import Any, Dict, Optional
from dataclasses import dataclass
from logging_config import get_logger

logger = get_logger(__name__)

# Allow overriding the settings file location via environment variable
if getattr(sys, 'frozen', False):
    ROOT_DIR = Path(sys.executable).parent
else:
    ROOT_DIR = Path(__file__).parent

SETTINGS_FILE = Path(os.getenv("MPRIS_INDICATOR_SETTINGS_FILE", str(ROOT_DIR / "settings.json")))


@dataclass
class Setting:
    """Represents a single configurable setting"""
    name: str
    type: type
    default: Any
    requires_restart: bool = False
    category: Optional[str] = None
    description: Optional[str] = None
    min_val: Optional[float] = None
    max_val: Optional[float] = None

    def validate_and_convert(self, value: Any) -> Any:
        try:
            if self.type == bool and isinstance(value, str):
                return value.lower() in ('true', '1', 'yes', 'on')

            converted = self.type(value)
            if self.min_val is not None and converted < self.min_val:
                return self.default
            if self.max_val is not None and converted > self.max_val:
                return self.default
            return converted
        except (ValueError, TypeError):
            return self.default


class SettingsManager:
    def __init__(self, settings_file: Path = SETTINGS_FILE):
        self._settings_file = Path(settings_file)
        self._settings: Dict[str, Any] = {}

        # Define all available settings
        self._definitions = {
            # Debug
            "debug.log_file": Setting("Log File", str, "mpris_indicator.log", True, "Debug", "Log file name"),
            "debug.log_level": Setting("Log Level", str, "INFO", True, "Debug", "Console logging verbosity"),
            "debug.log_to_console": Setting("Log to Console", bool, True, True, "Debug", "Print logs to terminal"),
            "debug.log_detailed": Setting("Detailed Logging", bool, False, True, "Debug", "Write DEBUG records to the log file"),
            "debug.log_rotation.max_bytes": Setting("Max Log Size", int, 1048576, True, "Debug", "Max log file size (bytes)", min_val=1024),
            "debug.log_rotation.backup_count": Setting("Log Backups", int, 10, True, "Debug", "Number of backups to keep", min_val=0),

            # Indicator
            "indicator.minimize_on_right_click": Setting("Minimize on Right Click", bool, True, False, "Indicator", "Right click minimizes an already focused player"),
            "indicator.scroll_controls": Setting("Scroll Controls", bool, True, False, "Indicator", "Scroll up/down skips to previous/next track"),

            # Cover art
            "cover_art.timeout": Setting("Timeout", int, 5, False, "Cover Art", "Request timeout (s)", min_val=1, max_val=30),
            "cover_art.max_size_kb": Setting("Max Size", int, 10240, False, "Cover Art", "Largest cover image accepted (KB)", min_val=64),

            # playerctl source
            "playerctl.enabled": Setting("playerctl", bool, True, True, "Sources", "Discover players with playerctl"),
            "playerctl.poll_interval": Setting("Poll Interval", float, 1.0, False, "Sources", "Seconds between playerctl polls", min_val=0.2, max_val=30.0),
            "playerctl.timeout": Setting("Timeout", int, 2, False, "Sources", "playerctl command timeout (s)", min_val=1, max_val=10),
        }

        self.load_settings()

    def load_settings(self) -> None:
        """Load settings from JSON, fall back to defaults"""
        self._settings = {}

        # 1. Load defaults first
        for key, definition in self._definitions.items():
            self._settings[key] = definition.default

        # 2. Load from JSON if exists
        if self._settings_file.exists():
            try:
                with open(self._settings_file, 'r') as f:
                    saved = json.load(f)
                for key, val in saved.items():
                    if key in self._definitions:
                        self._settings[key] = self._definitions[key].validate_and_convert(val)
                    else:
                        # Unknown keys are kept so newer settings files survive a downgrade
                        self._settings[key] = val
            except (OSError, ValueError, AttributeError) as e:
                logger.error(f"Failed to load {self._settings_file.name}: {e} - resetting to defaults")
                backup_path = self._settings_file.with_suffix('.json.corrupted')
                try:
                    shutil.copy2(self._settings_file, backup_path)
                    logger.info(f"Backed up corrupted settings to {backup_path}")
                except OSError as backup_error:
                    logger.warning(f"Could not back up corrupted settings: {backup_error}")
                for key, definition in self._definitions.items():
                    self._settings[key] = definition.default
                self.save_to_config()
        else:
            logger.info(f"Creating default settings file at {self._settings_file}")
            self.save_to_config()

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a setting value.
        Priority:
        1. Loaded value (from JSON or Schema Default)
        2. Schema Default (if key in definitions but not in settings dict yet)
        3. Provided 'default' argument (if key unknown)
        """
        if key in self._settings:
            return self._settings[key]

        if key in self._definitions:
            return self._definitions[key].default

        return default

    def set(self, key: str, value: Any) -> bool:
        """Store a value in memory. Returns True when the change needs a restart."""
        if key not in self._definitions:
            return False

        setting = self._definitions[key]
        self._settings[key] = setting.validate_and_convert(value)
        return setting.requires_restart

    def save_to_config(self) -> None:
        """Save current memory settings to JSON file"""
        temp_path = self._settings_file.parent / f"settings_{uuid.uuid4().hex}.json.tmp"
        try:
            self._settings_file.parent.mkdir(parents=True, exist_ok=True)
            with open(temp_path, 'w') as f:
                json.dump(self._settings, f, indent=4, sort_keys=True)
            # Atomic replace (works on both Windows and Unix)
            os.replace(temp_path, self._settings_file)
        except OSError as e:
            logger.error(f"Failed to save settings: {e}")
            if temp_path.exists():
                try:
                    os.remove(temp_path)
                except OSError:
                    pass

    def get_all(self) -> Dict:
        """Return settings grouped by category"""
        result = {}
        for key, val in self._settings.items():
            defin = self._definitions.get(key)
            if not defin:
                continue

            cat = defin.category or "Misc"
            result.setdefault(cat, {})[key] = {
                "value": val,
                "name": defin.name,
                "description": defin.description,
                "type": defin.type.__name__,
                "requires_restart": defin.requires_restart,
                "min": defin.min_val,
                "max": defin.max_val,
            }
        return result

    def reset_to_defaults(self):
        if self._settings_file.exists():
            os.remove(self._settings_file)
        self.load_settings()


settings = SettingsManager()
