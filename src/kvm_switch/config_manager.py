import json
import logging
import os
from dataclasses import asdict, dataclass, fields
from typing import Dict, Optional, Tuple

from kvm_switch.backends import BACKEND_NAMES
from kvm_switch.inputs import MonitorInput

logger = logging.getLogger(__name__)

# (monitor id, input) a hotkey switches to
HotkeyAction = Tuple[int, MonitorInput]


@dataclass
class Settings:
    log_file: str = "kvm.log"
    log_level: str = "INFO"
    backend: str = "auto"
    rescan_interval: int = 30
    queue_capacity: int = 8
    hotkeys_file: str = "hotkeys.json"


class ConfigManager:
    SETTINGS_FILE = "settings.json"

    DEFAULT_HOTKEYS = {
        "<ctrl>+<alt>+1": {"monitor_id": 0, "input": "HDMI 1"},
        "<ctrl>+<alt>+2": {"monitor_id": 0, "input": "DP 1"},
    }

    @staticmethod
    def settings_path(base_dir: Optional[str] = None) -> str:
        return os.path.join(base_dir or os.getcwd(), ConfigManager.SETTINGS_FILE)

    @staticmethod
    def load_settings(path: Optional[str] = None) -> Settings:
        """
        Reads settings.json. A missing or broken file yields the defaults;
        bad values fall back to their default one by one.
        """
        path = path or ConfigManager.settings_path()
        settings = Settings()
        if not os.path.exists(path):
            return settings

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to load settings from {path}: {e}")
            return settings

        if not isinstance(data, dict):
            logger.error(f"Settings file {path} must contain a JSON object")
            return settings

        for setting in fields(Settings):
            if setting.name not in data:
                continue
            value = data[setting.name]
            default = getattr(settings, setting.name)
            # bool is an int subclass; never accept it for numeric settings
            if type(value) is not type(default):
                logger.warning(f"Ignoring setting '{setting.name}': expected {type(default).__name__}, got {value!r}")
                continue
            setattr(settings, setting.name, value)

        if settings.backend not in BACKEND_NAMES:
            logger.warning(f"Unknown backend '{settings.backend}', using auto")
            settings.backend = "auto"
        if settings.rescan_interval < 0:
            settings.rescan_interval = 0
        if settings.queue_capacity < 1:
            logger.warning(f"queue_capacity must be positive, using {Settings.queue_capacity}")
            settings.queue_capacity = Settings.queue_capacity

        return settings

    @staticmethod
    def save_settings(settings: Settings, path: Optional[str] = None):
        path = path or ConfigManager.settings_path()
        with open(path, "w", encoding="utf-8") as f:
            json.dump(asdict(settings), f, indent=4)

    @staticmethod
    def load_hotkeys(path: str) -> Dict[str, dict]:
        if not os.path.exists(path):
            ConfigManager.create_default_hotkeys(path)

        try:
            with open(path, "r", encoding="utf-8") as f:
                config = json.load(f)
            logger.info(f"Loaded hotkeys from {path}")
        except (OSError, ValueError) as e:
            logger.error(f"Failed to load hotkeys: {e}")
            return {}

        if not isinstance(config, dict):
            logger.error(f"Hotkeys file {path} must contain a JSON object")
            return {}
        return config

    @staticmethod
    def create_default_hotkeys(path: str):
        try:
            with open(path, "w", encoding="utf-8") as f:
                json.dump(ConfigManager.DEFAULT_HOTKEYS, f, indent=4)
            logger.info(f"Created default {os.path.basename(path)}")
        except OSError as e:
            logger.error(f"Failed to create default hotkeys: {e}")

    @staticmethod
    def parse_hotkey_bindings(config: Dict[str, dict]) -> Dict[str, HotkeyAction]:
        """Validates hotkeys.json entries; invalid ones are skipped with a warning."""
        bindings = {}
        for keys, action in config.items():
            if not isinstance(action, dict) or "monitor_id" not in action or "input" not in action:
                logger.warning(f"Hotkey '{keys}' needs 'monitor_id' and 'input'")
                continue

            try:
                monitor_id = int(action["monitor_id"])
            except (TypeError, ValueError):
                logger.warning(f"Invalid monitor_id {action['monitor_id']!r} for hotkey '{keys}'")
                continue

            raw_input = action["input"]
            monitor_input = MonitorInput.from_name(raw_input) if isinstance(raw_input, str) else None
            if monitor_input is None or monitor_input.code is None:
                logger.warning(f"Invalid input '{raw_input}' for hotkey '{keys}'")
                continue

            bindings[keys] = (monitor_id, monitor_input)
        return bindings
