import logging
from typing import Callable

from pynput import keyboard

from kvm_switch.config_manager import ConfigManager
from kvm_switch.inputs import MonitorInput

logger = logging.getLogger(__name__)


class HotkeyManager:
    def __init__(self, config_path: str, switch_callback: Callable[[int, MonitorInput], None]):
        """
        switch_callback: function(monitor_id, monitor_input)
        """
        self.switch_callback = switch_callback
        self.config_path = config_path
        self.listener = None
        self.bindings = {}
        self.load_config()

    def load_config(self):
        self.bindings = ConfigManager.parse_hotkey_bindings(ConfigManager.load_hotkeys(self.config_path))

    def reload(self):
        self.stop()
        self.load_config()
        self.start()

    def start(self):
        if self.listener:
            self.listener.stop()

        hotkey_map = {}
        for keys, (monitor_id, monitor_input) in self.bindings.items():
            # capture closure
            def action_func(m=monitor_id, s=monitor_input):
                logger.info(f"Hotkey triggered! Switch monitor {m} -> {s}")
                self.switch_callback(m, s)

            hotkey_map[keys] = action_func

        if not hotkey_map:
            logger.warning("No valid hotkeys to bind.")
            return

        try:
            self.listener = keyboard.GlobalHotKeys(hotkey_map)
            self.listener.start()
            logger.info("GlobalHotKeys listener started.")
        except ValueError as e:
            logger.error(f"Failed to start hotkey listener: {e}")
            self.listener = None

    def stop(self):
        if self.listener:
            self.listener.stop()
            self.listener = None
