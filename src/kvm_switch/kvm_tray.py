import logging
import threading
from typing import List

import pystray
from PIL import Image, ImageDraw
from pystray import Menu
from pystray import MenuItem as Item

from kvm_switch.config_manager import Settings
from kvm_switch.errors import RequestRejectedError
from kvm_switch.hotkey_manager import HotkeyManager
from kvm_switch.inputs import MonitorInput
from kvm_switch.monitor_service import (
    MONITOR_INFO_EVENT,
    SWITCH_FAILED_EVENT,
    MonitorService,
    MonitorSummary,
)

logger = logging.getLogger(__name__)


class KVMApp:
    """System tray front-end. Receives monitor lists from the MonitorService."""

    def __init__(self, settings: Settings, backend):
        self.settings = settings
        self.monitors: List[MonitorSummary] = []
        self.icon = None
        self.scanning = True
        self._exit_event = threading.Event()

        self.service = MonitorService(self, backend, queue_capacity=settings.queue_capacity, scan_on_start=False)
        self.hotkey_mgr = HotkeyManager(settings.hotkeys_file, self.on_switch_input)

    # NotificationSink
    def publish(self, event_name, payload):
        if event_name == MONITOR_INFO_EVENT:
            self.monitors = list(payload)
            self.scanning = False
            self._update_menu()
        elif event_name == SWITCH_FAILED_EVENT:
            if self.icon:
                self.icon.notify(payload.reason, title=f"Could not switch to {payload.input}")
        else:
            logger.debug(f"Ignoring event {event_name}")

    def create_image(self):
        # Create a simple icon (Monitor shape)
        width = 64
        height = 64
        color1 = (0, 0, 0)
        color2 = (255, 255, 255)

        image = Image.new('RGB', (width, height), color2)
        dc = ImageDraw.Draw(image)

        # Draw screen
        dc.rectangle([8, 8, 56, 40], fill=color1)
        dc.rectangle([12, 12, 52, 36], fill=color2)

        # Draw stand
        dc.rectangle([28, 40, 36, 50], fill=color1)
        dc.rectangle([20, 50, 44, 54], fill=color1)

        return image

    def _update_menu(self):
        if self.icon:
            self.icon.menu = self.build_menu()

    def _rescan_loop(self):
        interval = self.settings.rescan_interval
        while not self._exit_event.wait(interval):
            self._request_refresh()

    def _request_refresh(self):
        try:
            self.service.request_refresh()
        except RequestRejectedError as e:
            logger.warning(f"Refresh not queued: {e}")

    def on_switch_input(self, monitor_id: int, monitor_input: MonitorInput):
        logger.info(f"Switching monitor {monitor_id} to {monitor_input}...")
        try:
            self.service.request_switch(monitor_id, monitor_input)
        except RequestRejectedError as e:
            logger.warning(f"Switch not queued: {e}")

    def on_refresh(self, icon, item):
        self.scanning = True
        self._update_menu()
        self._request_refresh()

    def on_reload_hotkeys(self, icon, item):
        self.hotkey_mgr.reload()
        logger.info("Hotkeys reloaded.")

    def on_exit(self, icon, item):
        self._exit_event.set()
        self.hotkey_mgr.stop()
        icon.stop()

    def build_menu(self):
        items = []

        if self.scanning:
            items.append(Item("Scanning monitors...", lambda: None, enabled=False))
        elif not self.monitors:
            items.append(Item("No monitors found", lambda: None, enabled=False))
        else:
            for mon in self.monitors:
                def make_callback(m, v):
                    return lambda icon, item: self.on_switch_input(m, v)

                input_items = [
                    Item(str(monitor_input), make_callback(mon.id, monitor_input))
                    for monitor_input in mon.inputs
                    if monitor_input.code is not None
                ]
                if not input_items:
                    input_items.append(Item("No switchable inputs", lambda: None, enabled=False))

                items.append(Item(f"{mon.model} #{mon.id + 1}", Menu(*input_items)))

        items.append(Menu.SEPARATOR)
        items.append(Item("Reload Hotkeys", self.on_reload_hotkeys))
        items.append(Item("Rescan Monitors", self.on_refresh))
        items.append(Item("Exit", self.on_exit))

        return Menu(*items)

    def run(self):
        self.service.start()
        # The first list arrives through publish()
        self._request_refresh()
        self.hotkey_mgr.start()

        if self.settings.rescan_interval > 0:
            threading.Thread(target=self._rescan_loop, daemon=True).start()

        logger.info("Creating icon...")
        self.icon = pystray.Icon("KVM Switcher", self.create_image(), "KVM Switcher", menu=self.build_menu())
        self.icon.run()
        logger.info("Icon run loop ended.")

        self._exit_event.set()
        self.service.stop()
