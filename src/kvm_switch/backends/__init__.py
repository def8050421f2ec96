import logging
import sys

from kvm_switch.backends.base import DisplayBackend
from kvm_switch.errors import UnsupportedPlatformError

logger = logging.getLogger(__name__)

BACKEND_NAMES = ("auto", "windows", "monitorcontrol")


def get_backend(name: str = "auto") -> DisplayBackend:
    """
    Picks the DDC/CI backend for this machine.
    "auto" uses the native API on Windows and monitorcontrol on Linux.
    """
    if name == "auto":
        if sys.platform == "win32":
            name = "windows"
        elif sys.platform.startswith("linux"):
            name = "monitorcontrol"
        else:
            raise UnsupportedPlatformError(f"No DDC/CI backend for platform {sys.platform}")

    logger.info(f"Using {name} display backend")

    if name == "windows":
        from kvm_switch.backends.windows import WindowsBackend
        return WindowsBackend()
    if name == "monitorcontrol":
        from kvm_switch.backends.monitorcontrol_backend import MonitorcontrolBackend
        return MonitorcontrolBackend()

    raise UnsupportedPlatformError(f"Unknown display backend '{name}'")
