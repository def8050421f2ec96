import contextlib
import logging
from typing import List

from monitorcontrol import Monitor, VCPError, get_monitors

from kvm_switch.backends.base import DisplayBackend
from kvm_switch.errors import CapabilityDecodeError, DeviceEnumerationError, DeviceReadError, DeviceWriteError

logger = logging.getLogger(__name__)

# Fragments of the errors a monitor raises when it drops off the bus right
# after accepting an input switch
DISCONNECT_MESSAGES = ("PDO", "command field", "명령 필드", "비동기적으로 삭제")


class MonitorHandle:
    """A monitorcontrol Monitor kept open for the lifetime of the handle."""

    def __init__(self, monitor: Monitor):
        self.monitor = monitor
        self._stack = contextlib.ExitStack()
        self._stack.enter_context(monitor)

    def close(self):
        self._stack.close()


class MonitorcontrolBackend(DisplayBackend):
    name = "monitorcontrol"

    def enumerate_handles(self) -> List[MonitorHandle]:
        try:
            monitors = get_monitors()
        except (VCPError, OSError) as e:
            raise DeviceEnumerationError(f"Failed to enumerate monitors: {e}") from e

        handles = []
        for i, monitor in enumerate(monitors):
            try:
                handles.append(MonitorHandle(monitor))
            except (VCPError, OSError) as e:
                logger.warning(f"Could not open monitor {i}: {e}")
        return handles

    def read_capabilities(self, handle: MonitorHandle) -> str:
        try:
            return handle.monitor.vcp.get_vcp_capabilities()
        except (VCPError, OSError) as e:
            raise DeviceReadError(f"Capabilities request failed: {e}") from e
        except UnicodeDecodeError as e:
            # monitorcontrol decodes each chunk as ASCII; garbled replies land here
            raise CapabilityDecodeError(f"capability string is not valid text: {e}") from e

    def write_feature(self, handle: MonitorHandle, code: int, value: int) -> None:
        try:
            handle.monitor.vcp.set_vcp_feature(code, value)
        except (VCPError, OSError) as e:
            msg = str(e)
            if any(fragment in msg for fragment in DISCONNECT_MESSAGES):
                # Expected when the monitor switches away from this host
                logger.info(f"Monitor accepted VCP 0x{code:02X} but disconnected: {e}")
                return
            raise DeviceWriteError(f"Failed to set VCP 0x{code:02X} to {value}: {e}") from e

    def release(self, handle: MonitorHandle) -> None:
        try:
            handle.close()
        except (VCPError, OSError) as e:
            logger.warning(f"Failed to release monitor handle: {e}")
