import contextlib
import logging
import threading
import time
from typing import List, Optional, Tuple, Union

from kvm_switch.backends import DisplayBackend
from kvm_switch.capabilities import MonitorCapabilities
from kvm_switch.errors import (
    CapabilityDecodeError,
    DeviceReadError,
    DeviceWriteError,
    HandleContentionError,
    MonitorError,
)
from kvm_switch.inputs import INPUT_SOURCE_VCP_CODE, MonitorInput, get_all_inputs_from_capabilities

logger = logging.getLogger(__name__)

GENERIC_MODEL_NAME = "Generic Display"


class Monitor:
    """
    A discovered monitor. Owns its native handle until close() is called.
    Ids follow enumeration order and are only meaningful within one scan.
    """

    def __init__(
        self,
        id: int,
        capabilities: Optional[MonitorCapabilities],
        inputs: List[MonitorInput],
        handle,
        backend: DisplayBackend,
    ):
        self.id = id
        self.capabilities = capabilities
        self._inputs = tuple(inputs)
        self._handle = handle
        self._backend = backend
        self._lock = threading.Lock()
        self._closed = False

    def __repr__(self):
        return f"Monitor(id={self.id}, model={self.model!r}, inputs={[str(i) for i in self._inputs]})"

    @property
    def model(self) -> str:
        if self.capabilities and self.capabilities.display_model:
            return self.capabilities.display_model
        return GENERIC_MODEL_NAME

    @property
    def inputs(self) -> Tuple[MonitorInput, ...]:
        return self._inputs

    @contextlib.contextmanager
    def exclusive_handle(self):
        """Borrows the native handle; fails instead of waiting if it is in use."""
        if not self._lock.acquire(blocking=False):
            raise HandleContentionError(f"Handle of monitor {self.id} is already in use")
        try:
            if self._closed:
                raise DeviceWriteError(f"Monitor {self.id} has been released")
            yield self._handle
        finally:
            self._lock.release()

    def write_feature(self, code: int, value: int):
        with self.exclusive_handle() as handle:
            self._backend.write_feature(handle, code, value)

    def close(self):
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._backend.release(self._handle)


class MonitorManager:
    CAPABILITY_READ_ATTEMPTS = 3
    CAPABILITY_RETRY_DELAY = 0.2

    @staticmethod
    def get_all_monitors(backend: DisplayBackend) -> List[Monitor]:
        """
        Scans for connected monitors and parses their capabilities.
        Monitors whose capability string cannot be read or parsed are skipped.

        Raises:
            DeviceEnumerationError: the platform could not list monitors at all.
        """
        monitors = []
        handles = backend.enumerate_handles()
        logger.info(f"Found {len(handles)} physical monitor handles")

        for i, handle in enumerate(handles):
            try:
                cap_string = MonitorManager._read_cap_string(backend, handle)
                logger.debug(f"Monitor {i} capabilities: {cap_string}")
                capabilities = MonitorCapabilities.from_cap_string(cap_string)
                inputs = get_all_inputs_from_capabilities(capabilities)
            except MonitorError as e:
                logger.warning(f"Skipping monitor {i}: {e}")
                backend.release(handle)
                continue

            monitor = Monitor(i, capabilities, inputs, handle, backend)
            logger.info(f"Discovered {monitor}")
            monitors.append(monitor)

        return monitors

    @staticmethod
    def _read_cap_string(backend: DisplayBackend, handle) -> str:
        # Retry loop for capabilities
        for attempt in range(MonitorManager.CAPABILITY_READ_ATTEMPTS):
            try:
                raw = backend.read_capabilities(handle)
                break
            except DeviceReadError as e:
                if attempt == MonitorManager.CAPABILITY_READ_ATTEMPTS - 1:
                    raise
                logger.debug(f"Capabilities read failed (attempt {attempt + 1}): {e}")
                time.sleep(MonitorManager.CAPABILITY_RETRY_DELAY)

        cap_string = MonitorManager.decode_cap_string(raw)
        if not cap_string:
            raise DeviceReadError("monitor returned an empty capability string")
        return cap_string

    @staticmethod
    def decode_cap_string(raw: Union[bytes, str]) -> str:
        """Strips trailing NUL padding and decodes the reply as UTF-8."""
        if isinstance(raw, str):
            return raw.rstrip("\x00")
        try:
            return raw.rstrip(b"\x00").decode("utf-8")
        except UnicodeDecodeError as e:
            raise CapabilityDecodeError(f"capability string is not valid text: {e}") from e

    @staticmethod
    def get_inputs(monitor: Monitor) -> List[MonitorInput]:
        return list(monitor.inputs)

    @staticmethod
    def set_input(monitor: Monitor, monitor_input: MonitorInput):
        """
        Switches the monitor to the given input.

        Raises:
            DeviceWriteError: the write failed or the input has no protocol code.
            HandleContentionError: another operation holds the monitor handle.
        """
        if monitor_input.code is None:
            raise DeviceWriteError(f"Input '{monitor_input}' has no VCP value")

        logger.info(f"Setting monitor {monitor.id} input to {monitor_input} (0x{monitor_input.code:02X})")
        monitor.write_feature(INPUT_SOURCE_VCP_CODE, monitor_input.code)
