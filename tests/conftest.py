"""Shared pytest fixtures: a scripted display backend that never touches hardware."""

import sys
import threading
from pathlib import Path

import pytest

# Ensure the src directory is importable without installing
SRC_ROOT = Path(__file__).parent.parent / "src"
if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))

from kvm_switch.backends.base import DisplayBackend  # noqa: E402
from kvm_switch.errors import DeviceReadError, DeviceWriteError  # noqa: E402
from kvm_switch.monitor_utils import MonitorManager  # noqa: E402

DELL_CAPS = (
    "(prot(monitor)type(LCD)model(U2720Q)cmds(01 02 03 07 0C E3 F3)"
    "vcp(02 04 05 08 10 12 14(05 08 0B) 60(11 0F) D6(01 04 05) DC(00 02 03))mccs_ver(2.1))"
)
ACER_CAPS = "(prot(monitor)type(lcd)model(XB271HU)cmds(01 02 03)vcp(02 10 12 60(01 03 11)))"


class FakeHandle:
    def __init__(self, caps=None, read_error=None, write_error=None):
        self.caps = caps
        self.read_error = read_error
        self.write_error = write_error
        self.reads = 0
        self.released = False


class FakeBackend(DisplayBackend):
    name = "fake"

    def __init__(self, handles=None):
        self.handles = list(handles or [])
        self.writes = []
        self.enumerations = 0
        self.write_hook = None
        self._lock = threading.Lock()

    def enumerate_handles(self):
        self.enumerations += 1
        for handle in self.handles:
            handle.released = False
        return list(self.handles)

    def read_capabilities(self, handle):
        handle.reads += 1
        if handle.read_error is not None:
            raise DeviceReadError(handle.read_error)
        return handle.caps

    def write_feature(self, handle, code, value):
        if self.write_hook is not None:
            self.write_hook(handle, code, value)
        if handle.write_error is not None:
            raise DeviceWriteError(handle.write_error)
        with self._lock:
            self.writes.append((handle, code, value))

    def release(self, handle):
        handle.released = True


class RecordingSink:
    def __init__(self):
        self.events = []
        self.cond = threading.Condition()

    def publish(self, event_name, payload):
        with self.cond:
            self.events.append((event_name, payload))
            self.cond.notify_all()

    def payloads(self, event_name):
        return [payload for name, payload in self.events if name == event_name]

    def wait_for(self, event_name, count=1, timeout=5.0):
        with self.cond:
            return self.cond.wait_for(lambda: len(self.payloads(event_name)) >= count, timeout)


@pytest.fixture(autouse=True)
def no_retry_delay(monkeypatch):
    monkeypatch.setattr(MonitorManager, "CAPABILITY_RETRY_DELAY", 0)


@pytest.fixture()
def sink():
    return RecordingSink()
