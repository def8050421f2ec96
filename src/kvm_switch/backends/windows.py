"""
Native Windows backend built on the Monitor Configuration API (dxva2.dll)
and EnumDisplayMonitors (user32.dll), called through ctypes.
"""
import ctypes
import logging
import sys
from typing import List

from kvm_switch.backends.base import DisplayBackend
from kvm_switch.errors import (
    DeviceEnumerationError,
    DeviceReadError,
    DeviceWriteError,
    UnsupportedPlatformError,
)

logger = logging.getLogger(__name__)

if sys.platform == "win32":
    from ctypes import wintypes

    class PHYSICAL_MONITOR(ctypes.Structure):
        _fields_ = [
            ("hPhysicalMonitor", wintypes.HANDLE),
            ("szPhysicalMonitorDescription", wintypes.WCHAR * 128),
        ]

    MonitorEnumProc = ctypes.WINFUNCTYPE(
        wintypes.BOOL, wintypes.HMONITOR, wintypes.HDC, ctypes.POINTER(wintypes.RECT), wintypes.LPARAM
    )


class PhysicalMonitorHandle:
    def __init__(self, handle, description: str):
        self.handle = handle
        self.description = description
        self.released = False

    def __repr__(self):
        return f"PhysicalMonitorHandle({self.description!r})"


class WindowsBackend(DisplayBackend):
    name = "windows"

    def __init__(self):
        if sys.platform != "win32":
            raise UnsupportedPlatformError(f"Windows backend is not available on {sys.platform}")
        self._user32 = ctypes.windll.user32
        self._dxva2 = ctypes.windll.dxva2

    def _enum_display_monitors(self) -> list:
        hmonitors = []

        def callback(hmonitor, hdc, lprect, lparam):
            hmonitors.append(hmonitor)
            return True

        # Keep a reference to the ctypes callback until the call returns
        enum_proc = MonitorEnumProc(callback)
        if not self._user32.EnumDisplayMonitors(None, None, enum_proc, 0):
            raise DeviceEnumerationError(f"EnumDisplayMonitors failed: {ctypes.FormatError()}")
        return hmonitors

    def _get_physical_monitors(self, hmonitor) -> List[PhysicalMonitorHandle]:
        count = wintypes.DWORD()
        if not self._dxva2.GetNumberOfPhysicalMonitorsFromHMONITOR(wintypes.HMONITOR(hmonitor), ctypes.byref(count)):
            raise DeviceEnumerationError(
                f"GetNumberOfPhysicalMonitorsFromHMONITOR failed: {ctypes.FormatError()}"
            )
        if count.value == 0:
            return []

        physical = (PHYSICAL_MONITOR * count.value)()
        if not self._dxva2.GetPhysicalMonitorsFromHMONITOR(wintypes.HMONITOR(hmonitor), count.value, physical):
            raise DeviceEnumerationError(f"GetPhysicalMonitorsFromHMONITOR failed: {ctypes.FormatError()}")

        return [
            PhysicalMonitorHandle(entry.hPhysicalMonitor, entry.szPhysicalMonitorDescription)
            for entry in physical
        ]

    def enumerate_handles(self) -> List[PhysicalMonitorHandle]:
        try:
            handles = []
            for hmonitor in self._enum_display_monitors():
                try:
                    handles.extend(self._get_physical_monitors(hmonitor))
                except DeviceEnumerationError as e:
                    # One display without physical monitors must not hide the others
                    logger.warning(f"Skipping display {hmonitor}: {e}")
            return handles
        except OSError as e:
            raise DeviceEnumerationError(f"Monitor enumeration failed: {e}") from e

    def read_capabilities(self, handle: PhysicalMonitorHandle) -> bytes:
        length = wintypes.DWORD()
        try:
            if not self._dxva2.GetCapabilitiesStringLength(wintypes.HANDLE(handle.handle), ctypes.byref(length)):
                raise DeviceReadError(f"GetCapabilitiesStringLength failed: {ctypes.FormatError()}")
            if length.value == 0:
                return b""

            buffer = (ctypes.c_char * length.value)()
            if not self._dxva2.CapabilitiesRequestAndCapabilitiesReply(wintypes.HANDLE(handle.handle), buffer, length):
                raise DeviceReadError(
                    f"CapabilitiesRequestAndCapabilitiesReply failed: {ctypes.FormatError()}"
                )
        except OSError as e:
            raise DeviceReadError(f"Capabilities request failed for {handle.description}: {e}") from e

        return bytes(buffer.raw)

    def write_feature(self, handle: PhysicalMonitorHandle, code: int, value: int) -> None:
        try:
            ok = self._dxva2.SetVCPFeature(wintypes.HANDLE(handle.handle), wintypes.BYTE(code), wintypes.DWORD(value))
        except OSError as e:
            raise DeviceWriteError(f"SetVCPFeature failed for {handle.description}: {e}") from e
        if not ok:
            raise DeviceWriteError(
                f"SetVCPFeature(0x{code:02X}, {value}) failed for {handle.description}: {ctypes.FormatError()}"
            )

    def release(self, handle: PhysicalMonitorHandle) -> None:
        if handle.released:
            return
        handle.released = True
        if not self._dxva2.DestroyPhysicalMonitor(wintypes.HANDLE(handle.handle)):
            logger.warning(f"DestroyPhysicalMonitor failed for {handle.description}: {ctypes.FormatError()}")
