import pytest

from kvm_switch.errors import (
    CapabilityDecodeError,
    DeviceEnumerationError,
    DeviceWriteError,
    HandleContentionError,
)
from kvm_switch.inputs import INPUT_SOURCE_VCP_CODE, MonitorInput
from kvm_switch.monitor_utils import GENERIC_MODEL_NAME, MonitorManager

from conftest import ACER_CAPS, DELL_CAPS, FakeBackend, FakeHandle


def test_discovers_monitors_with_inputs():
    backend = FakeBackend([FakeHandle(DELL_CAPS.encode()), FakeHandle(ACER_CAPS)])
    monitors = MonitorManager.get_all_monitors(backend)

    assert [m.id for m in monitors] == [0, 1]
    assert monitors[0].model == "U2720Q"
    assert monitors[0].inputs == (MonitorInput.HDMI_1, MonitorInput.DISPLAY_PORT_1)
    assert monitors[1].inputs == (MonitorInput.ANALOG_VIDEO_1, MonitorInput.DVI_1, MonitorInput.HDMI_1)


def test_bad_monitor_does_not_abort_discovery():
    good = FakeHandle(b"(model(A)vcp(60(11 0F)))")
    empty = FakeHandle(b"")
    backend = FakeBackend([good, empty])

    monitors = MonitorManager.get_all_monitors(backend)

    assert len(monitors) == 1
    assert monitors[0].inputs == (MonitorInput.HDMI_1, MonitorInput.DISPLAY_PORT_1)
    assert empty.released
    assert not good.released


@pytest.mark.parametrize("handle", [
    FakeHandle(read_error="no reply"),
    FakeHandle(b"\xff\xfe(model(A))"),
    FakeHandle(b"(prot(monitor)"),
    FakeHandle(b"\x00\x00\x00"),
])
def test_unreadable_monitors_are_skipped(handle):
    good = FakeHandle(ACER_CAPS.encode())
    backend = FakeBackend([handle, good])

    monitors = MonitorManager.get_all_monitors(backend)

    assert [m.id for m in monitors] == [1]
    assert handle.released


def test_capability_read_is_retried():
    handle = FakeHandle(read_error="busy")
    MonitorManager.get_all_monitors(FakeBackend([handle]))
    assert handle.reads == MonitorManager.CAPABILITY_READ_ATTEMPTS


def test_enumeration_failure_propagates():
    class BrokenBackend(FakeBackend):
        def enumerate_handles(self):
            raise DeviceEnumerationError("no i2c bus")

    with pytest.raises(DeviceEnumerationError):
        MonitorManager.get_all_monitors(BrokenBackend())


def test_decode_strips_nul_padding():
    assert MonitorManager.decode_cap_string(b"(model(A))\x00\x00") == "(model(A))"
    assert MonitorManager.decode_cap_string("(model(A))\x00") == "(model(A))"


def test_decode_keeps_leading_nul():
    assert MonitorManager.decode_cap_string(b"\x00(model(A))\x00") == "\x00(model(A))"
    assert MonitorManager.decode_cap_string("\x00(model(A))") == "\x00(model(A))"


def test_decode_rejects_invalid_utf8():
    with pytest.raises(CapabilityDecodeError):
        MonitorManager.decode_cap_string(b"(model(\xc3))")


def test_model_falls_back_to_generic_name():
    monitors = MonitorManager.get_all_monitors(FakeBackend([FakeHandle(b"(vcp(60(11)))")]))
    assert monitors[0].model == GENERIC_MODEL_NAME


def test_get_inputs_is_idempotent():
    backend = FakeBackend([FakeHandle(DELL_CAPS)])
    monitor = MonitorManager.get_all_monitors(backend)[0]
    handle = backend.handles[0]

    first = MonitorManager.get_inputs(monitor)
    second = MonitorManager.get_inputs(monitor)

    assert first == second == [MonitorInput.HDMI_1, MonitorInput.DISPLAY_PORT_1]
    assert handle.reads == 1


def test_set_input_writes_input_source():
    backend = FakeBackend([FakeHandle(DELL_CAPS)])
    monitor = MonitorManager.get_all_monitors(backend)[0]

    MonitorManager.set_input(monitor, MonitorInput.DISPLAY_PORT_1)

    assert backend.writes == [(backend.handles[0], INPUT_SOURCE_VCP_CODE, 0x0F)]


def test_set_input_rejects_inputs_without_code():
    backend = FakeBackend([FakeHandle(DELL_CAPS)])
    monitor = MonitorManager.get_all_monitors(backend)[0]

    with pytest.raises(DeviceWriteError):
        MonitorManager.set_input(monitor, MonitorInput.UNKNOWN)
    assert backend.writes == []


def test_set_input_fails_when_handle_is_borrowed():
    backend = FakeBackend([FakeHandle(DELL_CAPS)])
    monitor = MonitorManager.get_all_monitors(backend)[0]

    with monitor.exclusive_handle():
        with pytest.raises(HandleContentionError):
            MonitorManager.set_input(monitor, MonitorInput.HDMI_1)
    assert backend.writes == []


def test_native_write_failure_raises():
    backend = FakeBackend([FakeHandle(DELL_CAPS, write_error="NACK")])
    monitor = MonitorManager.get_all_monitors(backend)[0]

    with pytest.raises(DeviceWriteError):
        MonitorManager.set_input(monitor, MonitorInput.HDMI_1)


def test_closed_monitor_releases_handle_once():
    backend = FakeBackend([FakeHandle(DELL_CAPS)])
    monitor = MonitorManager.get_all_monitors(backend)[0]

    monitor.close()
    monitor.close()

    assert backend.handles[0].released
    with pytest.raises(DeviceWriteError):
        MonitorManager.set_input(monitor, MonitorInput.HDMI_1)
