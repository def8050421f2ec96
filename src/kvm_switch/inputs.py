import logging
from enum import Enum
from typing import Dict, List, Optional

from kvm_switch.capabilities import MonitorCapabilities

logger = logging.getLogger(__name__)

# VCP Code 0x60 Input Source
# Based on VESA Monitor Control Command Set (MCCS)
INPUT_SOURCE_VCP_CODE = 0x60


class MonitorInput(Enum):
    ANALOG_VIDEO_1 = (0x01, "Analog Video 1")
    ANALOG_VIDEO_2 = (0x02, "Analog Video 2")
    DVI_1 = (0x03, "DVI 1")
    DVI_2 = (0x04, "DVI 2")
    COMPOSITE_VIDEO_1 = (0x05, "Composite Video 1")
    COMPOSITE_VIDEO_2 = (0x06, "Composite Video 2")
    SVIDEO_1 = (0x07, "SVideo 1")
    SVIDEO_2 = (0x08, "SVideo 2")
    TUNER_1 = (0x09, "Tuner 1")
    TUNER_2 = (0x0A, "Tuner 2")
    TUNER_3 = (0x0B, "Tuner 3")
    COMPONENT_VIDEO_1 = (0x0C, "Component Video 1")
    COMPONENT_VIDEO_2 = (0x0D, "Component Video 2")
    COMPONENT_VIDEO_3 = (0x0E, "Component Video 3")
    DISPLAY_PORT_1 = (0x0F, "DP 1")
    DISPLAY_PORT_2 = (0x10, "DP 2")
    HDMI_1 = (0x11, "HDMI 1")
    HDMI_2 = (0x12, "HDMI 2")
    UNKNOWN = (None, "Unknown")
    RESERVED = (None, "Reserved")

    def __init__(self, code: Optional[int], label: str):
        self.code = code
        self.label = label

    def __str__(self):
        return self.label

    @classmethod
    def from_code(cls, code: str) -> "MonitorInput":
        """Maps a capability string value such as "0F" to an input."""
        return _INPUTS_BY_CODE.get(code, cls.UNKNOWN)

    @classmethod
    def from_name(cls, name: str) -> Optional["MonitorInput"]:
        """
        Looks an input up by member name ("HDMI_1"), label ("HDMI 1")
        or compact alias ("HDMI1", "DP1"). Case-insensitive.
        """
        key = _compact(name)
        return _INPUTS_BY_NAME.get(key)


def _compact(name: str) -> str:
    return "".join(ch for ch in name.upper() if ch.isalnum())


# Capability strings report codes as two uppercase hex digits
_INPUTS_BY_CODE: Dict[str, MonitorInput] = {
    f"{member.code:02X}": member for member in MonitorInput if member.code is not None
}

_INPUTS_BY_NAME: Dict[str, MonitorInput] = {}
for _member in MonitorInput:
    _INPUTS_BY_NAME[_compact(_member.name)] = _member
    _INPUTS_BY_NAME[_compact(_member.label)] = _member
_INPUTS_BY_NAME.update({
    "VGA1": MonitorInput.ANALOG_VIDEO_1,
    "VGA2": MonitorInput.ANALOG_VIDEO_2,
    "DISPLAYPORT": MonitorInput.DISPLAY_PORT_1,
    "DP": MonitorInput.DISPLAY_PORT_1,
    "HDMI": MonitorInput.HDMI_1,
})


def get_all_inputs_from_capabilities(capabilities: MonitorCapabilities) -> List[MonitorInput]:
    """
    Returns the inputs listed under VCP 0x60, in the order the monitor reports them.
    A monitor without an input source entry has no selectable inputs.
    """
    command = capabilities.find_vcp_code(f"{INPUT_SOURCE_VCP_CODE:02X}")
    if command is None:
        logger.debug("Capabilities have no input source (60) entry")
        return []

    inputs = [MonitorInput.from_code(value.code) for value in command.values]
    for value, resolved in zip(command.values, inputs):
        if resolved is MonitorInput.UNKNOWN:
            logger.debug(f"Unrecognized input source code '{value.code}'")
    return inputs
