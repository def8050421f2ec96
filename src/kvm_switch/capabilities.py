import logging
from dataclasses import dataclass, field
from typing import List

from kvm_switch.mccs import (
    VcpCommand,
    extract_atom,
    extract_vcp_commands,
    format_expression,
    parse_cap_string,
)

logger = logging.getLogger(__name__)


@dataclass
class MonitorCapabilities:
    """Typed view of a monitor's capability string."""

    protocol_class: str = ""
    display_type: str = ""
    commands: List[VcpCommand] = field(default_factory=list)
    vcp_codes: List[VcpCommand] = field(default_factory=list)
    display_model: str = ""
    mccs_version: str = ""

    @classmethod
    def from_cap_string(cls, cap_string: str) -> "MonitorCapabilities":
        """
        Raises a ParserError subclass when the string is malformed.
        Unknown keys are skipped; a repeated key overwrites the earlier one.
        """
        caps = cls()

        for key, value in parse_cap_string(cap_string):
            if key == "prot":
                caps.protocol_class = extract_atom(value)
            elif key == "type":
                caps.display_type = extract_atom(value)
            elif key == "cmds":
                caps.commands = extract_vcp_commands(value)
            elif key == "vcp":
                caps.vcp_codes = extract_vcp_commands(value)
            elif key == "model":
                caps.display_model = extract_atom(value)
            elif key == "mccs_ver":
                caps.mccs_version = extract_atom(value)
            else:
                logger.debug(f"Skipping capability key '{key}': {format_expression(value)}")

        return caps

    def find_vcp_code(self, code: str):
        """First VCP command with the given code, or None."""
        for command in self.vcp_codes:
            if command.code == code:
                return command
        return None
