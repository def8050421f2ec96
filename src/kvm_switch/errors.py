class MonitorError(Exception):
    """Base class for every error raised by kvm_switch."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self):
        return f"Monitor Error: {self.message}"


# Capability string parsing

class ParserError(MonitorError):
    def __str__(self):
        return f"Parser Error: {self.message}"


class TokenizeMismatchError(ParserError):
    """Parentheses in the capability string do not balance."""


class UnexpectedEofError(TokenizeMismatchError):
    pass


class InvalidStructureError(TokenizeMismatchError):
    pass


class MalformedTopLevelError(ParserError):
    """The root expression is not an even-length list of key/value pairs."""


class DanglingKeyError(MalformedTopLevelError):
    pass


class KeyNotAtomError(ParserError):
    pass


class CapabilityDecodeError(ParserError):
    """The monitor returned bytes that are not valid text."""


# Device access

class DeviceError(MonitorError):
    pass


class DeviceEnumerationError(DeviceError):
    pass


class UnsupportedPlatformError(DeviceEnumerationError):
    pass


class DeviceReadError(DeviceError):
    pass


class DeviceWriteError(DeviceError):
    pass


class HandleContentionError(DeviceWriteError):
    """The monitor handle is already borrowed by another operation."""


class RequestRejectedError(MonitorError):
    """The command queue stayed full for longer than the submit timeout."""
