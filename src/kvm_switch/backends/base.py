import abc
from typing import Any, List, Union


class DisplayBackend(abc.ABC):
    """
    Native access to DDC/CI capable monitors on one platform.

    Handles returned by enumerate_handles() are opaque to callers and stay
    open until passed to release().
    """

    name = "base"

    @abc.abstractmethod
    def enumerate_handles(self) -> List[Any]:
        """
        Raises:
            DeviceEnumerationError: the platform could not list monitors.
        """

    @abc.abstractmethod
    def read_capabilities(self, handle) -> Union[bytes, str]:
        """
        Returns the raw capability string, possibly NUL padded.

        Raises:
            DeviceReadError: the monitor did not answer the capabilities request.
        """

    @abc.abstractmethod
    def write_feature(self, handle, code: int, value: int) -> None:
        """
        Raises:
            DeviceWriteError: the monitor rejected or did not receive the write.
        """

    def release(self, handle) -> None:
        """Frees the native handle. Safe to call once per handle."""
