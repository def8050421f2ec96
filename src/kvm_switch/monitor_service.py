"""
Background worker that owns every monitor handle.

All device access goes through one thread fed by a bounded queue, so at most
one DDC/CI operation is ever in flight. Callers never touch Monitor objects;
they enqueue requests and receive results through a NotificationSink.
"""
import logging
import queue
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

from kvm_switch.backends import DisplayBackend
from kvm_switch.errors import DeviceEnumerationError, DeviceError, RequestRejectedError
from kvm_switch.inputs import MonitorInput
from kvm_switch.monitor_utils import Monitor, MonitorManager

logger = logging.getLogger(__name__)

MONITOR_INFO_EVENT = "monitor-info"
SWITCH_FAILED_EVENT = "switch-failed"

DEFAULT_QUEUE_CAPACITY = 8


class NotificationSink(Protocol):
    def publish(self, event_name: str, payload: Any) -> None:
        ...


@dataclass(frozen=True)
class MonitorSummary:
    id: int
    model: str
    inputs: List[MonitorInput] = field(default_factory=list)

    @classmethod
    def from_monitor(cls, monitor: Monitor) -> "MonitorSummary":
        return cls(id=monitor.id, model=monitor.model, inputs=MonitorManager.get_inputs(monitor))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "model": self.model,
            "inputs": [monitor_input.name for monitor_input in self.inputs],
        }


@dataclass(frozen=True)
class SwitchFailure:
    monitor_id: int
    input: MonitorInput
    reason: str


@dataclass(frozen=True)
class RefreshRequest:
    pass


@dataclass(frozen=True)
class SwitchInputRequest:
    monitor_id: int
    input: MonitorInput


_STOP = object()


class MonitorService:
    def __init__(
        self,
        sink: NotificationSink,
        backend: DisplayBackend,
        queue_capacity: int = DEFAULT_QUEUE_CAPACITY,
        submit_timeout: Optional[float] = None,
        scan_on_start: bool = True,
    ):
        """
        submit_timeout: seconds a request may wait for queue space before
        RequestRejectedError is raised. None blocks until there is room.
        scan_on_start: load the monitor list when the worker starts, without publishing it.
        """
        self.scan_on_start = scan_on_start
        self.sink = sink
        self.backend = backend
        self.submit_timeout = submit_timeout
        self._queue = queue.Queue(maxsize=queue_capacity)
        self._monitors: List[Monitor] = []
        self._thread: Optional[threading.Thread] = None

    def start(self):
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._run, name="monitor-service", daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = None):
        """Processes requests already queued, then releases every handle."""
        if self._thread is None:
            return
        self._queue.put(_STOP)
        self._thread.join(timeout)
        self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def request_refresh(self):
        self._submit(RefreshRequest())

    def request_switch(self, monitor_id: int, monitor_input: MonitorInput):
        self._submit(SwitchInputRequest(monitor_id, monitor_input))

    def _submit(self, request):
        try:
            self._queue.put(request, timeout=self.submit_timeout)
        except queue.Full:
            logger.warning(f"Command queue full, rejecting {request}")
            raise RequestRejectedError(f"command queue is full, {request} rejected")

    def _run(self):
        if self.scan_on_start:
            self._monitors = self._scan()

        while True:
            request = self._queue.get()
            try:
                if request is _STOP:
                    break
                if isinstance(request, RefreshRequest):
                    self._handle_refresh()
                elif isinstance(request, SwitchInputRequest):
                    self._handle_switch(request)
                else:
                    logger.error(f"Unknown request {request!r}")
            except Exception as e:
                # The worker must outlive any single request
                logger.error(f"Error handling {request}: {e}", exc_info=True)
            finally:
                self._queue.task_done()

        self._release_all(self._monitors)
        self._monitors = []
        logger.info("Monitor service stopped.")

    def _scan(self) -> List[Monitor]:
        try:
            return MonitorManager.get_all_monitors(self.backend)
        except DeviceEnumerationError as e:
            logger.error(f"Failed to enumerate monitors: {e}")
            return []
        except Exception as e:
            # An empty list keeps the worker alive; the next refresh retries
            logger.error(f"Monitor scan failed: {e}", exc_info=True)
            return []

    def _handle_refresh(self):
        old = self._monitors
        self._monitors = []
        self._release_all(old)
        self._monitors = self._scan()

        summaries = [MonitorSummary.from_monitor(m) for m in self._monitors]
        logger.info(f"Publishing {len(summaries)} monitors")
        self.sink.publish(MONITOR_INFO_EVENT, summaries)

    def _handle_switch(self, request: SwitchInputRequest):
        monitor = next((m for m in self._monitors if m.id == request.monitor_id), None)
        if monitor is None:
            self._report_switch_failure(request, f"monitor {request.monitor_id} not found")
            return

        try:
            MonitorManager.set_input(monitor, request.input)
        except DeviceError as e:
            self._report_switch_failure(request, str(e))

    def _report_switch_failure(self, request: SwitchInputRequest, reason: str):
        logger.error(f"Failed to switch monitor {request.monitor_id} to {request.input}: {reason}")
        self.sink.publish(SWITCH_FAILED_EVENT, SwitchFailure(request.monitor_id, request.input, reason))

    @staticmethod
    def _release_all(monitors: List[Monitor]):
        for monitor in monitors:
            try:
                monitor.close()
            except DeviceError as e:
                logger.warning(f"Failed to release monitor {monitor.id}: {e}")
