import argparse
import json
import logging
import sys

from kvm_switch.backends import get_backend
from kvm_switch.config_manager import ConfigManager, Settings
from kvm_switch.errors import MonitorError
from kvm_switch.inputs import MonitorInput
from kvm_switch.monitor_service import MONITOR_INFO_EVENT, SWITCH_FAILED_EVENT, MonitorService

logger = logging.getLogger(__name__)


class CollectingSink:
    """Keeps the events published by a MonitorService for one-shot commands."""

    def __init__(self):
        self.monitors = None
        self.failures = []

    def publish(self, event_name, payload):
        if event_name == MONITOR_INFO_EVENT:
            self.monitors = payload
        elif event_name == SWITCH_FAILED_EVENT:
            self.failures.append(payload)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="kvm-switch", description="Switch monitor inputs over DDC/CI.")
    parser.add_argument("--settings", help="path to settings.json (default: ./settings.json)")
    parser.add_argument("--init-config", action="store_true", help="write default settings.json and exit")
    parser.add_argument("--list", action="store_true", help="print detected monitors and exit")
    parser.add_argument("--json", action="store_true", help="with --list, print JSON")
    parser.add_argument("--switch", nargs=2, metavar=("ID", "INPUT"), help="switch monitor ID to INPUT and exit")
    return parser


def configure_logging(settings: Settings, to_console: bool):
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    kwargs = {} if to_console else {"filename": settings.log_file}
    logging.basicConfig(level=level, format='%(asctime)s - %(levelname)s - %(message)s', **kwargs)


def list_monitors(service: MonitorService, sink: CollectingSink, as_json: bool) -> int:
    service.start()
    service.request_refresh()
    service.stop()

    monitors = sink.monitors or []
    if as_json:
        print(json.dumps([m.to_dict() for m in monitors], indent=2))
        return 0

    if not monitors:
        print("No monitors found")
    for m in monitors:
        inputs = ", ".join(str(i) for i in m.inputs) or "none"
        print(f"{m.id}: {m.model}  inputs: {inputs}")
    return 0


def switch_input(service: MonitorService, sink: CollectingSink, monitor_id: int, monitor_input: MonitorInput) -> int:
    service.start()
    service.request_switch(monitor_id, monitor_input)
    service.stop()

    for failure in sink.failures:
        print(f"Failed to switch monitor {failure.monitor_id}: {failure.reason}", file=sys.stderr)
    return 1 if sink.failures else 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    settings_path = args.settings or ConfigManager.settings_path()

    if args.init_config:
        ConfigManager.save_settings(Settings(), settings_path)
        print(f"Wrote {settings_path}")
        return 0

    settings = ConfigManager.load_settings(settings_path)
    headless = bool(args.list or args.switch)
    configure_logging(settings, to_console=headless)

    if args.switch:
        monitor_id, input_name = args.switch
        monitor_input = MonitorInput.from_name(input_name)
        if not monitor_id.isdigit() or monitor_input is None or monitor_input.code is None:
            print(f"Invalid monitor id or input: {monitor_id} {input_name}", file=sys.stderr)
            return 2

    try:
        backend = get_backend(settings.backend)
    except MonitorError as e:
        logger.error(f"Failed to start: {e}")
        print(e, file=sys.stderr)
        return 1

    if headless:
        sink = CollectingSink()
        # --list publishes its own refresh, --switch needs the list loaded up front
        service = MonitorService(
            sink, backend, queue_capacity=settings.queue_capacity, scan_on_start=bool(args.switch)
        )
        if args.switch:
            return switch_input(service, sink, int(monitor_id), monitor_input)
        return list_monitors(service, sink, args.json)

    print("Starting KVM Switcher...")
    from kvm_switch.kvm_tray import KVMApp
    app = KVMApp(settings, backend)
    app.run()
    print("Exiting main.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
