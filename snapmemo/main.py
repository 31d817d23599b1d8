"""Main entry point for SnapMemo."""

import argparse
import signal
import sys
from pathlib import Path
from typing import List, Optional

import ruamel.yaml
from PySide6.QtCore import QCoreApplication, QTimer, Slot
from ruamel.yaml.error import YAMLError

from snapmemo.audio import session
from snapmemo.audio.engine import AudioEngine
from snapmemo.capture import CaptureController
from snapmemo.config.config_loader import config
from snapmemo.config.validators import validate_config
from snapmemo.library import MemoLibrary
from snapmemo.storage.repository import FileItemRepository
from snapmemo.utils.exceptions import SnapMemoError
from snapmemo.utils.logger import setup_logger
from snapmemo.waveform.downsampler import downsample
from snapmemo.waveform.pipeline import WaveformPipeline
from snapmemo.waveform.position import format_time

logger = setup_logger(__name__)

SPARK_CHARS = " ▁▂▃▄▅▆▇█"

# Global app instance for signal handler
app_instance = None


def sparkline(summary: Optional[List[float]], width: int = 24) -> str:
    """Render a summary as a one-line bar string."""
    if not summary:
        return "-" * width
    levels = len(SPARK_CHARS) - 1
    return "".join(
        SPARK_CHARS[min(levels, int(round(value * levels)))]
        for value in downsample(summary, width)
    )


class SnapMemoApp:
    """Headless SnapMemo application."""

    def __init__(self, storage_directory: Optional[str] = None) -> None:
        self.app = QCoreApplication.instance()
        if self.app is None:
            self.app = QCoreApplication(sys.argv[:1])

        self.engine = AudioEngine()
        self.pipeline = WaveformPipeline()
        self.repository = FileItemRepository(storage_directory)
        self.capture = CaptureController(self.engine, self.pipeline, self.repository)
        self.library = MemoLibrary(self.repository, self.pipeline, self.engine)
        self.exit_code = 0
        self._last_status = ""

        # Lets the Python signal handler run while Qt's loop is busy
        self._signal_timer = QTimer()
        self._signal_timer.timeout.connect(lambda: None)
        self._signal_timer.start(200)

    def _finish(self, exit_code: int) -> None:
        self.exit_code = exit_code
        self.app.quit()

    def record(self, image_path: str) -> int:
        """Record a memo for an image and save the pair."""
        try:
            image_data = Path(image_path).read_bytes()
        except OSError as e:
            logger.error(f"🛑 Cannot read image: {e}")
            return 1

        self.capture.item_saved.connect(self._on_item_saved)
        self.capture.capture_discarded.connect(lambda reason: self._finish(1))
        self.capture.error_occurred.connect(lambda message: self._finish(1))
        self.engine.time_updated.connect(self._on_time_updated)

        self.capture.set_image(image_data)
        if not self.capture.begin_recording():
            return 1

        print(
            f"Recording... hold at least {format_time(self.engine.min_hold_duration)}, "
            "then press Ctrl+C to stop"
        )
        self.app.exec()
        return self.exit_code

    @Slot(float, float)
    def _on_time_updated(self, current_time: float, duration: float) -> None:
        status = self.capture.status_text()
        if status != self._last_status:
            self._last_status = status
            print(f"\r{status}", end="", flush=True)

    @Slot(str)
    def _on_item_saved(self, item_id: str) -> None:
        print(f"\nSaved {item_id}")
        self._finish(0)

    def request_stop(self) -> None:
        """Handle Ctrl+C: stop recording if allowed, otherwise quit."""
        if self.engine.is_recording:
            if not self.capture.request_stop():
                remaining = self.engine.min_hold_duration - self.engine.current_time
                print(f"\nKeep holding: {remaining:.1f}s to go")
            return
        self._finish(self.exit_code)

    def list_items(self) -> int:
        """Print saved items, deriving any missing summaries first."""
        items = self.library.items()
        for item in items:
            self.library.waveform_for(item)
        self.pipeline.wait_for_done()

        for item in items:
            summary = self.library.waveform_for(item)
            memo = "memo" if item.has_audio else "no memo"
            print(
                f"{item.id}  {item.timestamp:%Y-%m-%d %H:%M}  {memo:<7}  "
                f"{sparkline(summary)}"
            )
        if not items:
            print("No items")
        return 0

    def play(self, item_id: str) -> int:
        """Play an item's memo until it ends."""
        item = self.repository.get(item_id)
        if item is None:
            logger.error(f"🛑 No such item: {item_id}")
            return 1

        self.engine.playback_finished.connect(lambda: self._finish(0))
        if not self.library.toggle_playback(item):
            return 1
        self.app.exec()
        return self.exit_code

    def delete(self, item_id: str) -> int:
        try:
            self.library.delete(item_id)
        except SnapMemoError as e:
            logger.error(f"🛑 {e}")
            return 1
        print(f"Deleted {item_id}")
        return 0

    def devices(self) -> int:
        try:
            devices = session.list_devices()
        except SnapMemoError as e:
            logger.error(f"🛑 {e}")
            return 1
        for device in devices:
            print(
                f"{device['index']:>3}  {device['name']}  "
                f"(in {device['max_input_channels']}, "
                f"out {device['max_output_channels']})"
            )
        return 0

    def cleanup(self) -> None:
        """Release the audio session and let pending summaries finish."""
        self._signal_timer.stop()
        self.engine.shutdown()
        self.pipeline.shutdown()


def configure(args: argparse.Namespace) -> int:
    """Show, change or restore the configuration file."""
    if args.restore:
        if not config.restore_from_backup():
            return 1
        print(f"Restored {config.config_path}")
        return 0

    if args.key is None:
        _print_yaml(config.get_all())
        return 0

    if args.value is None:
        value = config.get(args.key)
        if value is None:
            logger.error(f"🛑 No such setting: {args.key}")
            return 1
        _print_yaml({args.key: value})
        return 0

    try:
        value = ruamel.yaml.YAML(typ="safe").load(args.value)
    except YAMLError as e:
        logger.error(f"🛑 Cannot parse value: {e}")
        return 1
    config.set(args.key, value)

    try:
        validate_config(config.config)
    except ValueError as e:
        logger.error(f"🛑 {e}")
        config.load()
        return 1

    try:
        config.save()
    except SnapMemoError as e:
        logger.error(f"🛑 {e}")
        return 1
    print(f"{args.key} = {value}")
    return 0


def _print_yaml(data) -> None:
    yaml_dumper = ruamel.yaml.YAML()
    yaml_dumper.default_flow_style = False
    yaml_dumper.dump(data, sys.stdout)


def signal_handler(sig, frame):
    """Handle interrupt signals gracefully."""
    if app_instance is None:
        sys.exit(0)
    if sig == signal.SIGINT:
        app_instance.request_stop()
    else:
        logger.info("Received termination signal, shutting down...")
        app_instance._finish(1)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="snapmemo", description="Still images paired with voice memos"
    )
    parser.add_argument("--storage", help="Item storage directory")
    commands = parser.add_subparsers(dest="command", required=True)

    record = commands.add_parser("record", help="Record a memo for an image")
    record.add_argument("image", help="Path to the encoded image")
    commands.add_parser("list", help="List saved items")
    play = commands.add_parser("play", help="Play an item's memo")
    play.add_argument("item_id")
    delete = commands.add_parser("delete", help="Delete an item")
    delete.add_argument("item_id")
    commands.add_parser("devices", help="List audio devices")
    settings = commands.add_parser("config", help="Show or change settings")
    settings.add_argument("key", nargs="?", help="Dotted setting name")
    settings.add_argument("value", nargs="?", help="New value, as YAML")
    settings.add_argument(
        "--restore", action="store_true", help="Restore the previous config file"
    )
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Main function to run SnapMemo."""
    global app_instance

    args = build_parser().parse_args(argv)
    if args.command == "config":
        sys.exit(configure(args))

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    exit_code = 1
    try:
        app_instance = SnapMemoApp(args.storage)
        if args.command == "record":
            exit_code = app_instance.record(args.image)
        elif args.command == "list":
            exit_code = app_instance.list_items()
        elif args.command == "play":
            exit_code = app_instance.play(args.item_id)
        elif args.command == "delete":
            exit_code = app_instance.delete(args.item_id)
        elif args.command == "devices":
            exit_code = app_instance.devices()
    except SnapMemoError as e:
        logger.error(f"Fatal error: {e}")
    finally:
        if app_instance:
            try:
                app_instance.cleanup()
            except Exception as e:
                logger.error(f"🛑 Error during application cleanup: {e}")

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
