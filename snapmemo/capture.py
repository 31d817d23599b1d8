"""Hold-to-record capture flow.

Pairs the captured still image with the recorded memo, waits for the memo's
waveform summary and persists all three together.
"""

from typing import Dict, Optional, Tuple

from PySide6.QtCore import QObject, Signal, Slot

from snapmemo.audio.engine import AudioEngine
from snapmemo.storage.repository import ItemRepository
from snapmemo.utils.exceptions import SessionUnavailable, StorageError
from snapmemo.utils.logger import setup_logger
from snapmemo.waveform.pipeline import WaveformPipeline
from snapmemo.waveform.position import format_time

logger = setup_logger(__name__)


class CaptureController(QObject):
    """Drives one capture: image in, recording, summary, saved item out."""

    item_saved = Signal(str)
    capture_discarded = Signal(str)
    error_occurred = Signal(str)

    def __init__(
        self,
        engine: AudioEngine,
        pipeline: WaveformPipeline,
        repository: ItemRepository,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self.engine = engine
        self.pipeline = pipeline
        self.repository = repository
        self._image_data: Optional[bytes] = None
        # request key -> (clip, image) waiting for a summary
        self._pending: Dict[str, Tuple[bytes, bytes]] = {}

        self.engine.recording_finished.connect(self._on_recording_finished)
        self.pipeline.waveform_ready.connect(self._on_waveform_ready)

    @property
    def has_image(self) -> bool:
        return self._image_data is not None

    @property
    def is_recording(self) -> bool:
        return self.engine.is_recording

    @property
    def can_stop_recording(self) -> bool:
        return self.engine.can_stop_recording

    @property
    def pending_saves(self) -> int:
        return len(self._pending)

    def set_image(self, image_data: bytes) -> None:
        """Set the encoded still image the next memo belongs to."""
        self._image_data = image_data

    def begin_recording(self) -> bool:
        """Start recording the memo.

        Returns:
            True if recording started, False if there is no image or the
            microphone could not be acquired.
        """
        if self._image_data is None:
            logger.warning("🟡 No image captured, not recording")
            self.error_occurred.emit("No image captured")
            return False

        try:
            self.engine.start_recording()
        except SessionUnavailable as e:
            logger.error(f"🛑 {e}")
            self.error_occurred.emit(str(e))
            return False
        return True

    def request_stop(self) -> bool:
        """Handle a stop press. Ignored until the minimum hold has elapsed.

        Returns:
            True if the recording was stopped.
        """
        if not self.engine.can_stop_recording:
            return False
        self.engine.stop_recording()
        return True

    def status_text(self) -> str:
        """Label for the record control, e.g. "00:12 / 00:30"."""
        if not self.engine.is_recording:
            return "Hold to Record & Reveal"
        return (
            f"{format_time(self.engine.current_time)} / "
            f"{format_time(self.engine.max_recording_duration)}"
        )

    @Slot(object)
    def _on_recording_finished(self, clip: Optional[bytes]) -> None:
        image_data = self._image_data
        self._image_data = None

        if image_data is None:
            return
        if clip is None:
            logger.warning("🟡 Recording produced no audio, capture discarded")
            self.capture_discarded.emit("No audio captured")
            return

        key = self.pipeline.request(clip)
        self._pending[key] = (clip, image_data)

    @Slot(str, object)
    def _on_waveform_ready(self, key: str, summary: Optional[list]) -> None:
        pending = self._pending.pop(key, None)
        if pending is None:
            return

        clip, image_data = pending
        try:
            item_id = self.repository.save(clip, summary, image_data)
        except StorageError as e:
            logger.error(f"🛑 {e}")
            self.error_occurred.emit(str(e))
            return

        self.item_saved.emit(item_id)
