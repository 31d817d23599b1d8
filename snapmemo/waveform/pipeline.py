"""Asynchronous waveform summary generation."""

import uuid
from typing import List, Optional, Set

from PySide6.QtCore import QCoreApplication, QObject, Qt, QThread, Signal, Slot

from snapmemo.config.config_loader import config
from snapmemo.utils.logger import setup_logger
from snapmemo.waveform.downsampler import downsample
from snapmemo.waveform.extractor import extract_amplitudes

logger = setup_logger(__name__)


def summarize(
    clip: bytes,
    summary_length: Optional[int] = None,
    block_size: Optional[int] = None,
    temp_directory: Optional[str] = None,
) -> Optional[List[float]]:
    """Compute the waveform summary of a clip synchronously.

    Args:
        clip: Encoded clip bytes.
        summary_length: Number of summary values (config default if None).
        block_size: Frames per amplitude value (config default if None).
        temp_directory: Directory for temporary decode files.

    Returns:
        Summary values, or None if the clip could not be decoded.
    """
    if summary_length is None:
        summary_length = config.get("waveform.summary_length", 100)

    amplitudes = extract_amplitudes(clip, block_size, temp_directory)
    if amplitudes is None:
        return None
    return downsample(amplitudes, summary_length)


class ExtractionWorker(QThread):
    """Worker thread for one summary request."""

    extraction_complete = Signal(object)

    def __init__(
        self,
        key: str,
        clip: bytes,
        summary_length: int,
        block_size: Optional[int],
        temp_directory: Optional[str],
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self.key = key
        self.clip = clip
        self.summary_length = summary_length
        self.block_size = block_size
        self.temp_directory = temp_directory
        self.summary: Optional[List[float]] = None

    def run(self) -> None:
        """Run extraction and downsampling."""
        try:
            self.summary = summarize(
                self.clip, self.summary_length, self.block_size, self.temp_directory
            )
        except Exception as e:
            # Failures become "no summary" rather than crossing threads
            logger.error(f"🛑 Waveform extraction failed for {self.key}: {e}")
            self.summary = None
        finally:
            self.clip = b""
        self.extraction_complete.emit(self)


class WaveformPipeline(QObject):
    """Runs summary requests off the GUI thread and delivers them back on it."""

    # request key, summary list or None
    waveform_ready = Signal(str, object)

    def __init__(
        self,
        summary_length: Optional[int] = None,
        block_size: Optional[int] = None,
        temp_directory: Optional[str] = None,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self.summary_length = summary_length or config.get(
            "waveform.summary_length", 100
        )
        self.block_size = block_size
        self.temp_directory = temp_directory
        self._workers: Set[ExtractionWorker] = set()

    @property
    def pending_count(self) -> int:
        return len(self._workers)

    def request(self, clip: bytes, key: Optional[str] = None) -> str:
        """Start computing the summary of a clip.

        waveform_ready fires exactly once for the returned key, on the
        thread that owns this pipeline.

        Args:
            clip: Encoded clip bytes.
            key: Caller-chosen request key (generated if None).

        Returns:
            The request key.
        """
        key = key or uuid.uuid4().hex
        # Parented to the application so a running thread outlives this pipeline
        worker = ExtractionWorker(
            key,
            clip,
            self.summary_length,
            self.block_size,
            self.temp_directory,
            parent=QCoreApplication.instance(),
        )
        worker.finished.connect(worker.deleteLater)
        worker.extraction_complete.connect(
            self._on_extraction_complete, Qt.ConnectionType.QueuedConnection
        )
        self._workers.add(worker)
        worker.start()
        logger.debug(f"Waveform requested: {key} ({len(clip)} bytes)")
        return key

    @Slot(object)
    def _on_extraction_complete(self, worker: ExtractionWorker) -> None:
        self._workers.discard(worker)
        worker.wait()

        if worker.summary is None:
            logger.warning(f"🟡 No waveform for {worker.key}")
        else:
            logger.info(f"🟢 Waveform ready: {worker.key}")
        self.waveform_ready.emit(worker.key, worker.summary)

    def wait_for_done(self, timeout_ms: Optional[int] = None) -> bool:
        """Block until in-flight requests finish, then deliver their results.

        Args:
            timeout_ms: Per-worker wait limit, or None to wait indefinitely.

        Returns:
            True if no requests remain pending.
        """
        for worker in list(self._workers):
            if timeout_ms is None:
                worker.wait()
            else:
                worker.wait(timeout_ms)
        QCoreApplication.processEvents()
        return not self._workers

    def shutdown(self) -> None:
        """Let every in-flight request finish and deliver its result."""
        if self._workers:
            logger.info(f"Waiting for {len(self._workers)} waveform request(s)")
        self.wait_for_done()
