"""Recording and playback state machine for SnapMemo."""

import threading
import time
from enum import Enum
from typing import Callable, List, Optional

import numpy as np
from PySide6.QtCore import QObject, QTimer, Signal, Slot

from snapmemo.audio import codec, session
from snapmemo.config.config_loader import config
from snapmemo.utils.exceptions import DecodeFailed, EncodeFailed
from snapmemo.utils.logger import setup_logger

logger = setup_logger(__name__)


class PlaybackState(Enum):
    """Engine state enumeration."""

    IDLE = "idle"
    RECORDING = "recording"
    PLAYING = "playing"


class AudioEngine(QObject):
    """Owns the audio session and drives recording, playback and live time.

    Recording and playback are mutually exclusive. All state transitions
    happen on the thread that owns the engine (the timer's thread); the
    PortAudio callbacks only touch lock-protected buffers.
    """

    state_changed = Signal(object)
    # current time, total duration (max duration while recording)
    time_updated = Signal(float, float)
    # finalized clip bytes, or None if nothing usable was captured
    recording_finished = Signal(object)
    playback_finished = Signal()

    def __init__(
        self,
        min_hold_duration: Optional[float] = None,
        max_recording_duration: Optional[float] = None,
        update_rate_hz: Optional[int] = None,
        clip_format: Optional[str] = None,
        clip_subtype: Optional[str] = None,
        clock: Callable[[], float] = time.monotonic,
        parent: Optional[QObject] = None,
    ) -> None:
        """Initialize the engine.

        Args:
            min_hold_duration: Seconds before a manual stop is accepted.
            max_recording_duration: Seconds after which recording auto-stops.
            update_rate_hz: Live time update rate.
            clip_format: Container for finished clips. When given,
                clip_subtype is used as-is (None means format default).
            clip_subtype: Codec subtype for clip_format.
            clock: Monotonic time source in seconds.
            parent: Optional Qt parent.
        """
        super().__init__(parent)
        self.device = config.get("audio.device", None)
        self.output_device = config.get("audio.output_device", None)
        self.sample_rate = config.get("audio.sample_rate", 44100)
        self.channels = config.get("audio.channels", 1)
        self.chunk_size = config.get("audio.chunk_size", 1024)

        if clip_format is not None:
            self.clip_format = clip_format.upper()
            self.clip_subtype = clip_subtype
        else:
            self.clip_format = str(config.get("audio.clip_format", "OGG")).upper()
            self.clip_subtype = config.get("audio.clip_subtype", "VORBIS")

        self.min_hold_duration = float(
            min_hold_duration
            if min_hold_duration is not None
            else config.get("audio.min_hold_duration", 8.0)
        )
        self.max_recording_duration = float(
            max_recording_duration
            if max_recording_duration is not None
            else config.get("audio.max_recording_duration", 30.0)
        )
        self.update_rate_hz = int(
            update_rate_hz or config.get("audio.update_rate_hz", 20)
        )

        self._clock = clock
        self._state = PlaybackState.IDLE
        self._current_time = 0.0
        self._duration = 0.0
        self._started_at = 0.0
        self._stream = None

        self._lock = threading.Lock()
        self._capturing = False
        self._captured: List[np.ndarray] = []
        self._capture_rate = self.sample_rate
        self._playback_reader: Optional[codec.ClipReader] = None
        self._playback_pos = 0
        self._playback_total = 0
        self._playback_exhausted = False
        self._playback_rate = 0

        self._timer = QTimer(self)
        self._timer.setInterval(max(1, int(1000 / self.update_rate_hz)))
        self._timer.timeout.connect(self.update_time)

        logger.info(
            f"AudioEngine initialized: hold {self.min_hold_duration:.1f}s, "
            f"max {self.max_recording_duration:.1f}s, {self.update_rate_hz}Hz updates"
        )

    @property
    def state(self) -> PlaybackState:
        return self._state

    @property
    def current_time(self) -> float:
        return self._current_time

    @property
    def duration(self) -> float:
        return self._duration

    @property
    def is_recording(self) -> bool:
        return self._state is PlaybackState.RECORDING

    @property
    def is_playing(self) -> bool:
        return self._state is PlaybackState.PLAYING

    @property
    def can_stop_recording(self) -> bool:
        """True once the recording has been held for the minimum duration."""
        return self.is_recording and self._current_time >= self.min_hold_duration

    def _set_state(self, state: PlaybackState) -> None:
        if state is self._state:
            return
        self._state = state
        self.state_changed.emit(state)

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def _input_callback(
        self, indata: np.ndarray, frames: int, time_info, status
    ) -> None:
        if status:
            logger.warning(f"Audio input status: {status}")
        with self._lock:
            if self._capturing:
                self._captured.append(indata.copy())

    def start_recording(self) -> None:
        """Start capturing from the input device.

        Raises:
            SessionUnavailable: If the input device cannot be acquired. The
                engine stays idle.
        """
        if self.is_recording:
            logger.warning("Already recording")
            return
        if self.is_playing:
            self.stop_playback()

        with self._lock:
            self._captured = []
            self._capturing = True

        try:
            device = session.validate_device(self.device, "input")
            stream, rate = session.open_input_stream(
                device,
                self.sample_rate,
                self.channels,
                self.chunk_size,
                self._input_callback,
            )
        except Exception:
            with self._lock:
                self._capturing = False
                self._captured = []
            logger.error("🛑 Failed to start recording")
            raise

        self._stream = stream
        self._capture_rate = rate
        self._started_at = self._clock()
        self._current_time = 0.0
        self._duration = self.max_recording_duration
        self._set_state(PlaybackState.RECORDING)
        self._timer.start()
        logger.info(f"🟢 Started recording at {rate}Hz")

    def stop_recording(self, force: bool = False) -> Optional[bytes]:
        """Stop recording and return the finalized clip.

        Args:
            force: Stop even if the minimum hold duration has not elapsed.

        Returns:
            Clip bytes, or None if not recording, if the stop request was
            ignored because of the hold policy, or if nothing was captured.
        """
        if not self.is_recording:
            logger.debug("Not recording")
            return None

        if not force and not self.can_stop_recording:
            logger.info(
                f"Stop ignored: held {self._current_time:.1f}s of "
                f"{self.min_hold_duration:.1f}s"
            )
            return None

        return self._finish_recording("manual stop" if not force else "forced stop")

    def _finish_recording(self, reason: str) -> Optional[bytes]:
        self._timer.stop()

        with self._lock:
            self._capturing = False
        if self._stream is not None:
            session.close_stream(self._stream)
            self._stream = None

        with self._lock:
            chunks = self._captured
            self._captured = []

        clip = self._encode_chunks(chunks)

        self._current_time = 0.0
        self._duration = 0.0
        self._set_state(PlaybackState.IDLE)

        if clip is None:
            logger.warning(f"🟡 Recording ended ({reason}) without usable audio")
        else:
            logger.info(f"Stopped recording ({reason}): {len(clip)} bytes")

        self.recording_finished.emit(clip)
        return clip

    def _encode_chunks(self, chunks: List[np.ndarray]) -> Optional[bytes]:
        if not chunks:
            return None

        frames = np.concatenate(chunks, axis=0)
        if frames.size == 0:
            return None

        try:
            return codec.encode_clip(
                frames, self._capture_rate, self.clip_format, self.clip_subtype
            )
        except EncodeFailed as e:
            logger.error(f"🛑 {e}")
            return None

    # ------------------------------------------------------------------
    # Playback
    # ------------------------------------------------------------------

    def _output_callback(
        self, outdata: np.ndarray, frames: int, time_info, status
    ) -> None:
        if status:
            logger.warning(f"Audio output status: {status}")
        with self._lock:
            if self._playback_reader is None:
                outdata.fill(0)
                return
            try:
                chunk = self._playback_reader.read(frames)
            except DecodeFailed as e:
                logger.error(f"🛑 {e}")
                chunk = outdata[:0]
            self._playback_pos += len(chunk)
            if len(chunk) < frames:
                self._playback_exhausted = True
            outdata[: len(chunk)] = chunk
        outdata[len(chunk) :] = 0

    def start_playback(self, clip: bytes) -> None:
        """Start playing a clip from the beginning.

        Only the clip header is parsed here; frames are decoded by the
        output callback as the device asks for them.

        Raises:
            DecodeFailed: If the clip cannot be decoded.
            SessionUnavailable: If the output device cannot be acquired.
        """
        if self.is_recording:
            self.stop_recording(force=True)
        if self.is_playing:
            self.stop_playback()

        reader = codec.ClipReader(clip)
        if reader.frames <= 0:
            reader.close()
            raise DecodeFailed("Clip contains no audio frames")

        with self._lock:
            self._playback_reader = reader
            self._playback_pos = 0
            self._playback_total = reader.frames
            self._playback_exhausted = False
        self._playback_rate = reader.samplerate

        try:
            device = session.validate_device(self.output_device, "output")
            self._stream = session.open_output_stream(
                device,
                reader.samplerate,
                reader.channels,
                self.chunk_size,
                self._output_callback,
            )
        except Exception:
            self._release_reader()
            logger.error("🛑 Failed to start playback")
            raise

        self._current_time = 0.0
        self._duration = reader.frames / reader.samplerate
        self._set_state(PlaybackState.PLAYING)
        self._timer.start()
        logger.info(f"🟢 Started playback: {self._duration:.2f}s")

    def stop_playback(self) -> None:
        """Stop playback. Does nothing when not playing."""
        if not self.is_playing:
            return
        self._finish_playback(completed=False)

    def _finish_playback(self, completed: bool) -> None:
        self._timer.stop()
        if self._stream is not None:
            session.close_stream(self._stream)
            self._stream = None

        self._release_reader()

        self._current_time = 0.0
        self._duration = 0.0
        self._set_state(PlaybackState.IDLE)

        if completed:
            logger.debug("Playback completed")
            self.playback_finished.emit()
        else:
            logger.debug("Playback stopped")

    def _release_reader(self) -> None:
        with self._lock:
            reader = self._playback_reader
            self._playback_reader = None
            self._playback_pos = 0
            self._playback_total = 0
            self._playback_exhausted = False
        if reader is not None:
            reader.close()

    # ------------------------------------------------------------------
    # Live time
    # ------------------------------------------------------------------

    @Slot()
    def update_time(self) -> None:
        """Refresh the current time and apply duration/completion policy."""
        if self.is_recording:
            self._current_time = self._clock() - self._started_at

            if self._current_time >= self.max_recording_duration:
                self._current_time = self.max_recording_duration
                self.time_updated.emit(self._current_time, self._duration)
                logger.info(
                    f"🟡 Recording duration limit reached: {self._current_time:.1f}s"
                )
                self._finish_recording("duration limit")
            elif self._stream is not None and not self._stream.active:
                logger.warning("🟡 Input stream stopped unexpectedly")
                self._finish_recording("device failure")
            else:
                self.time_updated.emit(self._current_time, self._duration)

        elif self.is_playing:
            with self._lock:
                position = self._playback_pos
                exhausted = (
                    self._playback_exhausted or position >= self._playback_total
                )
            self._current_time = min(position / self._playback_rate, self._duration)

            if exhausted or (
                self._stream is not None and not self._stream.active
            ):
                self._finish_playback(completed=True)
            else:
                self.time_updated.emit(self._current_time, self._duration)

    def shutdown(self) -> None:
        """Release the audio session regardless of state."""
        if self.is_recording:
            self.stop_recording(force=True)
        self.stop_playback()
