"""Mapping of live playback time onto waveform summary bars."""

import math
from typing import List, Optional

from PySide6.QtCore import QObject, Signal, Slot


def threshold_index(current_time: float, duration: float, count: int) -> int:
    """Index of the last bar rendered as played.

    Args:
        current_time: Elapsed seconds.
        duration: Total seconds; not positive when nothing is playing.
        count: Number of summary bars.

    Returns:
        floor(current_time / duration * count), or -1 when duration or
        count is not positive (no bar played).
    """
    if duration <= 0 or count <= 0:
        return -1
    return math.floor((current_time / duration) * count)


def bar_states(count: int, current_time: float, duration: float) -> List[bool]:
    """Played flag for each of count bars."""
    threshold = threshold_index(current_time, duration, count)
    return [index <= threshold for index in range(count)]


def format_time(seconds: float) -> str:
    """Format seconds as MM:SS."""
    total = max(0, int(seconds))
    minutes, secs = divmod(total, 60)
    return f"{minutes:02d}:{secs:02d}"


class PlaybackProgress(QObject):
    """Follows an engine's time updates and reports threshold changes.

    Display collaborators connect to progress_changed instead of polling the
    engine; -1 means every bar is unplayed.
    """

    progress_changed = Signal(int)

    def __init__(self, bar_count: int = 0, parent: Optional[QObject] = None) -> None:
        super().__init__(parent)
        self._bar_count = bar_count
        self._threshold = -1
        self._current_time = 0.0
        self._duration = 0.0

    @property
    def threshold(self) -> int:
        return self._threshold

    @property
    def bar_count(self) -> int:
        return self._bar_count

    def bind(self, engine: QObject) -> None:
        """Subscribe to an AudioEngine's time and state signals."""
        engine.time_updated.connect(self.on_time_updated)
        engine.state_changed.connect(self.on_state_changed)

    def set_bar_count(self, count: int) -> None:
        self._bar_count = count
        self._recompute()

    @Slot(float, float)
    def on_time_updated(self, current_time: float, duration: float) -> None:
        self._current_time = current_time
        self._duration = duration
        self._recompute()

    @Slot(object)
    def on_state_changed(self, state: object) -> None:
        # Every transition resets the engine's time to zero
        self._current_time = 0.0
        self._duration = 0.0
        self._recompute()

    def _recompute(self) -> None:
        threshold = threshold_index(self._current_time, self._duration, self._bar_count)
        if threshold != self._threshold:
            self._threshold = threshold
            self.progress_changed.emit(threshold)
