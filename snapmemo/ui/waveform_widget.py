"""
Waveform summary display.
Draws one bar per summary value with pyqtgraph and highlights played bars.
"""

import logging
from typing import List, Optional

import numpy as np
import pyqtgraph as pg
from PySide6.QtCore import Slot
from PySide6.QtWidgets import QVBoxLayout, QWidget

from snapmemo.waveform.position import PlaybackProgress

logger = logging.getLogger(__name__)


class WaveformWidget(QWidget):
    """Widget for displaying a memo's waveform summary and playback progress."""

    PLAYED_COLOR = (0, 0, 0, 255)
    UNPLAYED_COLOR = (128, 128, 128, 77)
    MIN_BAR_HEIGHT = 0.04
    NEUTRAL_BAR_COUNT = 30

    def __init__(self, parent: Optional[QWidget] = None):
        super().__init__(parent)
        self.summary: Optional[List[float]] = None
        self.progress = PlaybackProgress()
        self.progress.progress_changed.connect(self._on_progress_changed)

        self._setup_ui()
        self._redraw()

    def _setup_ui(self):
        """Set up the bar plot."""
        layout = QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)

        pg.setConfigOptions(antialias=True)

        self.plot_widget = pg.PlotWidget()
        self.plot_widget.setBackground("w")
        self.plot_widget.showGrid(False, False)
        self.plot_widget.hideAxis("left")
        self.plot_widget.hideAxis("bottom")
        self.plot_widget.setMouseEnabled(False, False)
        self.plot_widget.setMenuEnabled(False)
        self.plot_widget.setYRange(-0.5, 0.5, padding=0.05)

        self.bars = pg.BarGraphItem(x=[], height=[], width=0.6, pen=None)
        self.plot_widget.addItem(self.bars)

        layout.addWidget(self.plot_widget)

    def bind(self, engine) -> None:
        """Follow an AudioEngine's live time updates."""
        self.progress.bind(engine)

    @Slot(object)
    def set_summary(self, summary: Optional[List[float]]):
        """Show a summary, or the neutral flat state for None."""
        self.summary = list(summary) if summary else None
        self.progress.set_bar_count(len(self.summary) if self.summary else 0)
        self._redraw()

    def played_mask(self) -> List[bool]:
        """Played flag for each drawn bar."""
        if not self.summary:
            return [False] * self.NEUTRAL_BAR_COUNT
        threshold = self.progress.threshold
        return [index <= threshold for index in range(len(self.summary))]

    @Slot(int)
    def _on_progress_changed(self, threshold: int):
        self._redraw()

    def _redraw(self):
        if self.summary:
            heights = np.maximum(np.asarray(self.summary), self.MIN_BAR_HEIGHT)
        else:
            heights = np.full(self.NEUTRAL_BAR_COUNT, self.MIN_BAR_HEIGHT)

        brushes = [
            pg.mkBrush(self.PLAYED_COLOR if played else self.UNPLAYED_COLOR)
            for played in self.played_mask()
        ]
        self.bars.setOpts(
            x=np.arange(len(heights)),
            height=heights,
            y0=-heights / 2,
            brushes=brushes,
        )
        self.plot_widget.setXRange(-1, len(heights), padding=0)

    def clear(self):
        """Return to the neutral state."""
        self.set_summary(None)
        logger.debug("Waveform cleared")
