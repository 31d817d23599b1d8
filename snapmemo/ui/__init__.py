"""User interface modules."""

from snapmemo.ui.waveform_widget import WaveformWidget

__all__ = ["WaveformWidget"]
