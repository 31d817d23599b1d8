"""Waveform summaries: extraction, downsampling and playback mapping."""

from snapmemo.waveform.downsampler import downsample
from snapmemo.waveform.pipeline import WaveformPipeline, summarize
from snapmemo.waveform.position import PlaybackProgress, threshold_index

__all__ = [
    "downsample",
    "summarize",
    "threshold_index",
    "PlaybackProgress",
    "WaveformPipeline",
]
