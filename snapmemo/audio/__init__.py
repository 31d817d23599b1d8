"""Audio capture, playback and clip coding.

- engine: AudioEngine recording/playback state machine
- session: the only place hardware streams are opened
- codec: clip encoding and decoding
"""

from snapmemo.audio.engine import AudioEngine, PlaybackState

__all__ = ["AudioEngine", "PlaybackState"]
