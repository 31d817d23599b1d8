"""Captured item model."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional


@dataclass
class Item:
    """A still image paired with its voice memo and waveform summary."""

    id: str
    image_data: bytes
    audio_data: Optional[bytes] = None
    waveform: Optional[List[float]] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def has_audio(self) -> bool:
        return bool(self.audio_data)

    @property
    def needs_waveform(self) -> bool:
        return self.has_audio and self.waveform is None
