"""Amplitude extraction from encoded clips."""

from typing import Optional

import numpy as np

from snapmemo.audio.codec import decode_clip
from snapmemo.config.config_loader import config
from snapmemo.utils.exceptions import DecodeFailed
from snapmemo.utils.logger import setup_logger

logger = setup_logger(__name__)


def block_peaks(frames: np.ndarray, block_size: int) -> np.ndarray:
    """Compute the peak absolute amplitude of each block of frames.

    Channels are folded by taking the loudest channel per frame. The final
    block may be shorter than block_size.

    Args:
        frames: Float samples normalized to full scale, shape (n,) or
            (n, channels).
        block_size: Frames per block.

    Returns:
        Float32 array of per-block peaks clipped to [0, 1].
    """
    magnitudes = np.abs(np.asarray(frames, dtype=np.float32))
    if magnitudes.ndim > 1:
        magnitudes = magnitudes.max(axis=1)
    if magnitudes.size == 0:
        return np.zeros(0, dtype=np.float32)

    starts = np.arange(0, magnitudes.size, block_size)
    peaks = np.maximum.reduceat(magnitudes, starts)
    return np.clip(peaks, 0.0, 1.0).astype(np.float32)


def extract_amplitudes(
    clip: bytes,
    block_size: Optional[int] = None,
    temp_directory: Optional[str] = None,
) -> Optional[np.ndarray]:
    """Decode a clip into its amplitude sequence.

    This performs a full decode and must not run on the GUI thread.

    Args:
        clip: Encoded clip bytes.
        block_size: Frames per amplitude value (config default if None).
        temp_directory: Directory for temporary decode files.

    Returns:
        Amplitude sequence, or None if the clip is empty or undecodable.
    """
    if not clip:
        logger.debug("Empty clip, no amplitudes")
        return None

    if block_size is None:
        block_size = config.get("waveform.block_size", 1024)
    if temp_directory is None:
        temp_directory = config.get("waveform.temp_directory", None)

    try:
        frames, sample_rate = decode_clip(clip, temp_directory)
    except DecodeFailed as e:
        logger.warning(f"🟡 {e}")
        return None

    if len(frames) == 0:
        logger.warning("🟡 Clip decoded to zero frames")
        return None

    peaks = block_peaks(frames, block_size)
    logger.debug(
        f"Extracted {peaks.size} amplitude blocks from "
        f"{len(frames) / sample_rate:.2f}s of audio"
    )
    return peaks
