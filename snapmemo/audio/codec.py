"""Clip encoding and decoding.

Captured PCM is stored as a single-track container (OGG/Vorbis by default)
through libsndfile. Decoding tries libsndfile in memory first and falls back
to FFmpeg for containers libsndfile cannot read (e.g. imported M4A memos).
The FFmpeg path needs real files; they are created per call and always
removed before the call returns. Playback reads clips through ClipReader,
which decodes frames as they are asked for.
"""

import io
import tempfile
import uuid
from pathlib import Path
from typing import Optional, Tuple

import ffmpeg
import numpy as np
import soundfile as sf

from snapmemo.utils.exceptions import DecodeFailed, EncodeFailed
from snapmemo.utils.logger import setup_logger

logger = setup_logger(__name__)


def encode_clip(
    frames: np.ndarray,
    sample_rate: int,
    clip_format: str = "OGG",
    subtype: Optional[str] = "VORBIS",
) -> bytes:
    """Encode captured frames into clip bytes.

    Args:
        frames: Float32 samples, shape (frames,) or (frames, channels).
        sample_rate: Sample rate of the frames.
        clip_format: libsndfile container name.
        subtype: libsndfile subtype, or None for the format default.

    Returns:
        Encoded clip bytes.

    Raises:
        EncodeFailed: If libsndfile rejects the frames or format.
    """
    buffer = io.BytesIO()
    try:
        sf.write(
            buffer,
            np.clip(frames, -1.0, 1.0),
            sample_rate,
            format=clip_format,
            subtype=subtype,
        )
    except (sf.SoundFileError, RuntimeError, ValueError, TypeError) as e:
        raise EncodeFailed(f"Could not encode {clip_format} clip: {e}") from e
    return buffer.getvalue()


def decode_clip(
    clip: bytes, temp_directory: Optional[str] = None
) -> Tuple[np.ndarray, int]:
    """Decode clip bytes into float32 frames.

    Args:
        clip: Encoded clip bytes.
        temp_directory: Where the FFmpeg fallback may place its temporary
            files (system temp directory if None).

    Returns:
        Tuple of (frames with shape (n, channels), sample_rate).

    Raises:
        DecodeFailed: If the clip is empty or no decoder can read it.
    """
    if not clip:
        raise DecodeFailed("Clip is empty")

    try:
        data, sample_rate = sf.read(io.BytesIO(clip), dtype="float32", always_2d=True)
        return data, sample_rate
    except (sf.SoundFileError, RuntimeError) as e:
        logger.debug(f"libsndfile could not decode clip ({e}), trying FFmpeg")

    return _decode_with_ffmpeg(clip, temp_directory)


class ClipReader:
    """Incremental reader over clip bytes.

    Opening a reader parses only the container header; frames are decoded
    as read() asks for them. Clips libsndfile cannot open are decoded in
    full through FFmpeg and served from memory.

    Attributes:
        frames: Total frame count reported by the container.
        samplerate: Sample rate in Hz.
        channels: Channel count.
    """

    def __init__(self, clip: bytes, temp_directory: Optional[str] = None) -> None:
        """Open a clip for reading.

        Raises:
            DecodeFailed: If the clip is empty or no decoder can read it.
        """
        if not clip:
            raise DecodeFailed("Clip is empty")

        self._file: Optional[sf.SoundFile] = None
        self._decoded: Optional[np.ndarray] = None
        self._position = 0

        try:
            self._file = sf.SoundFile(io.BytesIO(clip))
        except (sf.SoundFileError, RuntimeError) as e:
            logger.debug(f"libsndfile could not open clip ({e}), trying FFmpeg")
            self._decoded, self.samplerate = _decode_with_ffmpeg(clip, temp_directory)
            self.frames = len(self._decoded)
            self.channels = self._decoded.shape[1]
        else:
            self.samplerate = self._file.samplerate
            self.frames = self._file.frames
            self.channels = self._file.channels

    def read(self, count: int) -> np.ndarray:
        """Return up to count float32 frames with shape (n, channels).

        Fewer than count frames means the clip is exhausted.

        Raises:
            DecodeFailed: If the clip data is corrupt past its header.
        """
        if self._file is not None:
            if self._file.closed:
                return np.zeros((0, self.channels), dtype=np.float32)
            try:
                return self._file.read(count, dtype="float32", always_2d=True)
            except (sf.SoundFileError, RuntimeError) as e:
                raise DecodeFailed(f"Clip data is unreadable: {e}") from e

        chunk = self._decoded[self._position : self._position + count]
        self._position += len(chunk)
        return chunk

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
        else:
            self._position = self.frames


def _decode_with_ffmpeg(
    clip: bytes, temp_directory: Optional[str]
) -> Tuple[np.ndarray, int]:
    temp_dir = Path(temp_directory) if temp_directory else Path(tempfile.gettempdir())
    temp_dir.mkdir(parents=True, exist_ok=True)

    token = uuid.uuid4().hex
    source_path = temp_dir / f"snapmemo_{token}.clip"
    decoded_path = temp_dir / f"snapmemo_{token}.wav"

    try:
        source_path.write_bytes(clip)

        stream = ffmpeg.input(str(source_path))
        stream = ffmpeg.output(
            stream,
            str(decoded_path),
            acodec="pcm_s16le",
            y=None,
        )
        ffmpeg.run(stream, quiet=True)

        data, sample_rate = sf.read(str(decoded_path), dtype="float32", always_2d=True)
        return data, sample_rate

    except ffmpeg.Error as e:
        stderr = e.stderr.decode(errors="replace") if e.stderr else str(e)
        raise DecodeFailed(f"FFmpeg could not decode clip: {stderr.strip()}") from e
    except FileNotFoundError as e:
        raise DecodeFailed("FFmpeg not found, cannot decode clip") from e
    except (sf.SoundFileError, RuntimeError) as e:
        raise DecodeFailed(f"Decoded clip is unreadable: {e}") from e
    finally:
        for path in (source_path, decoded_path):
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                logger.warning(f"🟡 Failed to remove {path.name}: {e}")
