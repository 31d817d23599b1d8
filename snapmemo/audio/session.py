"""Hardware audio session handling.

This module is the only place PortAudio streams are opened. It handles
device validation, sample rate fallback and translation of PortAudio
failures into SessionUnavailable for the AudioEngine.

sounddevice is imported on use: loading it requires the PortAudio shared
library, which headless machines may not have.
"""

from typing import Any, Callable, List, Optional, Tuple

from snapmemo.utils.exceptions import SessionUnavailable
from snapmemo.utils.logger import setup_logger

logger = setup_logger(__name__)

_CHANNEL_KEYS = {"input": "max_input_channels", "output": "max_output_channels"}


def _sounddevice() -> Any:
    try:
        import sounddevice as sd
    except OSError as e:
        raise SessionUnavailable(f"PortAudio library not available: {e}") from e
    return sd


def list_devices() -> List[dict]:
    """Get list of available audio devices.

    Returns:
        List of device information dictionaries.
    """
    sd = _sounddevice()
    devices = []
    for i, device in enumerate(sd.query_devices()):
        devices.append(
            {
                "index": i,
                "name": device["name"],
                "max_input_channels": device["max_input_channels"],
                "max_output_channels": device["max_output_channels"],
                "default_samplerate": device["default_samplerate"],
            }
        )
    return devices


def validate_device(device: Optional[int], kind: str = "input") -> Optional[int]:
    """Validate a configured device, falling back to the system default.

    Args:
        device: Configured device index, or None for the system default.
        kind: "input" or "output".

    Returns:
        The device index if it supports the requested direction, else None.
    """
    if device is None:
        logger.debug(f"No {kind} device configured, using system default")
        return None

    sd = _sounddevice()
    try:
        device_info = sd.query_devices(device)
    except (sd.PortAudioError, ValueError) as e:
        logger.warning(f"🟡 Device {device} validation failed: {e}")
        return None

    if device_info[_CHANNEL_KEYS[kind]] < 1:
        logger.warning(
            f"🟡 Configured device {device} has no {kind} channels, "
            "falling back to default"
        )
        return None

    logger.debug(f"Device {device} validated for {kind}: {device_info['name']}")
    return device


def _default_samplerate(sd: Any, device: Optional[int], kind: str) -> Optional[int]:
    try:
        if device is None:
            device_info = sd.query_devices(kind=kind)
        else:
            device_info = sd.query_devices(device)
        return int(device_info["default_samplerate"])
    except (sd.PortAudioError, ValueError, KeyError) as e:
        logger.debug(f"Could not query default sample rate: {e}")
        return None


def open_input_stream(
    device: Optional[int],
    sample_rate: int,
    channels: int,
    blocksize: int,
    callback: Callable,
) -> Tuple[Any, int]:
    """Open and start a capture stream.

    The configured rate is tried first, then the device's default rate.

    Args:
        device: Input device index, or None for the system default.
        sample_rate: Preferred capture rate.
        channels: Capture channel count.
        blocksize: Frames per callback.
        callback: PortAudio input callback.

    Returns:
        Tuple of (started stream, actual sample rate).

    Raises:
        SessionUnavailable: If no stream configuration could be started.
    """
    sd = _sounddevice()

    rates = [sample_rate]
    fallback_rate = _default_samplerate(sd, device, "input")
    if fallback_rate and fallback_rate != sample_rate:
        rates.append(fallback_rate)

    last_error: Optional[Exception] = None
    for rate in rates:
        stream = None
        try:
            stream = sd.InputStream(
                device=device,
                channels=channels,
                samplerate=rate,
                blocksize=blocksize,
                dtype="float32",
                callback=callback,
            )
            stream.start()
            if rate != sample_rate:
                logger.warning(
                    f"🟡 Sample rate changed from {sample_rate}Hz to {rate}Hz for compatibility"  # noqa: E501
                )
            return stream, rate
        except (sd.PortAudioError, ValueError, OSError) as e:
            logger.debug(f"Opening input stream at {rate}Hz failed: {e}")
            last_error = e
            if stream is not None:
                close_stream(stream)

    raise SessionUnavailable(f"Could not open audio input: {last_error}")


def open_output_stream(
    device: Optional[int],
    sample_rate: int,
    channels: int,
    blocksize: int,
    callback: Callable,
) -> Any:
    """Open and start a playback stream at exactly the clip's sample rate.

    Raises:
        SessionUnavailable: If the output device cannot be acquired.
    """
    sd = _sounddevice()

    stream = None
    try:
        stream = sd.OutputStream(
            device=device,
            channels=channels,
            samplerate=sample_rate,
            blocksize=blocksize,
            dtype="float32",
            callback=callback,
        )
        stream.start()
        return stream
    except (sd.PortAudioError, ValueError, OSError) as e:
        if stream is not None:
            close_stream(stream)
        raise SessionUnavailable(f"Could not open audio output: {e}") from e


def close_stream(stream: Any) -> None:
    """Stop and close a stream, logging instead of raising."""
    try:
        if stream.active:
            stream.stop()
        stream.close()
    except Exception as e:
        logger.debug(f"Error closing stream: {e}")
