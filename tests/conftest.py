"""Shared pytest configuration and fixtures for the SnapMemo test suite."""

import os
import sys
import tempfile
from pathlib import Path

import numpy as np
import pytest

# Ensure the project root is in the path for imports
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

# The global config is loaded on first import of snapmemo, so point it at a
# throwaway file before any test module imports the package.
_CONFIG_DIR = Path(tempfile.mkdtemp(prefix="snapmemo-tests-"))
_CONFIG_PATH = _CONFIG_DIR / "config.yml"
_CONFIG_PATH.write_text(
    "logging:\n"
    "  level: DEBUG\n"
    "  file_enabled: false\n"
    f"storage:\n  directory: {(_CONFIG_DIR / 'captures').as_posix()}\n"
)
os.environ["SNAPMEMO_CONFIG"] = str(_CONFIG_PATH)


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "hardware: mark test as requiring a real audio device"
    )


def pytest_addoption(parser):
    """Add custom command-line options."""
    parser.addoption(
        "--run-hardware",
        action="store_true",
        default=False,
        help="Run tests that require a real audio device",
    )


def pytest_collection_modifyitems(config, items):
    """Skip hardware tests unless --run-hardware is specified."""
    if config.getoption("--run-hardware"):
        return

    skip_hardware = pytest.mark.skip(reason="Need --run-hardware option to run")
    for item in items:
        if "hardware" in item.keywords:
            item.add_marker(skip_hardware)


# =============================================================================
# Fakes
# =============================================================================

class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 100.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeStream:
    """Stands in for a started sounddevice stream."""

    def __init__(self) -> None:
        self.active = True
        self.closed = False

    def stop(self) -> None:
        self.active = False

    def close(self) -> None:
        self.active = False
        self.closed = True


class FakeSession:
    """Records what the engine asked of the audio session."""

    def __init__(self) -> None:
        self.input_callback = None
        self.output_callback = None
        self.streams = []
        self.output_channels = None
        self.output_rate = None

    def validate_device(self, device, kind="input"):
        return device

    def open_input_stream(self, device, sample_rate, channels, blocksize, callback):
        self.input_callback = callback
        stream = FakeStream()
        self.streams.append(stream)
        return stream, sample_rate

    def open_output_stream(self, device, sample_rate, channels, blocksize, callback):
        self.output_callback = callback
        self.output_rate = sample_rate
        self.output_channels = channels
        stream = FakeStream()
        self.streams.append(stream)
        return stream

    def feed(self, value: float = 0.5, frames: int = 1024, channels: int = 1) -> None:
        """Deliver one block of captured audio to the engine."""
        block = np.full((frames, channels), value, dtype=np.float32)
        self.input_callback(block, frames, None, None)

    def drain(self, frames: int) -> np.ndarray:
        """Pull frames from the engine's playback callback."""
        out = np.zeros((frames, self.output_channels), dtype=np.float32)
        self.output_callback(out, frames, None, None)
        return out

    @property
    def last_stream(self) -> FakeStream:
        return self.streams[-1]


# =============================================================================
# Shared Fixtures
# =============================================================================

@pytest.fixture(scope="session")
def qapp():
    """Return the process-wide QApplication."""
    from PySide6.QtWidgets import QApplication

    app = QApplication.instance()
    if app is None:
        app = QApplication([])
    return app


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_session(monkeypatch) -> FakeSession:
    """Replace the hardware session functions used by the engine."""
    from snapmemo.audio import session

    fake = FakeSession()
    monkeypatch.setattr(session, "validate_device", fake.validate_device)
    monkeypatch.setattr(session, "open_input_stream", fake.open_input_stream)
    monkeypatch.setattr(session, "open_output_stream", fake.open_output_stream)
    return fake


@pytest.fixture
def engine(qapp, clock, fake_session):
    """AudioEngine with fake hardware and a manual clock, encoding WAV clips."""
    from snapmemo.audio.engine import AudioEngine

    audio_engine = AudioEngine(
        min_hold_duration=8.0,
        max_recording_duration=30.0,
        update_rate_hz=20,
        clip_format="WAV",
        clip_subtype="PCM_16",
        clock=clock,
    )
    yield audio_engine
    audio_engine.shutdown()


def make_clip(
    seconds: float = 0.5,
    value: float = 0.5,
    sample_rate: int = 8000,
    channels: int = 1,
) -> bytes:
    """Encode a constant-level WAV clip."""
    from snapmemo.audio.codec import encode_clip

    frames = np.full((int(seconds * sample_rate), channels), value, dtype=np.float32)
    return encode_clip(frames, sample_rate, "WAV", "PCM_16")


@pytest.fixture
def wav_clip() -> bytes:
    return make_clip()


@pytest.fixture
def clip_factory():
    return make_clip
