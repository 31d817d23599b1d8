"""Tests for hardware session handling."""

import sys
import types

import pytest

from snapmemo.audio import session
from snapmemo.utils.exceptions import SessionUnavailable

DEVICES = [
    {
        "name": "Built-in Microphone",
        "max_input_channels": 1,
        "max_output_channels": 0,
        "default_samplerate": 48000.0,
    },
    {
        "name": "Built-in Speakers",
        "max_input_channels": 0,
        "max_output_channels": 2,
        "default_samplerate": 44100.0,
    },
]


class PortAudioError(Exception):
    pass


def make_sounddevice(supported_rates=(48000,), output_fails=False):
    """Build a sounddevice stand-in that accepts only some sample rates."""
    opened = []

    class Stream:
        def __init__(self, device=None, channels=1, samplerate=0, **kwargs):
            if samplerate not in supported_rates:
                raise PortAudioError(f"Invalid sample rate {samplerate}")
            self.samplerate = samplerate
            self.active = False
            self.closed = False
            opened.append(self)

        def start(self):
            self.active = True

        def stop(self):
            self.active = False

        def close(self):
            self.closed = True

    class OutputStream(Stream):
        def __init__(self, *args, **kwargs):
            if output_fails:
                raise PortAudioError("Device unavailable")
            super().__init__(*args, **kwargs)

    def query_devices(device=None, kind=None):
        if kind is not None:
            return DEVICES[0] if kind == "input" else DEVICES[1]
        if device is None:
            return DEVICES
        if not 0 <= device < len(DEVICES):
            raise ValueError(f"No device {device}")
        return DEVICES[device]

    module = types.SimpleNamespace(
        PortAudioError=PortAudioError,
        InputStream=Stream,
        OutputStream=OutputStream,
        query_devices=query_devices,
        opened=opened,
    )
    return module


@pytest.fixture
def sounddevice(monkeypatch):
    fake = make_sounddevice()
    monkeypatch.setitem(sys.modules, "sounddevice", fake)
    return fake


def test_list_devices(sounddevice):
    devices = session.list_devices()

    assert [device["index"] for device in devices] == [0, 1]
    assert devices[0]["name"] == "Built-in Microphone"
    assert devices[1]["max_output_channels"] == 2


@pytest.mark.parametrize(
    "device, kind, expected",
    [
        (None, "input", None),
        (0, "input", 0),
        (1, "input", None),
        (1, "output", 1),
        (7, "input", None),
    ],
)
def test_validate_device(sounddevice, device, kind, expected):
    assert session.validate_device(device, kind) == expected


def test_input_falls_back_to_device_rate(sounddevice):
    stream, rate = session.open_input_stream(None, 44100, 1, 1024, lambda *a: None)

    assert rate == 48000
    assert stream.active


def test_input_without_usable_rate_is_unavailable(monkeypatch):
    monkeypatch.setitem(sys.modules, "sounddevice", make_sounddevice(supported_rates=()))

    with pytest.raises(SessionUnavailable):
        session.open_input_stream(None, 44100, 1, 1024, lambda *a: None)


def test_output_failure_is_unavailable(monkeypatch):
    monkeypatch.setitem(
        sys.modules, "sounddevice", make_sounddevice(output_fails=True)
    )

    with pytest.raises(SessionUnavailable):
        session.open_output_stream(None, 48000, 1, 1024, lambda *a: None)


def test_close_stream_stops_and_closes(sounddevice):
    stream = session.open_output_stream(None, 48000, 2, 1024, lambda *a: None)
    session.close_stream(stream)

    assert not stream.active
    assert stream.closed


@pytest.mark.hardware
def test_real_devices_are_listed():
    devices = session.list_devices()
    assert any(device["max_input_channels"] > 0 for device in devices)
