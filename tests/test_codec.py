"""Tests for clip encoding and decoding."""

import numpy as np
import pytest

from snapmemo.audio.codec import ClipReader, decode_clip, encode_clip
from snapmemo.utils.exceptions import DecodeFailed, EncodeFailed


def test_wav_clip_decodes_to_two_dimensional_frames():
    frames = np.linspace(-0.5, 0.5, 800, dtype=np.float32)
    clip = encode_clip(frames, 8000, "WAV", "PCM_16")

    decoded, rate = decode_clip(clip)

    assert rate == 8000
    assert decoded.shape == (800, 1)
    assert decoded.dtype == np.float32
    np.testing.assert_allclose(decoded[:, 0], frames, atol=1e-3)


def test_stereo_channels_are_kept():
    frames = np.zeros((400, 2), dtype=np.float32)
    frames[:, 1] = 0.5
    decoded, _ = decode_clip(encode_clip(frames, 8000, "FLAC", None))

    assert decoded.shape == (400, 2)
    assert decoded[:, 1].max() == pytest.approx(0.5, abs=1e-3)


def test_default_format_is_ogg_vorbis():
    frames = np.full((4410, 1), 0.2, dtype=np.float32)
    clip = encode_clip(frames, 44100)

    assert clip[:4] == b"OggS"
    decoded, rate = decode_clip(clip)
    assert rate == 44100
    assert len(decoded) > 0


def test_out_of_range_samples_are_clipped():
    frames = np.array([2.0, -3.0, 0.1], dtype=np.float32)
    decoded, _ = decode_clip(encode_clip(frames, 8000, "WAV", "FLOAT"))
    np.testing.assert_allclose(decoded[:, 0], [1.0, -1.0, 0.1], atol=1e-6)


def test_unknown_format_raises_encode_failed():
    with pytest.raises(EncodeFailed):
        encode_clip(np.zeros(10, dtype=np.float32), 8000, "NOT_A_FORMAT", None)


def test_empty_clip_raises_decode_failed():
    with pytest.raises(DecodeFailed):
        decode_clip(b"")


def test_garbage_clip_raises_and_cleans_temp_files(tmp_path):
    with pytest.raises(DecodeFailed):
        decode_clip(b"\x00\x01 definitely not audio", str(tmp_path))

    assert list(tmp_path.iterdir()) == []


class TestClipReader:
    def test_reads_header_then_frames_on_demand(self):
        frames = np.linspace(-0.5, 0.5, 1000, dtype=np.float32)
        reader = ClipReader(encode_clip(frames, 8000, "WAV", "PCM_16"))

        assert reader.frames == 1000
        assert reader.samplerate == 8000
        assert reader.channels == 1

        first = reader.read(600)
        rest = reader.read(600)

        assert first.shape == (600, 1)
        assert rest.shape == (400, 1)
        np.testing.assert_allclose(rest[:, 0], frames[600:], atol=1e-3)
        assert reader.read(600).shape == (0, 1)

    def test_closed_reader_returns_nothing(self, wav_clip):
        reader = ClipReader(wav_clip)
        reader.close()

        assert len(reader.read(100)) == 0

    def test_empty_clip_raises_decode_failed(self):
        with pytest.raises(DecodeFailed):
            ClipReader(b"")

    def test_unreadable_clip_raises_and_cleans_temp_files(self, tmp_path):
        with pytest.raises(DecodeFailed):
            ClipReader(b"\x00\x01 definitely not audio", str(tmp_path))

        assert list(tmp_path.iterdir()) == []
