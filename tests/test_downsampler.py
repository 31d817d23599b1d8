"""Tests for the max-pooling downsampler."""

import random

import pytest

from snapmemo.waveform.downsampler import downsample


def test_pairs_reduce_to_their_peaks():
    assert downsample([0.1, 0.9, 0.2, 0.8], 2) == [0.9, 0.8]


def test_empty_sequence_gives_empty_summary():
    assert downsample([], 100) == []


@pytest.mark.parametrize("target", [0, -3])
def test_non_positive_target_gives_empty_summary(target):
    assert downsample([0.1, 0.2], target) == []


def test_single_value_fills_every_slot():
    # Two degenerate buckets start at 0; the last bucket is [0, 1)
    assert downsample([0.5], 3) == [0.5, 0.5, 0.5]


def test_upsampling_repeats_bucket_start_values():
    assert downsample([0.2, 0.7], 5) == [0.2, 0.2, 0.2, 0.7, 0.7]


def test_equal_length_returns_copy():
    values = [0.3, 0.1, 0.4]
    result = downsample(values, 3)
    assert result == values
    assert result is not values


def test_uneven_buckets_cover_whole_input():
    # step = 7/3: buckets [0,2), [2,4), [4,7)
    assert downsample([0.1, 0.2, 0.3, 0.4, 0.5, 0.9, 0.6], 3) == [0.2, 0.4, 0.9]


def test_output_length_is_always_target():
    rng = random.Random(7)
    for length in (1, 5, 99, 100, 101, 1000, 4321):
        sequence = [rng.random() for _ in range(length)]
        assert len(downsample(sequence, 100)) == 100


def test_transient_peak_survives():
    sequence = [0.01] * 10000
    sequence[4321] = 1.0
    summary = downsample(sequence, 100)
    assert max(summary) == 1.0
    assert summary.count(1.0) == 1


def test_is_deterministic_and_idempotent():
    rng = random.Random(11)
    sequence = [rng.random() for _ in range(2500)]
    first = downsample(sequence, 100)
    assert downsample(sequence, 100) == first
    assert downsample(first, 100) == first


def test_accepts_numpy_arrays():
    np = pytest.importorskip("numpy")
    summary = downsample(np.array([0.1, 0.9, 0.2, 0.8], dtype=np.float32), 2)
    assert summary == pytest.approx([0.9, 0.8])
    assert all(isinstance(value, float) for value in summary)
