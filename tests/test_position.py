"""Tests for the playback-position mapper."""

import pytest

from snapmemo.audio.engine import PlaybackState
from snapmemo.waveform.position import (
    PlaybackProgress,
    bar_states,
    format_time,
    threshold_index,
)


def test_halfway_through_marks_bar_fifty():
    assert threshold_index(5.0, 10.0, 100) == 50


@pytest.mark.parametrize("current_time", [0.0, 3.0, 100.0])
def test_zero_duration_leaves_all_bars_unplayed(current_time):
    assert threshold_index(current_time, 0.0, 100) == -1
    assert not any(bar_states(100, current_time, 0.0))


def test_negative_duration_is_treated_as_unknown():
    assert threshold_index(1.0, -2.0, 100) == -1


def test_bar_states_include_threshold_bar():
    states = bar_states(100, 5.0, 10.0)
    assert states[50] is True
    assert states[51] is False
    assert sum(states) == 51


def test_start_of_playback_marks_first_bar():
    states = bar_states(10, 0.0, 4.0)
    assert states == [True] + [False] * 9


def test_end_of_playback_marks_every_bar():
    assert all(bar_states(100, 10.0, 10.0))


@pytest.mark.parametrize(
    "seconds, expected",
    [(0, "00:00"), (7.9, "00:07"), (30, "00:30"), (75.2, "01:15"), (-1, "00:00")],
)
def test_format_time(seconds, expected):
    assert format_time(seconds) == expected


class TestPlaybackProgress:
    def test_emits_only_on_threshold_change(self, qapp):
        progress = PlaybackProgress(bar_count=100)
        seen = []
        progress.progress_changed.connect(seen.append)

        progress.on_time_updated(5.0, 10.0)
        progress.on_time_updated(5.01, 10.0)
        progress.on_time_updated(5.25, 10.0)

        assert seen == [50, 52]
        assert progress.threshold == 52

    def test_state_change_resets_to_unplayed(self, qapp):
        progress = PlaybackProgress(bar_count=100)
        seen = []
        progress.progress_changed.connect(seen.append)

        progress.on_time_updated(2.0, 4.0)
        progress.on_state_changed(PlaybackState.IDLE)

        assert seen == [50, -1]
        assert progress.threshold == -1

    def test_bar_count_change_recomputes(self, qapp):
        progress = PlaybackProgress()
        progress.on_time_updated(5.0, 10.0)
        assert progress.threshold == -1

        progress.set_bar_count(20)
        assert progress.bar_count == 20
        assert progress.threshold == 10

    def test_follows_engine_playback(self, engine, fake_session, clip_factory):
        progress = PlaybackProgress(bar_count=100)
        progress.bind(engine)

        engine.start_playback(clip_factory(seconds=1.0, sample_rate=8000))
        fake_session.drain(4000)
        engine.update_time()
        assert progress.threshold == 50

        engine.stop_playback()
        assert progress.threshold == -1
