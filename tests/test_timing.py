"""Tests for duration parsing and formatting."""

import pytest

from slashcut.timing import (
    format_frames_to_duration,
    frames_to_ms,
    frames_to_seconds,
    ms_to_frames,
    parse_duration,
    round_half_up,
    seconds_to_frames,
)


class TestParseDuration:
    @pytest.mark.parametrize("text,expected", [
        ("1.5s", 45),
        ("2m", 3600),
        ("30f", 30),
        ("1000", 30),
        ("500ms", 15),
        ("0", 0),
        ("0s", 0),
        ("1.5", 0),
        ("2S", 60),
        ("10F", 10),
        ("2.4f", 2),
        ("2.5f", 3),
        (" 3s ", 90),
    ])
    def test_valid(self, text, expected):
        assert parse_duration(text, 30) == expected

    @pytest.mark.parametrize("text", ["-5", "-1s", "abc", "", "1.5h", "s", "1 s", "1e3", None])
    def test_invalid_returns_none(self, text):
        assert parse_duration(text, 30) is None

    def test_depends_on_fps(self):
        assert parse_duration("1s", 24) == 24
        assert parse_duration("1s", 60) == 60
        assert parse_duration("30f", 60) == 30

    def test_rounds_half_away_from_zero(self):
        # 50ms at 30fps is exactly 1.5 frames
        assert parse_duration("50ms", 30) == 2


class TestFormatFramesToDuration:
    @pytest.mark.parametrize("frames,expected", [
        (0, "0f"),
        (15, "15f"),
        (29, "29f"),
        (30, "1s"),
        (90, "3s"),
        (45, "1.5s"),
        (1800, "1m"),
        (3600, "2m"),
        (1830, "61s"),
        (1845, "61.5s"),
    ])
    def test_at_30fps(self, frames, expected):
        assert format_frames_to_duration(frames, 30) == expected

    def test_at_24fps(self):
        assert format_frames_to_duration(12, 24) == "12f"
        assert format_frames_to_duration(36, 24) == "1.5s"
        assert format_frames_to_duration(1440, 24) == "1m"

    @pytest.mark.parametrize("frames,fps,expected", [(5, 4, "1.3s"), (25, 20, "1.3s"), (45, 20, "2.3s")])
    def test_tenths_round_half_up(self, frames, fps, expected):
        assert format_frames_to_duration(frames, fps) == expected


class TestConversions:
    def test_round_half_up(self):
        assert round_half_up(0.5) == 1
        assert round_half_up(2.5) == 3
        assert round_half_up(2.49) == 2

    def test_ms_frames(self):
        assert ms_to_frames(1000, 30) == 30
        assert frames_to_ms(45, 30) == 1500
        assert frames_to_ms(1, 30) == 33

    def test_seconds_frames(self):
        assert seconds_to_frames(2.5, 24) == 60
        assert frames_to_seconds(60, 24) == pytest.approx(2.5)

    @pytest.mark.parametrize("fps", [24, 25, 30, 60])
    def test_bare_millisecond_round_trip(self, fps):
        for frames in range(0, 200):
            ms = frames_to_ms(frames, fps)
            assert parse_duration(str(ms), fps) == ms_to_frames(ms, fps) == frames
