"""Tests for the WebVTT/SRT parser."""

from __future__ import annotations

import pytest

from otakuhub.domain.entities import SubtitleCue
from otakuhub.infrastructure.subtitles.parser import (
    clean_cue_text,
    parse_subtitles,
    parse_timestamp,
)

_VTT = """WEBVTT
Kind: captions
Language: en

NOTE
This block is a comment

STYLE
::cue { color: yellow }

intro
00:00:01.000 --> 00:00:03.000 align:start position:10%
<i>Hello</i> &amp; welcome

2
00:00:04.500 --> 00:00:06.000
{\\an8}<c.yellow>Top</c> line
second line
"""

_SRT = """1
00:00:01,000 --> 00:00:02,500
First

2
00:01:02,250 --> 00:01:04,000
<b>Second</b>
"""


class TestParseTimestamp:
    @pytest.mark.parametrize(
        ("raw", "millis"),
        [
            ("00:00:01.000", 1000),
            ("01:02:03.450", 3723450),
            ("02:03.500", 123500),
            ("00:00:01,250", 1250),
            ("00:05", 5000),
            ("00:00:01.5", 1500),
        ],
    )
    def test_valid(self, raw: str, millis: int) -> None:
        assert parse_timestamp(raw) == millis

    @pytest.mark.parametrize("raw", ["", "1.000", "00:61:00.000", "aa:bb:cc", "00:00:70"])
    def test_invalid(self, raw: str) -> None:
        assert parse_timestamp(raw) is None


class TestCleanCueText:
    def test_strips_tags_and_overrides(self) -> None:
        assert clean_cue_text("{\\an8}<b>Bold</b> <00:00:01.000>text") == "Bold text"

    def test_decodes_entities(self) -> None:
        assert clean_cue_text("Tom &amp; Jerry&nbsp;&lt;3") == "Tom & Jerry <3"


class TestParseSubtitles:
    def test_minimal_vtt(self) -> None:
        cues = parse_subtitles("WEBVTT\n\n1\n00:00:01.000 --> 00:00:03.000\nHello")
        assert list(cues) == [SubtitleCue(start=1.0, end=3.0, text="Hello")]

    def test_full_vtt(self) -> None:
        cues = list(parse_subtitles(_VTT))
        assert cues == [
            SubtitleCue(1.0, 3.0, "Hello & welcome"),
            SubtitleCue(4.5, 6.0, "Top line\nsecond line"),
        ]

    def test_srt(self) -> None:
        cues = list(parse_subtitles(_SRT))
        assert cues == [
            SubtitleCue(1.0, 2.5, "First"),
            SubtitleCue(62.25, 64.0, "Second"),
        ]

    def test_bom_and_crlf(self) -> None:
        text = "\ufeffWEBVTT\r\n\r\n00:01.000 --> 00:02.000\r\nHi\r\n"
        assert list(parse_subtitles(text)) == [SubtitleCue(1.0, 2.0, "Hi")]

    def test_single_word_cue_text_is_kept(self) -> None:
        text = "WEBVTT\n\n00:00:01.000 --> 00:00:02.000\nYes\n"
        assert parse_subtitles(text).active_text(1.5) == "Yes"

    def test_malformed_block_is_dropped(self) -> None:
        text = (
            "WEBVTT\n\n"
            "00:00:01.000 --> 00:00:xx.000\nbroken\n\n"
            "00:00:05.000 --> 00:00:04.000\nbackwards\n\n"
            "00:00:06.000 --> 00:00:07.000\n\n"
            "00:00:08.000 --> 00:00:09.000\nkept\n"
        )
        assert list(parse_subtitles(text)) == [SubtitleCue(8.0, 9.0, "kept")]

    def test_missing_blank_separator(self) -> None:
        text = (
            "WEBVTT\n\n"
            "00:00:01.000 --> 00:00:02.000\nfirst\n"
            "00:00:03.000 --> 00:00:04.000\nsecond\n"
        )
        assert [c.text for c in parse_subtitles(text)] == ["first", "second"]

    def test_identifier_without_blank_separator(self) -> None:
        text = (
            "WEBVTT\n\n"
            "00:00:01.000 --> 00:00:02.000\nfirst\n"
            "cue-2\n"
            "00:00:03.000 --> 00:00:04.000\nsecond\n"
        )
        assert [c.text for c in parse_subtitles(text)] == ["first", "second"]

    def test_idempotent(self) -> None:
        assert parse_subtitles(_VTT) == parse_subtitles(_VTT)
        assert list(parse_subtitles(_SRT)) == list(parse_subtitles(_SRT))

    def test_empty_input(self) -> None:
        assert len(parse_subtitles("")) == 0
        assert len(parse_subtitles("WEBVTT\n")) == 0
