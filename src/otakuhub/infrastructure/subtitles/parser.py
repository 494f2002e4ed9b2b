"""WebVTT / SRT parser producing a ``CueList``.

Malformed cue blocks (bad timestamps, empty text) are dropped one by one;
they never abort the rest of the file.
"""

from __future__ import annotations

import html
import re

from otakuhub.domain.entities.subtitles import CueList, SubtitleCue

# HH:MM:SS.mmm, MM:SS.mmm; SRT uses "," for the fraction.
_TIMESTAMP_RE = re.compile(r"^(?:(\d+):)?(\d{1,2}):(\d{1,2})(?:[.,](\d{1,3}))?$")

_TAG_RE = re.compile(r"<[^>]*>")  # <b>, <i>, <c.yellow>, <00:00:01.000>, <v Bob>
_ASS_OVERRIDE_RE = re.compile(r"\{[^}]*\}")  # {\an8}, {\i1}

_ARROW = "-->"


def parse_timestamp(value: str) -> int | None:
    """Parse a cue timestamp into whole milliseconds; ``None`` if invalid.

    >>> parse_timestamp("01:02:03.450")
    3723450
    >>> parse_timestamp("02:03,5")
    123500
    """
    m = _TIMESTAMP_RE.match(value.strip())
    if m is None:
        return None
    hours, minutes, seconds, fraction = m.groups()
    minutes_i = int(minutes)
    seconds_i = int(seconds)
    if minutes_i >= 60 or seconds_i >= 60:
        return None
    millis = int(fraction.ljust(3, "0")) if fraction else 0
    total_seconds = int(hours or 0) * 3600 + minutes_i * 60 + seconds_i
    return total_seconds * 1000 + millis


def clean_cue_text(line: str) -> str:
    """Strip inline markup and decode HTML entities."""
    text = _TAG_RE.sub("", line)
    text = _ASS_OVERRIDE_RE.sub("", text)
    text = html.unescape(text).replace("\xa0", " ")
    return text.strip()


def _parse_timing(line: str) -> tuple[int, int] | None:
    start_raw, _, rest = line.partition(_ARROW)
    # Anything after the end timestamp is VTT cue settings (position, align).
    end_fields = rest.split()
    if not end_fields:
        return None
    start = parse_timestamp(start_raw)
    end = parse_timestamp(end_fields[0])
    if start is None or end is None or end <= start:
        return None
    return start, end


def _normalize(content: str) -> list[str]:
    if content.startswith("\ufeff"):
        content = content[1:]
    return content.replace("\r\n", "\n").replace("\r", "\n").split("\n")


def parse_subtitles(content: str) -> CueList:
    """Parse WebVTT or SRT text into cues.

    Only lines containing ``-->`` open a cue, so the ``WEBVTT`` header and
    ``NOTE``/``STYLE``/``REGION`` blocks fall through. A line directly
    above a timing line is that cue's identifier and is never cue text.
    """
    lines = _normalize(content)
    cues: list[SubtitleCue] = []

    i = 0
    while i < len(lines):
        line = lines[i].strip()
        if _ARROW not in line:
            i += 1
            continue

        timing = _parse_timing(line)
        i += 1

        text_lines: list[str] = []
        while i < len(lines):
            raw = lines[i].strip()
            if not raw or _ARROW in raw:
                break
            # Blank separator missing: this line is the next cue's identifier.
            if text_lines and i + 1 < len(lines) and _ARROW in lines[i + 1]:
                break
            cleaned = clean_cue_text(raw)
            if cleaned:
                text_lines.append(cleaned)
            i += 1

        if timing is None or not text_lines:
            continue
        start_ms, end_ms = timing
        cues.append(
            SubtitleCue(
                start=start_ms / 1000,
                end=end_ms / 1000,
                text="\n".join(text_lines),
            )
        )

    return CueList.of(cues)
