"""Tests for HttpxCaptionSource and caption language helpers."""

from __future__ import annotations

import httpx
import pytest
import respx

from otakuhub.domain.entities import SubtitleFetchFailed
from otakuhub.infrastructure.subtitles.fetcher import HttpxCaptionSource
from otakuhub.infrastructure.subtitles.languages import (
    default_caption_index,
    language_code,
)

_URL = "https://subs.example/en.vtt"


@pytest.fixture()
def source() -> HttpxCaptionSource:
    return HttpxCaptionSource(http_client=httpx.AsyncClient())


class TestFetchText:
    @respx.mock
    async def test_returns_body(self, source: HttpxCaptionSource) -> None:
        route = respx.get(_URL).respond(text="WEBVTT\n")

        assert await source.fetch_text(_URL) == "WEBVTT\n"
        assert route.calls.last.request.headers["Referer"] == "https://megacloud.tv/"

    @respx.mock
    async def test_custom_headers(self) -> None:
        route = respx.get(_URL).respond(text="WEBVTT\n")
        source = HttpxCaptionSource(
            http_client=httpx.AsyncClient(), headers={"X-Test": "1"}
        )

        await source.fetch_text(_URL)

        headers = route.calls.last.request.headers
        assert headers["X-Test"] == "1"
        assert "Referer" not in headers

    @respx.mock
    async def test_http_error(self, source: HttpxCaptionSource) -> None:
        respx.get(_URL).respond(status_code=404)

        with pytest.raises(SubtitleFetchFailed, match="404"):
            await source.fetch_text(_URL)

    @respx.mock
    async def test_network_error(self, source: HttpxCaptionSource) -> None:
        respx.get(_URL).mock(side_effect=httpx.ReadTimeout("slow"))

        with pytest.raises(SubtitleFetchFailed, match="network error"):
            await source.fetch_text(_URL)


class TestLanguageCode:
    @pytest.mark.parametrize(
        ("label", "code"),
        [
            ("English", "en"),
            ("English - CC", "en"),
            ("Português - Brasil", "pt"),
            ("Spanish (Latin America)", "es"),
            ("Bahasa Indonesia / Indonesian", "id"),
            ("Klingon", "unknown"),
            ("", "unknown"),
        ],
    )
    def test_codes(self, label: str, code: str) -> None:
        assert language_code(label) == code


class TestDefaultCaptionIndex:
    def test_prefers_english(self) -> None:
        assert default_caption_index(["French", "English", "German"]) == 1

    def test_falls_back_to_first(self) -> None:
        assert default_caption_index(["French", "German"]) == 0

    def test_no_tracks(self) -> None:
        assert default_caption_index([]) == -1
