"""Tests for DiskcacheAdapter against a real on-disk cache."""

from __future__ import annotations

from pathlib import Path

import pytest

from otakuhub.infrastructure.cache import DiskcacheAdapter


async def test_set_get_delete(tmp_path: Path) -> None:
    async with DiskcacheAdapter(directory=tmp_path / "cache") as cache:
        assert await cache.get("downloads") is None

        await cache.set("downloads", '[{"anime_slug": "x"}]')
        assert await cache.get("downloads") == '[{"anime_slug": "x"}]'

        assert await cache.delete("downloads") is True
        assert await cache.delete("downloads") is False
        assert await cache.get("downloads") is None


async def test_values_survive_reopen(tmp_path: Path) -> None:
    directory = tmp_path / "cache"
    async with DiskcacheAdapter(directory=directory) as cache:
        await cache.set("downloads", "[]")

    async with DiskcacheAdapter(directory=directory) as reopened:
        assert await reopened.get("downloads") == "[]"


async def test_use_before_open_fails(tmp_path: Path) -> None:
    cache = DiskcacheAdapter(directory=tmp_path / "cache")
    with pytest.raises(RuntimeError, match="not open"):
        await cache.get("downloads")


async def test_aclose_is_idempotent(tmp_path: Path) -> None:
    cache = DiskcacheAdapter(directory=tmp_path / "cache")
    await cache.__aenter__()
    await cache.aclose()
    await cache.aclose()
