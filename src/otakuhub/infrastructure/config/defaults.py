"""Hardcoded default configuration values."""

from __future__ import annotations

from typing import Any

DEFAULT_CONFIG: dict[str, Any] = {
    "app_name": "otakuhub",
    "environment": "dev",
    "api": {
        "base_url": "https://hianime-api-b6ix.onrender.com",
        "include_proxy": True,
    },
    "http": {
        "timeout_seconds": 30.0,
        "user_agent": (
            "Mozilla/5.0 (Linux; Android 10; K) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/120.0.0.0 Mobile Safari/537.36"
        ),
        "max_retries": 3,
    },
    "playback": {
        "max_retries_per_server": 2,
        "max_total_servers": 6,
        "open_timeout_seconds": 20.0,
        "start_threshold_seconds": 2.0,
        "preferred_track": "original",
    },
    "downloads": {
        "directory": "./downloads",
    },
    "logging": {
        "level": "INFO",
        "format": None,  # Derived from environment in schema.py
    },
    "cache": {
        "dir": "./.cache/otakuhub",
    },
}
