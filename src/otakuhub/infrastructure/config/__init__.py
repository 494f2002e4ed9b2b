from __future__ import annotations

from .load import load_config
from .schema import ApiConfig, AppConfig, DownloadsConfig, EnvOverrides, PlaybackConfig

__all__ = [
    "ApiConfig",
    "AppConfig",
    "DownloadsConfig",
    "EnvOverrides",
    "PlaybackConfig",
    "load_config",
]
