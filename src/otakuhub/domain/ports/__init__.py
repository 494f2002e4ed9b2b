from .cache import CachePort
from .caption_source import CaptionSourcePort
from .catalog_source import StreamCatalogPort
from .download_repository import DownloadRepository
from .downloader import EpisodeDownloaderPort, ProgressCallback
from .media_player import MediaPlayerPort, PlayerEvent, PlayerEventKind

__all__ = [
    "CachePort",
    "CaptionSourcePort",
    "DownloadRepository",
    "EpisodeDownloaderPort",
    "MediaPlayerPort",
    "PlayerEvent",
    "PlayerEventKind",
    "ProgressCallback",
    "StreamCatalogPort",
]
