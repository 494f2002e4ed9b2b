from .downloads import DownloadQueue
from .load_episode import LoadEpisodeUseCase
from .playback_session import PlaybackSession, SessionEvent, SessionEventKind

__all__ = [
    "DownloadQueue",
    "LoadEpisodeUseCase",
    "PlaybackSession",
    "SessionEvent",
    "SessionEventKind",
]
