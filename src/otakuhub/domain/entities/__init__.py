from .downloads import DownloadedSubtitle, DownloadItem, DownloadStatus, download_key
from .errors import (
    AllTracksExhausted,
    CatalogFetchFailed,
    DownloadFailed,
    NoSourcesInEntry,
    NoStreamsAvailable,
    OtakuHubError,
    PlaybackStalled,
    SourceOpenFailed,
    SubtitleFetchFailed,
)
from .selection import FallbackPolicy, SelectionPhase, SelectionState
from .streams import (
    AudioTrack,
    CaptionTrack,
    EpisodeCatalogs,
    MediaKind,
    PlayableSource,
    ServerEntry,
    SkipWindow,
    SourceCandidate,
    StreamCatalog,
)
from .subtitles import CueList, SubtitleCue

__all__ = [
    "AllTracksExhausted",
    "AudioTrack",
    "CaptionTrack",
    "CatalogFetchFailed",
    "CueList",
    "DownloadFailed",
    "DownloadItem",
    "DownloadStatus",
    "DownloadedSubtitle",
    "EpisodeCatalogs",
    "FallbackPolicy",
    "MediaKind",
    "NoSourcesInEntry",
    "NoStreamsAvailable",
    "OtakuHubError",
    "PlayableSource",
    "PlaybackStalled",
    "SelectionPhase",
    "SelectionState",
    "ServerEntry",
    "SkipWindow",
    "SourceCandidate",
    "SourceOpenFailed",
    "StreamCatalog",
    "SubtitleCue",
    "SubtitleFetchFailed",
    "download_key",
]
