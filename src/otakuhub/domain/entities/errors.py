"""Error taxonomy for catalog loading, source selection and captions."""

from __future__ import annotations

from otakuhub.domain.entities.streams import AudioTrack


class OtakuHubError(Exception):
    """Base error for OtakuHub domain/use cases."""


class CatalogFetchFailed(OtakuHubError):
    """Stream listing for one audio track could not be fetched or validated."""

    def __init__(self, track: AudioTrack, reason: str) -> None:
        super().__init__(f"{track.value} catalog fetch failed: {reason}")
        self.track = track
        self.reason = reason


class NoStreamsAvailable(OtakuHubError):
    """Neither audio track offers a single server."""

    def __init__(self, episode_id: str) -> None:
        super().__init__(f"No streams available for episode {episode_id!r}")
        self.episode_id = episode_id


class NoSourcesInEntry(OtakuHubError):
    """A manually selected server has no source candidates."""

    def __init__(self, track: AudioTrack, server_index: int) -> None:
        super().__init__(
            f"Server {server_index} of the {track.value} track has no sources"
        )
        self.track = track
        self.server_index = server_index


class SourceOpenFailed(OtakuHubError):
    """The media player could not open/initialize a candidate."""


class PlaybackStalled(OtakuHubError):
    """The media player reported an error after playback had started."""


class AllTracksExhausted(OtakuHubError):
    """Every server on every audio track failed."""

    def __init__(self, attempts: int) -> None:
        super().__init__(f"All servers failed after {attempts} attempts")
        self.attempts = attempts


class SubtitleFetchFailed(OtakuHubError):
    """A caption file could not be downloaded."""


class DownloadFailed(OtakuHubError):
    """An episode download could not be completed."""
