"""Caption file download over httpx."""

from __future__ import annotations

import httpx
import structlog

from otakuhub.domain.entities.errors import SubtitleFetchFailed

log = structlog.get_logger(__name__)

# Caption CDNs behind megacloud check the Referer like the video CDNs do.
_CAPTION_HEADERS: dict[str, str] = {"Referer": "https://megacloud.tv/"}


class HttpxCaptionSource:
    """Implements ``CaptionSourcePort`` with a plain GET."""

    def __init__(
        self,
        *,
        http_client: httpx.AsyncClient,
        headers: dict[str, str] | None = None,
    ) -> None:
        self._http = http_client
        self._headers = dict(_CAPTION_HEADERS if headers is None else headers)

    async def fetch_text(self, url: str) -> str:
        try:
            resp = await self._http.get(url, headers=self._headers)
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            log.warning(
                "caption_fetch_failed", url=url, status=e.response.status_code
            )
            raise SubtitleFetchFailed(f"HTTP {e.response.status_code} for {url}") from e
        except httpx.HTTPError as e:
            log.warning("caption_fetch_failed", url=url, error=str(e))
            raise SubtitleFetchFailed(f"network error for {url}: {e}") from e
        return resp.text
