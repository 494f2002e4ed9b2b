from __future__ import annotations

import argparse
import asyncio
import json
import sys
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import structlog

from otakuhub.domain.entities.downloads import DownloadStatus
from otakuhub.domain.entities.errors import OtakuHubError
from otakuhub.domain.entities.selection import FallbackPolicy
from otakuhub.domain.entities.streams import AudioTrack, EpisodeCatalogs, StreamCatalog
from otakuhub.infrastructure.config import AppConfig, load_config
from otakuhub.infrastructure.logging.setup import configure_logging
from otakuhub.infrastructure.persistence.download_cache import item_to_dict
from otakuhub.infrastructure.playback.selector import plan_attempts
from otakuhub.infrastructure.subtitles.fetcher import HttpxCaptionSource
from otakuhub.infrastructure.subtitles.parser import parse_subtitles
from otakuhub.interfaces.composition import build_container, build_http_client

log = structlog.get_logger(__name__)


def _track(value: str) -> AudioTrack:
    try:
        return AudioTrack.parse(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def _parse_args(argv: Iterable[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="otakuhub")

    # Config wiring flags (no business logic)
    parser.add_argument("--config", default=None, help="Path to YAML config file.")
    parser.add_argument("--dotenv", default=None, help="Path to .env file.")
    parser.add_argument(
        "--base-url",
        default=None,
        help="Override the streaming API base URL.",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override log level.",
    )
    parser.add_argument(
        "--log-format",
        default=None,
        choices=["json", "console"],
        help="Override log format.",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    streams = sub.add_parser(
        "streams", help="Show both stream catalogs and the attempt order."
    )
    streams.add_argument("episode_id")
    streams.add_argument("--track", type=_track, default=None)
    streams.add_argument(
        "--no-proxy",
        action="store_true",
        help="Ask the API for direct URLs only.",
    )

    subtitles = sub.add_parser("subtitles", help="Parse a WebVTT/SRT file.")
    subtitles.add_argument("source", metavar="PATH_OR_URL")
    subtitles.add_argument(
        "--at",
        type=float,
        default=None,
        metavar="SECONDS",
        help="Print only the cue text active at this position.",
    )

    download = sub.add_parser("download", help="Download one episode and wait.")
    download.add_argument("episode_id")
    download.add_argument("--anime-slug", required=True)
    download.add_argument("--episode", type=int, required=True)
    download.add_argument("--title", default="")
    download.add_argument("--track", type=_track, default=AudioTrack.ORIGINAL)

    sub.add_parser("downloads", help="List download records.")

    return parser.parse_args(argv)


def _print_json(data: Any) -> None:
    sys.stdout.write(json.dumps(data, indent=2, ensure_ascii=False) + "\n")


# ----------------------------------------------------------------------
# Subcommands
# ----------------------------------------------------------------------


def _catalog_to_dict(catalog: StreamCatalog) -> list[dict[str, Any]]:
    return [
        {
            "server": server.name,
            "sources": [
                {
                    "direct_url": c.direct_url,
                    "proxy_url": c.proxy_url,
                    "media_kind": c.media_kind.value,
                    "quality": c.quality_label,
                    "headers": c.headers,
                }
                for c in server.sources
            ],
            "captions": [
                {"label": t.label, "kind": t.kind, "url": t.file_url}
                for t in server.captions
            ],
            "intro": [server.intro.start, server.intro.end] if server.intro else None,
            "outro": [server.outro.start, server.outro.end] if server.outro else None,
        }
        for server in catalog.servers
    ]


def _streams_report(
    catalogs: EpisodeCatalogs, track: AudioTrack, policy: FallbackPolicy
) -> dict[str, Any]:
    return {
        "episode_id": catalogs.episode_id,
        "original": _catalog_to_dict(catalogs.original),
        "dubbed": _catalog_to_dict(catalogs.dubbed),
        "attempt_order": [
            {
                "track": state.active_track.value,
                "server_index": state.server_index,
                "source_index": state.source_index,
                "server": source.server_name,
                "via_proxy": source.via_proxy,
                "url": source.url,
                "headers": source.headers,
            }
            for state, source in plan_attempts(catalogs, track, policy)
        ],
    }


async def _cmd_streams(args: argparse.Namespace, config: AppConfig) -> int:
    track = args.track or AudioTrack(config.playback.preferred_track)
    async with build_container(config) as container:
        catalogs = await container.loader.execute(
            args.episode_id,
            track,
            include_proxy=False if args.no_proxy else None,
        )
        _print_json(_streams_report(catalogs, track, container.policy))
    return 0


async def _read_subtitles(source: str, config: AppConfig) -> str:
    if source.startswith(("http://", "https://")):
        async with build_http_client(config) as http_client:
            return await HttpxCaptionSource(http_client=http_client).fetch_text(source)
    path = Path(source)
    return await asyncio.to_thread(path.read_text, encoding="utf-8-sig")


async def _cmd_subtitles(args: argparse.Namespace, config: AppConfig) -> int:
    cues = parse_subtitles(await _read_subtitles(args.source, config))
    if args.at is not None:
        sys.stdout.write(cues.active_text(args.at) + "\n")
        return 0
    _print_json([{"start": c.start, "end": c.end, "text": c.text} for c in cues])
    return 0


async def _cmd_download(args: argparse.Namespace, config: AppConfig) -> int:
    async with build_container(config) as container:
        item = await container.downloads.enqueue(
            anime_slug=args.anime_slug,
            anime_title=args.title or args.anime_slug,
            episode_id=args.episode_id,
            episode_number=args.episode,
            track=args.track,
        )
        await container.downloads.join()
        item = container.downloads.get(item.key) or item
        _print_json(item_to_dict(item))
        if item.status is DownloadStatus.FAILED:
            sys.stderr.write(f"error: {item.error_message}\n")
            return 1
    return 0


async def _cmd_downloads(args: argparse.Namespace, config: AppConfig) -> int:
    async with build_container(config) as container:
        _print_json([item_to_dict(i) for i in container.downloads.list()])
    return 0


_COMMANDS = {
    "streams": _cmd_streams,
    "subtitles": _cmd_subtitles,
    "download": _cmd_download,
    "downloads": _cmd_downloads,
}


def start(argv: Iterable[str] | None = None) -> int:
    """Process entrypoint; returns the exit code."""
    if argv is None:
        argv = sys.argv[1:]

    args = _parse_args(argv)

    config_path = Path(args.config) if args.config else None
    dotenv_path = Path(args.dotenv) if args.dotenv else None

    cli_overrides: dict[str, Any] = {}
    if args.base_url:
        cli_overrides["api_base_url"] = args.base_url
    if args.log_level:
        cli_overrides["log_level"] = args.log_level
    if args.log_format:
        cli_overrides["log_format"] = args.log_format

    try:
        config = load_config(
            config_path=config_path,
            dotenv_path=dotenv_path,
            cli_overrides=cli_overrides,
        )
    except FileNotFoundError as e:
        sys.stderr.write(f"error: file not found: {e}\n")
        return 2
    except ValueError as e:
        sys.stderr.write(f"error: invalid configuration: {e}\n")
        return 2

    configure_logging(config)

    try:
        return asyncio.run(_COMMANDS[args.command](args, config))
    except (OtakuHubError, ValueError, OSError) as e:
        log.debug("command_failed", command=args.command, exc_info=True)
        sys.stderr.write(f"error: {e}\n")
        return 1
    except KeyboardInterrupt:
        return 130


def main() -> None:
    raise SystemExit(start())


if __name__ == "__main__":
    main()
