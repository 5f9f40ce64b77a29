"""Watch the producer's stream from the command line."""
from __future__ import annotations

import argparse
import asyncio
import logging

from aiortc.contrib.media import MediaRecorder

from ..core.config import settings
from ..core.logging import configure_logging
from .consumer import connect_consumer
from .negotiation import RemoteMedia, StatusUpdate

logger = logging.getLogger("relay.consumer")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="relay-consumer", description=__doc__)
    parser.add_argument("--url", default=settings.signaling_url, help="signaling websocket URL")
    parser.add_argument("--record", metavar="PATH", help="write the received stream to a media file")
    parser.add_argument(
        "--connect-now",
        action="store_true",
        help="request the stream immediately instead of waiting for the producer to come online",
    )
    parser.add_argument("--log-level", default=settings.log_level)
    return parser


def _print_status(update: StatusUpdate) -> None:
    logger.info("[%s] %s", update.state.value, update.message)


async def run(args: argparse.Namespace) -> None:
    media_factory = None
    if args.record:
        media_factory = lambda: RemoteMedia(lambda: MediaRecorder(args.record))  # noqa: E731

    async with connect_consumer(
        args.url,
        on_status=_print_status,
        media_factory=media_factory,
        auto_connect=True,
    ) as client:
        if args.connect_now:
            await client.connect_to_stream()
        await client.wait_closed()


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)
    try:
        asyncio.run(run(args))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
