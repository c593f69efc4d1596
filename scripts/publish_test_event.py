"""Publish a test event on the realtime comments channel.

Useful to check that Redis pub/sub and connected WebSocket clients are
wired end to end without creating a comment.

Usage:
    uv run python -m scripts.publish_test_event
    uv run python -m scripts.publish_test_event --channel comments --message "ping"
"""

import argparse
import asyncio
import sys
import time

import structlog

from comment_system.config.settings import get_settings
from comment_system.core.context import RequestContext
from comment_system.core.logging import configure_structlog
from comment_system.core.redis import init_redis, shutdown_redis
from comment_system.notifications.publisher import RedisEventPublisher
from comment_system.notifications.router import TEST_EVENT, build_test_payload


logger = structlog.get_logger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    settings = get_settings()
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument(
        "--channel",
        default=settings.realtime_channel,
        help="Logical channel name (default: %(default)s)",
    )
    parser.add_argument(
        "--message",
        default="hello world",
        help="Message carried in the payload (default: %(default)s)",
    )
    return parser.parse_args(argv)


async def publish_once(channel: str, message: str) -> bool:
    """Connect, publish one test event, disconnect.

    Returns:
        True when Redis accepted the publish
    """
    started = time.perf_counter()

    try:
        redis_client = await init_redis()
    except Exception as e:
        logger.error("test_event_redis_unavailable", error=str(e))
        return False

    try:
        publisher = RedisEventPublisher(redis_client)
        result = await publisher.publish(channel, TEST_EVENT, build_test_payload(message))
    finally:
        await shutdown_redis()

    elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
    if not result.ok:
        logger.error(
            "test_event_failed",
            channel=channel,
            error=result.error,
            elapsed_ms=elapsed_ms,
        )
        return False

    logger.info(
        "test_event_published",
        channel=channel,
        receivers=result.receivers,
        publish_ms=result.duration_ms,
        elapsed_ms=elapsed_ms,
    )
    return True


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    configure_structlog(get_settings())

    with RequestContext(correlation_id="publish-test-event"):
        ok = asyncio.run(publish_once(args.channel, args.message))
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
