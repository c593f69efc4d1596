"""Realtime event publishing for comment changes.

Events are fire-and-forget: a failed publish is logged and reported through
``PublishResult`` but never raised, so a mutation that already committed is
never turned into an error by the push channel.
"""

import json
import time
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol

import structlog

from comment_system.core.redis import realtime_channel
from comment_system.utils.dates import utcnow


if TYPE_CHECKING:
    from redis.asyncio import Redis


logger = structlog.get_logger(__name__)


class CommentEvent(str, Enum):
    """Event names published on the comments channel."""

    CREATED = "comment:created"
    UPDATED = "comment:updated"
    DELETED = "comment:deleted"
    LIKED = "comment:liked"
    DISLIKED = "comment:disliked"
    REPLY = "comment:reply"


@dataclass(frozen=True)
class PublishResult:
    """Outcome of one publish attempt."""

    ok: bool
    error: str | None = None
    receivers: int = 0
    duration_ms: float = 0.0


class EventPublisher(Protocol):
    async def publish(
        self, channel: str, event: str, payload: dict[str, Any]
    ) -> PublishResult: ...


def encode_event(channel: str, event: str, payload: dict[str, Any]) -> str:
    """Wire format of a realtime message (JSON text)."""
    message = {
        "event": event,
        "channel": channel,
        "data": payload,
        "published_at": utcnow().isoformat(),
    }
    return json.dumps(message, default=str)


class RedisEventPublisher:
    """Publishes events to Redis pub/sub on ``realtime_channel(channel)``.

    The WebSocket subscriber resolves names through the same function, so
    both sides always agree on the Redis channel.
    """

    def __init__(self, redis: "Redis"):
        self.redis = redis

    async def publish(
        self, channel: str, event: str, payload: dict[str, Any]
    ) -> PublishResult:
        started = time.perf_counter()
        try:
            receivers = await self.redis.publish(
                realtime_channel(channel), encode_event(channel, event, payload)
            )
        except Exception as e:
            logger.warning(
                "realtime_publish_failed",
                channel=channel,
                realtime_event=event,
                error=str(e),
                error_type=type(e).__name__,
            )
            return PublishResult(ok=False, error=str(e))

        duration_ms = round((time.perf_counter() - started) * 1000, 2)
        logger.debug(
            "realtime_event_published",
            channel=channel,
            realtime_event=event,
            receivers=receivers,
            duration_ms=duration_ms,
        )
        return PublishResult(ok=True, receivers=int(receivers), duration_ms=duration_ms)


class NullEventPublisher:
    """Publisher used while Redis is unavailable: drops every event."""

    async def publish(
        self, channel: str, event: str, payload: dict[str, Any]
    ) -> PublishResult:
        logger.debug("realtime_publish_skipped", channel=channel, realtime_event=event)
        return PublishResult(ok=False, error="publisher_disabled")
