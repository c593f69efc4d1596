"""Realtime push of comment events.

Provides:
- Event publishing to Redis pub/sub (fire-and-forget)
- WebSocket fan-out of the comments channel
- A test trigger endpoint

Note: Routers are imported directly in main.py to avoid circular imports.
"""

from comment_system.notifications.publisher import (
    CommentEvent,
    EventPublisher,
    NullEventPublisher,
    PublishResult,
    RedisEventPublisher,
)


__all__ = [
    "CommentEvent",
    "EventPublisher",
    "NullEventPublisher",
    "PublishResult",
    "RedisEventPublisher",
]
