"""WebSocket API for realtime comment events.

Provides:
- WS /ws/comments - stream of events published on the comments channel
"""

import asyncio
import contextlib
import json

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect
from jose import JWTError

from comment_system.auth.security import decode_access_token
from comment_system.config import get_settings
from comment_system.core.logging import get_logger
from comment_system.core.redis import get_redis, realtime_channel


logger = get_logger(__name__)

router = APIRouter(tags=["realtime-ws"])

PING_INTERVAL_SECONDS = 30


class ConnectionManager:
    """Track open WebSocket connections (for logging and shutdown)."""

    def __init__(self) -> None:
        self.active_connections: set[WebSocket] = set()

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self.active_connections.add(websocket)
        logger.info("websocket_connected", connections=len(self.active_connections))

    def disconnect(self, websocket: WebSocket) -> None:
        self.active_connections.discard(websocket)
        logger.info("websocket_disconnected", connections=len(self.active_connections))


manager = ConnectionManager()


def viewer_from_token(token: str | None) -> str | None:
    """Viewer id for log context; the stream itself is public."""
    if not token:
        return None
    try:
        return decode_access_token(token).get("sub")
    except JWTError as e:
        logger.info("websocket_token_ignored", error=str(e))
        return None


async def redis_subscriber(channel: str, websocket: WebSocket) -> None:
    """Forward every message published on ``channel`` to the socket."""
    redis_client = get_redis()
    if not redis_client:
        logger.warning("redis_not_available_for_pubsub", channel=channel)
        return

    pubsub = redis_client.pubsub()
    redis_channel = realtime_channel(channel)

    try:
        await pubsub.subscribe(redis_channel)
        logger.info("subscribed_to_channel", channel=redis_channel)

        while True:
            message = await pubsub.get_message(
                ignore_subscribe_messages=True, timeout=1.0
            )
            if message and message["type"] == "message":
                try:
                    await websocket.send_json(json.loads(message["data"]))
                except json.JSONDecodeError:
                    await websocket.send_text(message["data"])
            else:
                await asyncio.sleep(0.05)

    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.warning("redis_subscriber_error", channel=redis_channel, error=str(e))
    finally:
        await pubsub.unsubscribe(redis_channel)
        await pubsub.aclose()
        logger.info("unsubscribed_from_channel", channel=redis_channel)


@router.websocket("/ws/comments")
async def comments_websocket(
    websocket: WebSocket,
    token: str | None = Query(None, description="Optional JWT access token"),
) -> None:
    """WebSocket endpoint for realtime comment events.

    Connect with: ws://host/ws/comments

    Messages received:
    - {"type": "connected", "channel": "comments"} - once, after connecting
    - {"event": "comment:created", "channel": ..., "data": {...}} - comment events
    - {"type": "ping"} - keep-alive ping (every 30s)

    Messages you can send:
    - {"type": "ping"} - answered with {"type": "pong"}
    - {"type": "pong"} - response to a ping
    """
    channel = get_settings().realtime_channel
    viewer_id = viewer_from_token(token)

    await manager.connect(websocket)

    subscriber_task = None
    if get_redis():
        subscriber_task = asyncio.create_task(redis_subscriber(channel, websocket))

    try:
        await websocket.send_json({"type": "connected", "channel": channel})

        loop = asyncio.get_running_loop()
        last_ping = loop.time()

        while True:
            try:
                message = await asyncio.wait_for(
                    websocket.receive_json(),
                    timeout=PING_INTERVAL_SECONDS,
                )
                if message.get("type") == "ping":
                    await websocket.send_json({"type": "pong"})

            except TimeoutError:
                if loop.time() - last_ping >= PING_INTERVAL_SECONDS:
                    await websocket.send_json({"type": "ping"})
                    last_ping = loop.time()

    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.warning("websocket_error", viewer_id=viewer_id, error=str(e))
    finally:
        if subscriber_task and not subscriber_task.done():
            subscriber_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await subscriber_task

        manager.disconnect(websocket)
