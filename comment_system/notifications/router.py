"""Realtime diagnostics routes.

Endpoints for:
- GET /v1/realtime/test - publish a test event and report the round trip
"""

import time

from fastapi import APIRouter, status
from fastapi.responses import ORJSONResponse

from comment_system.config import get_settings
from comment_system.notifications.dependencies import EventPublisherDep
from comment_system.notifications.publisher import CommentEvent
from comment_system.utils.dates import utcnow


router = APIRouter(
    prefix="/v1/realtime",
    tags=["realtime"],
)

TEST_EVENT = CommentEvent.CREATED.value


def build_test_payload(message: str = "hello world") -> dict[str, str]:
    return {"message": message, "ts": utcnow().isoformat()}


@router.get(
    "/test",
    summary="Publish a test event",
    description="Publish comment:created with a test payload on the comments channel.",
    responses={503: {"description": "Realtime publishing unavailable"}},
)
async def publish_test_event(publisher: EventPublisherDep) -> ORJSONResponse:
    """Trigger a test event and report how long the publish took."""
    payload = build_test_payload()
    started = time.perf_counter()
    result = await publisher.publish(
        get_settings().realtime_channel, TEST_EVENT, payload
    )
    duration_ms = round((time.perf_counter() - started) * 1000, 2)

    if not result.ok:
        return ORJSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "success": False,
                "error": result.error,
                "duration_ms": duration_ms,
            },
        )

    return ORJSONResponse(
        content={
            "success": True,
            "duration_ms": duration_ms,
            "receivers": result.receivers,
            "payload": payload,
        }
    )
