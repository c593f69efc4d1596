"""FastAPI dependencies for realtime publishing."""

from typing import Annotated

from fastapi import Depends, Request

from comment_system.notifications.publisher import EventPublisher, NullEventPublisher


async def get_event_publisher(request: Request) -> EventPublisher:
    """Publisher from app state; a null publisher before startup wiring."""
    publisher = getattr(request.app.state, "event_publisher", None)
    return publisher if publisher is not None else NullEventPublisher()


EventPublisherDep = Annotated[EventPublisher, Depends(get_event_publisher)]
