"""Comment system service layer.

Business logic for:
- Listing comments (filter, sort, pagination, reply and author resolution)
- Comment CRUD with one level of replies
- Like/dislike toggles
- Realtime notifications after each committed mutation

Multi-step mutations (reply attachment, cascade delete) are sequential
best-effort writes without rollback. Store failures propagate unchanged;
notification failures never do.
"""

import math
from dataclasses import dataclass
from typing import Any, Generic, TypeVar
from uuid import UUID

import structlog

from comment_system.auth.repository import UserRepository
from comment_system.notifications.publisher import (
    CommentEvent,
    EventPublisher,
    PublishResult,
)
from comment_system.utils.dates import utcnow

from .models import Comment, ReactionState, ReactionType, create_comment
from .query import DEFAULT_LIMIT, DEFAULT_PAGE, build_comment_query
from .repository import CommentRepository
from .schemas import (
    CommentListResponse,
    CommentResponse,
    ReactionResponse,
    normalize_content,
)


logger = structlog.get_logger(__name__)

T = TypeVar("T")


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class CommentError(Exception):
    """Base comment error."""

    def __init__(self, message: str, code: str = "comment_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class CommentNotFoundError(CommentError):
    """Comment not found."""

    def __init__(self, message: str = "Comment not found"):
        super().__init__(message, "comment_not_found")


class ParentCommentNotFoundError(CommentError):
    """Parent of a new reply does not exist."""

    def __init__(self, message: str = "Parent comment not found"):
        super().__init__(message, "parent_not_found")


class PermissionDeniedError(CommentError):
    """Requester does not own the comment."""

    def __init__(self, message: str = "Not authorized"):
        super().__init__(message, "permission_denied")


class ContentValidationError(CommentError):
    """Content or listing parameters outside the accepted bounds."""

    def __init__(self, message: str = "Invalid comment"):
        super().__init__(message, "validation_failed")


class NestedReplyError(CommentError):
    """Reply targeted at a comment that is itself a reply."""

    def __init__(self, message: str = "Replies can only be added to top-level comments"):
        super().__init__(message, "nested_reply")


# ==============================================================================
# Results
# ==============================================================================


@dataclass(frozen=True)
class MutationResult(Generic[T]):
    """Committed outcome of a mutation plus the outcome of its notification."""

    value: T
    notification: PublishResult


REACTION_MESSAGES: dict[tuple[ReactionType, ReactionState], str] = {
    (ReactionType.LIKE, ReactionState.LIKED): "Comment liked",
    (ReactionType.LIKE, ReactionState.NEUTRAL): "Like removed",
    (ReactionType.DISLIKE, ReactionState.DISLIKED): "Comment disliked",
    (ReactionType.DISLIKE, ReactionState.NEUTRAL): "Dislike removed",
}

REACTION_EVENTS = {
    ReactionType.LIKE: CommentEvent.LIKED,
    ReactionType.DISLIKE: CommentEvent.DISLIKED,
}


# ==============================================================================
# Service
# ==============================================================================


class CommentService:
    """Read and write paths over the comment and user stores."""

    def __init__(
        self,
        comments: CommentRepository,
        users: UserRepository,
        publisher: EventPublisher,
        channel: str = "comments",
    ):
        self.comments = comments
        self.users = users
        self.publisher = publisher
        self.channel = channel

    # ==========================================================================
    # Rendering
    # ==========================================================================

    async def _render(
        self,
        comments: list[Comment],
        viewer_id: UUID | None = None,
    ) -> list[CommentResponse]:
        """Resolve replies and authors for ``comments`` in two batched reads."""
        reply_ids = [rid for c in comments for rid in c.replies]
        replies = await self.comments.get_many(reply_ids) if reply_ids else {}

        author_ids = {c.author_id for c in comments}
        author_ids.update(r.author_id for r in replies.values())
        authors = await self.users.get_many(author_ids) if author_ids else {}

        return [
            CommentResponse.from_comment(
                comment,
                authors,
                replies=[replies[rid] for rid in comment.replies if rid in replies],
                viewer_id=viewer_id,
            )
            for comment in comments
        ]

    async def _render_one(
        self, comment: Comment, viewer_id: UUID | None = None
    ) -> CommentResponse:
        return (await self._render([comment], viewer_id))[0]

    # ==========================================================================
    # Notifications
    # ==========================================================================

    async def _notify(self, event: CommentEvent, payload: dict[str, Any]) -> PublishResult:
        """Post-commit hook: publish ``event``; never raises."""
        try:
            return await self.publisher.publish(self.channel, event.value, payload)
        except Exception as e:
            logger.warning(
                "comment_notification_failed",
                realtime_event=event.value,
                error=str(e),
                error_type=type(e).__name__,
            )
            return PublishResult(ok=False, error=str(e))

    # ==========================================================================
    # Queries
    # ==========================================================================

    async def list_comments(
        self,
        page: int = DEFAULT_PAGE,
        limit: int = DEFAULT_LIMIT,
        sort_by: str | None = None,
        reaction_filter: str | None = None,
        parent_id: UUID | None = None,
        viewer_id: UUID | None = None,
    ) -> CommentListResponse:
        """List comments under ``parent_id`` (top-level when None).

        Raises:
            ContentValidationError: page, limit or filter out of range
        """
        try:
            query = build_comment_query(
                page=page,
                limit=limit,
                sort_by=sort_by,
                reaction_filter=reaction_filter,
                parent_id=parent_id,
            )
        except ValueError as e:
            raise ContentValidationError(str(e)) from e

        page_items, total = await self.comments.find_with_total(query)
        items = await self._render(page_items, viewer_id)

        return CommentListResponse(
            items=items,
            count=len(items),
            total=total,
            page=page,
            pages=math.ceil(total / limit) if total else 0,
        )

    async def get_comment(
        self, comment_id: UUID, viewer_id: UUID | None = None
    ) -> CommentResponse:
        """Single comment with replies and authors resolved.

        Raises:
            CommentNotFoundError: no comment with this id
        """
        comment = await self._get_or_raise(comment_id)
        return await self._render_one(comment, viewer_id)

    async def _get_or_raise(self, comment_id: UUID) -> Comment:
        comment = await self.comments.get(comment_id)
        if comment is None:
            raise CommentNotFoundError
        return comment

    async def _get_owned(self, comment_id: UUID, requester_id: UUID) -> Comment:
        comment = await self._get_or_raise(comment_id)
        if comment.author_id != requester_id:
            logger.info(
                "comment_permission_denied",
                comment_id=str(comment_id),
                requester_id=str(requester_id),
            )
            raise PermissionDeniedError
        return comment

    # ==========================================================================
    # Mutations
    # ==========================================================================

    @staticmethod
    def _validated(content: str) -> str:
        try:
            return normalize_content(content)
        except ValueError as e:
            raise ContentValidationError(str(e)) from e

    async def _resolve_parent(self, parent_id: UUID) -> Comment:
        parent = await self.comments.get(parent_id)
        if parent is None:
            raise ParentCommentNotFoundError
        if parent.is_reply:
            raise NestedReplyError
        return parent

    async def _insert(
        self, content: str, author_id: UUID, parent_id: UUID | None
    ) -> Comment:
        """Insert a comment and attach it to its parent (when a reply)."""
        content = self._validated(content)
        if parent_id is not None:
            await self._resolve_parent(parent_id)

        comment = create_comment(author_id=author_id, content=content, parent_id=parent_id)
        await self.comments.insert(comment)
        if parent_id is not None:
            await self.comments.add_reply(parent_id, comment.comment_id)

        logger.info(
            "comment_created",
            comment_id=str(comment.comment_id),
            parent_id=str(parent_id) if parent_id else None,
        )
        return comment

    async def create_comment(
        self,
        content: str,
        author_id: UUID,
        parent_id: UUID | None = None,
    ) -> MutationResult[CommentResponse]:
        """Create a top-level comment, or a reply when ``parent_id`` is set.

        Raises:
            ContentValidationError: content empty or longer than 1000 chars
            ParentCommentNotFoundError: parent_id does not exist
            NestedReplyError: parent_id is itself a reply
        """
        comment = await self._insert(content, author_id, parent_id)
        response = await self._render_one(comment, author_id)

        notification = await self._notify(
            CommentEvent.CREATED,
            {
                "comment": response.model_dump(mode="json"),
                "parent_comment": str(parent_id) if parent_id else None,
            },
        )
        return MutationResult(response, notification)

    async def reply_to_comment(
        self,
        parent_id: UUID,
        content: str,
        author_id: UUID,
    ) -> MutationResult[CommentResponse]:
        """Reply to a top-level comment.

        Raises:
            ContentValidationError: content empty or longer than 1000 chars
            ParentCommentNotFoundError: parent does not exist
            NestedReplyError: parent is itself a reply
        """
        reply = await self._insert(content, author_id, parent_id)
        response = await self._render_one(reply, author_id)

        notification = await self._notify(
            CommentEvent.REPLY,
            {
                "reply": response.model_dump(mode="json"),
                "parent_comment_id": str(parent_id),
            },
        )
        return MutationResult(response, notification)

    async def update_comment(
        self,
        comment_id: UUID,
        content: str,
        requester_id: UUID,
    ) -> MutationResult[CommentResponse]:
        """Edit a comment's content; only its author may do so.

        Raises:
            ContentValidationError: content empty or longer than 1000 chars
            CommentNotFoundError: no comment with this id
            PermissionDeniedError: requester is not the author
        """
        content = self._validated(content)
        comment = await self._get_owned(comment_id, requester_id)

        comment.content = content
        comment.is_edited = True
        comment.updated_at = utcnow()
        await self.comments.update_content(comment_id, content, comment.updated_at)
        logger.info("comment_updated", comment_id=str(comment_id))

        response = await self._render_one(comment, requester_id)
        notification = await self._notify(
            CommentEvent.UPDATED, {"comment": response.model_dump(mode="json")}
        )
        return MutationResult(response, notification)

    async def delete_comment(
        self, comment_id: UUID, requester_id: UUID
    ) -> MutationResult[UUID]:
        """Delete a comment, its replies, and its entry in the parent.

        Raises:
            CommentNotFoundError: no comment with this id
            PermissionDeniedError: requester is not the author
        """
        comment = await self._get_owned(comment_id, requester_id)

        if comment.parent_id is not None:
            await self.comments.remove_reply(comment.parent_id, comment_id)
        removed_replies = 0
        if comment.replies:
            removed_replies = await self.comments.delete_many(comment.replies)
        await self.comments.delete(comment_id)

        logger.info(
            "comment_deleted",
            comment_id=str(comment_id),
            removed_replies=removed_replies,
        )
        notification = await self._notify(
            CommentEvent.DELETED, {"comment_id": str(comment_id)}
        )
        return MutationResult(comment_id, notification)

    async def _toggle(
        self, comment_id: UUID, user_id: UUID, reaction: ReactionType
    ) -> MutationResult[ReactionResponse]:
        comment = await self._get_or_raise(comment_id)

        state = comment.toggle_reaction(user_id, reaction)
        await self.comments.set_reactions(comment_id, comment.likes, comment.dislikes)
        logger.info(
            "comment_reaction_toggled",
            comment_id=str(comment_id),
            reaction=reaction.value,
            state=state.value,
        )

        response = ReactionResponse(
            message=REACTION_MESSAGES.get((reaction, state), "Reaction updated"),
            comment_id=comment_id,
            state=state,
            like_count=comment.like_count,
            dislike_count=comment.dislike_count,
            comment=await self._render_one(comment, user_id),
        )
        notification = await self._notify(
            REACTION_EVENTS[reaction],
            {
                "comment_id": str(comment_id),
                "like_count": comment.like_count,
                "dislike_count": comment.dislike_count,
            },
        )
        return MutationResult(response, notification)

    async def like_comment(
        self, comment_id: UUID, user_id: UUID
    ) -> MutationResult[ReactionResponse]:
        """Toggle a like: neutral -> liked -> neutral, disliked -> liked.

        Raises:
            CommentNotFoundError: no comment with this id
        """
        return await self._toggle(comment_id, user_id, ReactionType.LIKE)

    async def dislike_comment(
        self, comment_id: UUID, user_id: UUID
    ) -> MutationResult[ReactionResponse]:
        """Toggle a dislike: neutral -> disliked -> neutral, liked -> disliked.

        Raises:
            CommentNotFoundError: no comment with this id
        """
        return await self._toggle(comment_id, user_id, ReactionType.DISLIKE)
