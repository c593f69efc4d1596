"""Pydantic schemas for the comment system.

Request models validate content at the HTTP boundary; response models carry
the denormalized listing shape: author projection, embedded reply summaries,
derived counts and the optional per-viewer flags.
"""

from datetime import datetime
from uuid import UUID

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    SerializerFunctionWrapHandler,
    field_validator,
    model_serializer,
)

from comment_system.auth.models import User

from .models import CONTENT_MAX_LENGTH, CONTENT_MIN_LENGTH, Comment, ReactionState


# Author projection for comments whose author no longer exists
DELETED_AUTHOR_NAME = "Deleted user"

# Per-viewer fields, only serialized when a viewer was given
VIEWER_FLAGS = ("is_liked_by_user", "is_disliked_by_user", "is_author")


def normalize_content(value: str) -> str:
    """Strip surrounding whitespace and enforce the 1-1000 character bound.

    Raises:
        ValueError: content is empty after stripping or too long
    """
    value = value.strip()
    if len(value) < CONTENT_MIN_LENGTH:
        msg = "Comment content is required"
        raise ValueError(msg)
    if len(value) > CONTENT_MAX_LENGTH:
        msg = f"Comment must be between {CONTENT_MIN_LENGTH} and {CONTENT_MAX_LENGTH} characters"
        raise ValueError(msg)
    return value


# ==============================================================================
# Request Schemas
# ==============================================================================


class CreateCommentRequest(BaseModel):
    """Request to create a new comment (or a reply when parent_id is set)."""

    content: str
    parent_id: UUID | None = Field(
        None, validation_alias=AliasChoices("parent_id", "parent_comment")
    )

    @field_validator("content")
    @classmethod
    def validate_content(cls, v: str) -> str:
        return normalize_content(v)


class UpdateCommentRequest(BaseModel):
    """Request to update a comment."""

    content: str

    @field_validator("content")
    @classmethod
    def validate_content(cls, v: str) -> str:
        return normalize_content(v)


class ReplyRequest(BaseModel):
    """Request to reply to a top-level comment."""

    content: str

    @field_validator("content")
    @classmethod
    def validate_content(cls, v: str) -> str:
        return normalize_content(v)


# ==============================================================================
# Response Schemas
# ==============================================================================


class AuthorResponse(BaseModel):
    """Author information in comment response."""

    id: UUID
    name: str
    email: str | None = None

    @classmethod
    def from_user(cls, author_id: UUID, user: User | None) -> "AuthorResponse":
        if user is None:
            return cls(id=author_id, name=DELETED_AUTHOR_NAME, email=None)
        return cls(id=user.id, name=user.name, email=user.email)


class ReplySummaryResponse(BaseModel):
    """Reply embedded in its parent's listing entry."""

    id: UUID
    content: str
    author: AuthorResponse
    likes: list[UUID] = Field(default_factory=list)
    dislikes: list[UUID] = Field(default_factory=list)
    like_count: int = 0
    dislike_count: int = 0
    is_edited: bool = False
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_comment(cls, reply: Comment, author: User | None) -> "ReplySummaryResponse":
        return cls(
            id=reply.comment_id,
            content=reply.content,
            author=AuthorResponse.from_user(reply.author_id, author),
            likes=sorted(reply.likes, key=str),
            dislikes=sorted(reply.dislikes, key=str),
            like_count=reply.like_count,
            dislike_count=reply.dislike_count,
            is_edited=reply.is_edited,
            created_at=reply.created_at,
            updated_at=reply.updated_at,
        )


class CommentResponse(BaseModel):
    """Response for a single comment."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    content: str
    author: AuthorResponse
    parent_id: UUID | None = None
    replies: list[ReplySummaryResponse] = Field(default_factory=list)
    likes: list[UUID] = Field(default_factory=list)
    dislikes: list[UUID] = Field(default_factory=list)
    like_count: int = 0
    dislike_count: int = 0
    reply_count: int = 0
    is_edited: bool = False
    is_liked_by_user: bool | None = None
    is_disliked_by_user: bool | None = None
    is_author: bool | None = None
    created_at: datetime
    updated_at: datetime

    @model_serializer(mode="wrap")
    def _omit_unset_viewer_flags(self, handler: SerializerFunctionWrapHandler):
        """Anonymous viewers get no flags at all rather than nulls."""
        data = handler(self)
        for key in VIEWER_FLAGS:
            if data.get(key) is None:
                data.pop(key, None)
        return data

    @classmethod
    def from_comment(
        cls,
        comment: Comment,
        authors: dict[UUID, User],
        replies: list[Comment] | None = None,
        viewer_id: UUID | None = None,
    ) -> "CommentResponse":
        """Create response from Comment entity.

        Args:
            comment: Comment entity
            authors: Resolved users by id (authors of comment and replies)
            replies: Resolved reply records, in ``comment.replies`` order
            viewer_id: Viewer to compute interaction flags for; None leaves
                the flags unset
        """
        reply_items = [
            ReplySummaryResponse.from_comment(r, authors.get(r.author_id))
            for r in replies or []
        ]

        flags: dict[str, bool] = {}
        if viewer_id is not None:
            state = comment.reaction_of(viewer_id)
            flags = {
                "is_liked_by_user": state is ReactionState.LIKED,
                "is_disliked_by_user": state is ReactionState.DISLIKED,
                "is_author": comment.author_id == viewer_id,
            }

        return cls(
            id=comment.comment_id,
            content=comment.content,
            author=AuthorResponse.from_user(
                comment.author_id, authors.get(comment.author_id)
            ),
            parent_id=comment.parent_id,
            replies=reply_items,
            likes=sorted(comment.likes, key=str),
            dislikes=sorted(comment.dislikes, key=str),
            like_count=comment.like_count,
            dislike_count=comment.dislike_count,
            reply_count=comment.reply_count,
            is_edited=comment.is_edited,
            created_at=comment.created_at,
            updated_at=comment.updated_at,
            **flags,
        )


class CommentListResponse(BaseModel):
    """One page of comments."""

    items: list[CommentResponse]
    count: int = Field(..., description="Items on this page")
    total: int = Field(..., description="Matching comments across all pages")
    page: int
    pages: int


class ReactionResponse(BaseModel):
    """Result of a like/dislike toggle."""

    message: str
    comment_id: UUID
    state: ReactionState
    like_count: int
    dislike_count: int
    comment: CommentResponse


class MessageResponse(BaseModel):
    """Simple message response."""

    message: str
    success: bool = True
