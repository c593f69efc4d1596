"""Database models for the threaded comment store.

Cassandra table definitions for:
- comments: one row per comment, keyed by id (the record arena)
- comments_by_parent: listing index, one partition per parent

Top-level comments are filed under ``ROOT_PARENT_KEY`` in the listing index
so that "all top-level comments" and "all replies of X" are the same
single-partition read. Links between comments (``parent_id``, ``replies``)
are ids only; they are resolved through the arena when a listing is built.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from comment_system.utils.dates import ensure_utc_aware, utcnow


# Listing partition for comments without a parent
ROOT_PARENT_KEY = UUID(int=0)

CONTENT_MIN_LENGTH = 1
CONTENT_MAX_LENGTH = 1000


class ReactionType(str, Enum):
    """Reactions a viewer can toggle on a comment."""

    LIKE = "like"
    DISLIKE = "dislike"


class ReactionState(str, Enum):
    """Reaction state of one (comment, user) pair after a toggle."""

    NEUTRAL = "neutral"
    LIKED = "liked"
    DISLIKED = "disliked"


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

COMMENT_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.comments (
    comment_id UUID PRIMARY KEY,
    parent_id UUID,
    author_id UUID,
    content TEXT,
    replies LIST<UUID>,
    likes SET<UUID>,
    dislikes SET<UUID>,
    is_edited BOOLEAN,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

# Listing index: every comment appears once, under its parent (or the root key)
COMMENTS_BY_PARENT_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.comments_by_parent (
    parent_key UUID,
    created_at TIMESTAMP,
    comment_id UUID,
    PRIMARY KEY ((parent_key), created_at, comment_id)
) WITH CLUSTERING ORDER BY (created_at DESC, comment_id ASC)
"""

COMMENTS_TABLES_CQL = [
    COMMENT_TABLE_CQL,
    COMMENTS_BY_PARENT_TABLE_CQL,
]


def parent_key_for(parent_id: UUID | None) -> UUID:
    """Listing partition a comment with this parent is filed under."""
    return parent_id if parent_id is not None else ROOT_PARENT_KEY


# ==============================================================================
# Entity Classes
# ==============================================================================


@dataclass
class Comment:
    """A top-level comment or a reply.

    ``replies`` is only maintained on top-level comments. A user id is in at
    most one of ``likes`` and ``dislikes``.
    """

    comment_id: UUID
    content: str
    author_id: UUID
    parent_id: UUID | None = None
    replies: list[UUID] = field(default_factory=list)
    likes: set[UUID] = field(default_factory=set)
    dislikes: set[UUID] = field(default_factory=set)
    is_edited: bool = False
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @classmethod
    def from_row(cls, row: Any) -> "Comment":
        """Create Comment from Cassandra row.

        Empty collections come back from Cassandra as None.
        """
        created_at = ensure_utc_aware(row.created_at)
        return cls(
            comment_id=row.comment_id,
            content=row.content,
            author_id=row.author_id,
            parent_id=row.parent_id,
            replies=list(row.replies or []),
            likes=set(row.likes or ()),
            dislikes=set(row.dislikes or ()),
            is_edited=bool(row.is_edited),
            created_at=created_at,
            updated_at=ensure_utc_aware(row.updated_at) or created_at,
        )

    @property
    def is_reply(self) -> bool:
        return self.parent_id is not None

    @property
    def like_count(self) -> int:
        return len(self.likes)

    @property
    def dislike_count(self) -> int:
        return len(self.dislikes)

    @property
    def reply_count(self) -> int:
        return len(self.replies)

    def reaction_of(self, user_id: UUID) -> ReactionState:
        """Current reaction state of ``user_id`` on this comment."""
        if user_id in self.likes:
            return ReactionState.LIKED
        if user_id in self.dislikes:
            return ReactionState.DISLIKED
        return ReactionState.NEUTRAL

    def toggle_reaction(self, user_id: UUID, reaction: ReactionType) -> ReactionState:
        """Apply a like/dislike toggle in place and return the new state.

        Repeating the current reaction clears it; choosing the opposite one
        moves the user across, so the two sets never share a member.
        """
        if reaction is ReactionType.LIKE:
            chosen, opposite, target = self.likes, self.dislikes, ReactionState.LIKED
        else:
            chosen, opposite, target = self.dislikes, self.likes, ReactionState.DISLIKED

        if user_id in chosen:
            chosen.discard(user_id)
            return ReactionState.NEUTRAL

        opposite.discard(user_id)
        chosen.add(user_id)
        return target


def create_comment(
    author_id: UUID,
    content: str,
    parent_id: UUID | None = None,
) -> Comment:
    """Create a new comment with default values."""
    now = utcnow()
    return Comment(
        comment_id=uuid4(),
        content=content,
        author_id=author_id,
        parent_id=parent_id,
        replies=[],
        likes=set(),
        dislikes=set(),
        is_edited=False,
        created_at=now,
        updated_at=now,
    )
