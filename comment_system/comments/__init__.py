"""Threaded comments: one level of replies, like/dislike toggles.

Note: Router is not exported here to avoid circular imports.
Import directly from comment_system.comments.router when needed.
"""

from .models import COMMENTS_TABLES_CQL, Comment, ReactionState, ReactionType
from .service import CommentService


__all__ = [
    "COMMENTS_TABLES_CQL",
    "Comment",
    "CommentService",
    "ReactionState",
    "ReactionType",
]
