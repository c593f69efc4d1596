"""Listing criteria for comments: filter, sort and pagination.

Everything here is pure. Store backends fetch the candidate set (all comments
under one parent) and hand it to ``apply_query`` / ``count_matching``, so
every backend sorts and filters identically.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID

from .models import Comment


DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_LIMIT = 100


class SortOption(str, Enum):
    """Canonical listing orders."""

    NEWEST = "newest"
    OLDEST = "oldest"
    MOST_LIKED = "mostLiked"
    MOST_DISLIKED = "mostDisliked"


class ReactionFilter(str, Enum):
    """Reaction filter requested by the client ("" means none)."""

    NONE = ""
    LIKED = "liked"
    DISLIKED = "disliked"


class EffectiveFilter(str, Enum):
    """Restriction actually applied to the candidate set."""

    NONE = "none"
    HAS_LIKES = "has_likes"
    HAS_DISLIKES = "has_dislikes"


_SORT_ALIASES: dict[str, SortOption] = {
    "newest": SortOption.NEWEST,
    "oldest": SortOption.OLDEST,
    "mostliked": SortOption.MOST_LIKED,
    "most-liked": SortOption.MOST_LIKED,
    "most_liked": SortOption.MOST_LIKED,
    "mostdisliked": SortOption.MOST_DISLIKED,
    "most-disliked": SortOption.MOST_DISLIKED,
    "most_disliked": SortOption.MOST_DISLIKED,
}


def parse_sort_option(value: str | SortOption | None) -> SortOption:
    """Normalize a client sort value; unknown or empty values mean newest."""
    if isinstance(value, SortOption):
        return value
    if not value:
        return SortOption.NEWEST
    return _SORT_ALIASES.get(value.strip().lower(), SortOption.NEWEST)


def is_known_sort_option(value: str) -> bool:
    return value.strip().lower() in _SORT_ALIASES


def parse_reaction_filter(value: ReactionFilter | str | None) -> ReactionFilter:
    """Normalize a client filter value.

    Raises:
        ValueError: value is not empty, "liked" or "disliked".
    """
    if isinstance(value, ReactionFilter):
        return value
    return ReactionFilter((value or "").strip().lower())


def resolve_effective_filter(
    reaction_filter: ReactionFilter | str | None,
    sort_by: SortOption | str | None,
) -> EffectiveFilter:
    """Combine the explicit filter with the sort order.

    An explicit ``liked``/``disliked`` filter always wins. Without one, sorting
    by most liked (disliked) only lists comments with at least one like
    (dislike), so such listings never lead with zero-reaction comments.
    """
    requested = parse_reaction_filter(reaction_filter)
    if requested is ReactionFilter.LIKED:
        return EffectiveFilter.HAS_LIKES
    if requested is ReactionFilter.DISLIKED:
        return EffectiveFilter.HAS_DISLIKES

    sort = parse_sort_option(sort_by)
    if sort is SortOption.MOST_LIKED:
        return EffectiveFilter.HAS_LIKES
    if sort is SortOption.MOST_DISLIKED:
        return EffectiveFilter.HAS_DISLIKES
    return EffectiveFilter.NONE


@dataclass(frozen=True)
class CommentQuery:
    """Selection, restriction, order and window of one listing request."""

    parent_id: UUID | None = None
    effective_filter: EffectiveFilter = EffectiveFilter.NONE
    sort: SortOption = SortOption.NEWEST
    skip: int = 0
    limit: int = DEFAULT_LIMIT

    def matches(self, comment: Comment) -> bool:
        """Selection and effective filter, ignoring pagination."""
        if comment.parent_id != self.parent_id:
            return False
        if self.effective_filter is EffectiveFilter.HAS_LIKES:
            return comment.like_count > 0
        if self.effective_filter is EffectiveFilter.HAS_DISLIKES:
            return comment.dislike_count > 0
        return True


def build_comment_query(
    page: int = DEFAULT_PAGE,
    limit: int = DEFAULT_LIMIT,
    sort_by: SortOption | str | None = None,
    reaction_filter: ReactionFilter | str | None = None,
    parent_id: UUID | None = None,
) -> CommentQuery:
    """Translate listing parameters into a ``CommentQuery``.

    Raises:
        ValueError: page < 1 or limit outside 1..100.
    """
    if page < 1:
        raise ValueError("page must be >= 1")
    if not 1 <= limit <= MAX_LIMIT:
        raise ValueError(f"limit must be between 1 and {MAX_LIMIT}")

    sort = parse_sort_option(sort_by)
    return CommentQuery(
        parent_id=parent_id,
        effective_filter=resolve_effective_filter(reaction_filter, sort),
        sort=sort,
        skip=(page - 1) * limit,
        limit=limit,
    )


def _timestamp(comment: Comment) -> float:
    created_at: datetime = comment.created_at
    return created_at.timestamp()


def sort_comments(comments: Iterable[Comment], sort: SortOption) -> list[Comment]:
    """Order comments; ties on the primary key fall back to newest first.

    Comment id is the last tiebreak so pages are stable between requests.
    """
    if sort is SortOption.OLDEST:
        return sorted(comments, key=lambda c: (_timestamp(c), c.comment_id.int))
    if sort is SortOption.MOST_LIKED:
        return sorted(
            comments,
            key=lambda c: (-c.like_count, -_timestamp(c), c.comment_id.int),
        )
    if sort is SortOption.MOST_DISLIKED:
        return sorted(
            comments,
            key=lambda c: (-c.dislike_count, -_timestamp(c), c.comment_id.int),
        )
    return sorted(comments, key=lambda c: (-_timestamp(c), c.comment_id.int))


def apply_query(comments: Iterable[Comment], query: CommentQuery) -> list[Comment]:
    """Filter, sort and paginate a candidate set."""
    selected = [c for c in comments if query.matches(c)]
    ordered = sort_comments(selected, query.sort)
    return ordered[query.skip : query.skip + query.limit]


def count_matching(comments: Iterable[Comment], query: CommentQuery) -> int:
    """Total matching comments, independent of pagination."""
    return sum(1 for c in comments if query.matches(c))
