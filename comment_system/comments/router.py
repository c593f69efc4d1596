"""Comment system API endpoints.

Provides routes for:
- Listing and reading comments (anonymous viewers allowed)
- Comment create, update and delete
- Replies
- Like/dislike toggles
"""

from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status

from comment_system.auth.dependencies import CurrentUser, OptionalUser

from .dependencies import CommentServiceDep, handle_comment_error
from .query import DEFAULT_LIMIT, MAX_LIMIT, SortOption, is_known_sort_option
from .schemas import (
    CommentListResponse,
    CommentResponse,
    CreateCommentRequest,
    MessageResponse,
    ReactionResponse,
    ReplyRequest,
    UpdateCommentRequest,
)
from .service import CommentError


router = APIRouter(prefix="/v1/comments", tags=["comments"])


@router.get(
    "",
    response_model=CommentListResponse,
    summary="List comments",
)
async def list_comments(
    comment_service: CommentServiceDep,
    user: OptionalUser,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    sort_by: str = Query(
        default=SortOption.NEWEST.value,
        description="newest, oldest, mostLiked or mostDisliked",
    ),
    filter: str = Query(default="", description="'', liked or disliked"),  # noqa: A002
    parent_id: UUID | None = Query(
        default=None, description="List replies of this comment instead"
    ),
) -> CommentListResponse:
    """List top-level comments (or replies of ``parent_id``).

    Sorting by most liked/disliked without an explicit filter only lists
    comments that have at least one like/dislike.
    """
    if not is_known_sort_option(sort_by):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Invalid sort option: {sort_by}",
        )

    try:
        return await comment_service.list_comments(
            page=page,
            limit=limit,
            sort_by=sort_by,
            reaction_filter=filter,
            parent_id=parent_id,
            viewer_id=user.id if user else None,
        )
    except CommentError as e:
        raise handle_comment_error(e) from e


@router.get(
    "/{comment_id}",
    response_model=CommentResponse,
    summary="Get comment",
)
async def get_comment(
    comment_id: UUID,
    comment_service: CommentServiceDep,
    user: OptionalUser,
) -> CommentResponse:
    """Get a single comment with its replies."""
    try:
        return await comment_service.get_comment(
            comment_id, viewer_id=user.id if user else None
        )
    except CommentError as e:
        raise handle_comment_error(e) from e


@router.post(
    "",
    response_model=CommentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create comment",
)
async def create_comment(
    data: CreateCommentRequest,
    comment_service: CommentServiceDep,
    user: CurrentUser,
) -> CommentResponse:
    """Create a top-level comment, or a reply when ``parent_id`` is given."""
    try:
        result = await comment_service.create_comment(
            content=data.content,
            author_id=user.id,
            parent_id=data.parent_id,
        )
    except CommentError as e:
        raise handle_comment_error(e) from e
    return result.value


@router.put(
    "/{comment_id}",
    response_model=CommentResponse,
    summary="Update comment",
)
async def update_comment(
    comment_id: UUID,
    data: UpdateCommentRequest,
    comment_service: CommentServiceDep,
    user: CurrentUser,
) -> CommentResponse:
    """Edit a comment. Only the author can edit."""
    try:
        result = await comment_service.update_comment(
            comment_id=comment_id,
            content=data.content,
            requester_id=user.id,
        )
    except CommentError as e:
        raise handle_comment_error(e) from e
    return result.value


@router.delete(
    "/{comment_id}",
    response_model=MessageResponse,
    summary="Delete comment",
)
async def delete_comment(
    comment_id: UUID,
    comment_service: CommentServiceDep,
    user: CurrentUser,
) -> MessageResponse:
    """Delete a comment together with its replies. Only the author can delete."""
    try:
        await comment_service.delete_comment(comment_id, requester_id=user.id)
    except CommentError as e:
        raise handle_comment_error(e) from e
    return MessageResponse(message="Comment deleted")


@router.post(
    "/{comment_id}/like",
    response_model=ReactionResponse,
    summary="Toggle like",
)
async def like_comment(
    comment_id: UUID,
    comment_service: CommentServiceDep,
    user: CurrentUser,
) -> ReactionResponse:
    """Like a comment, or remove an existing like."""
    try:
        result = await comment_service.like_comment(comment_id, user.id)
    except CommentError as e:
        raise handle_comment_error(e) from e
    return result.value


@router.post(
    "/{comment_id}/dislike",
    response_model=ReactionResponse,
    summary="Toggle dislike",
)
async def dislike_comment(
    comment_id: UUID,
    comment_service: CommentServiceDep,
    user: CurrentUser,
) -> ReactionResponse:
    """Dislike a comment, or remove an existing dislike."""
    try:
        result = await comment_service.dislike_comment(comment_id, user.id)
    except CommentError as e:
        raise handle_comment_error(e) from e
    return result.value


@router.post(
    "/{comment_id}/reply",
    response_model=CommentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Reply to comment",
)
async def reply_to_comment(
    comment_id: UUID,
    data: ReplyRequest,
    comment_service: CommentServiceDep,
    user: CurrentUser,
) -> CommentResponse:
    """Reply to a top-level comment."""
    try:
        result = await comment_service.reply_to_comment(
            parent_id=comment_id,
            content=data.content,
            author_id=user.id,
        )
    except CommentError as e:
        raise handle_comment_error(e) from e

    return result.value
