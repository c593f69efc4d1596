"""Tests for CommentService: listing, mutations and notifications.

Runs against the in-memory stores so every path goes through the same
repository contract the Cassandra backend implements.
"""

from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest

from comment_system.auth.models import User
from comment_system.comments.models import ReactionState, create_comment
from comment_system.comments.repository import InMemoryCommentRepository
from comment_system.comments.schemas import DELETED_AUTHOR_NAME
from comment_system.comments.service import (
    CommentNotFoundError,
    CommentService,
    ContentValidationError,
    NestedReplyError,
    ParentCommentNotFoundError,
    PermissionDeniedError,
)
from comment_system.notifications.publisher import CommentEvent


class TestCreateComment:
    """Tests for create_comment and reply_to_comment."""

    async def test_create_top_level_comment(
        self, comment_service: CommentService, alice: User, publisher
    ):
        """Should store the comment and publish comment:created."""
        result = await comment_service.create_comment("  hi  ", alice.id)

        assert result.value.content == "hi"
        assert result.value.author.name == "Alice"
        assert result.value.is_author is True
        assert result.notification.ok is True
        assert publisher.names == [CommentEvent.CREATED.value]
        _, _, payload = publisher.events[0]
        assert payload["parent_comment"] is None
        assert payload["comment"]["id"] == str(result.value.id)

    @pytest.mark.parametrize("content", ["", "   ", "x" * 1001])
    async def test_create_rejects_invalid_content(
        self, comment_service: CommentService, alice: User, publisher, content: str
    ):
        with pytest.raises(ContentValidationError):
            await comment_service.create_comment(content, alice.id)
        assert publisher.events == []

    async def test_create_accepts_max_length(
        self, comment_service: CommentService, alice: User
    ):
        result = await comment_service.create_comment("x" * 1000, alice.id)
        assert len(result.value.content) == 1000

    async def test_create_with_parent_attaches_reply(
        self, comment_service: CommentService, alice: User, bob: User
    ):
        parent = (await comment_service.create_comment("hi", alice.id)).value

        reply = (
            await comment_service.create_comment("hello", bob.id, parent_id=parent.id)
        ).value

        fetched = await comment_service.get_comment(parent.id)
        assert reply.parent_id == parent.id
        assert [r.id for r in fetched.replies] == [reply.id]
        assert fetched.reply_count == 1

    async def test_reply_to_missing_parent(
        self, comment_service: CommentService, bob: User
    ):
        with pytest.raises(ParentCommentNotFoundError):
            await comment_service.reply_to_comment(uuid4(), "hello", bob.id)

    async def test_reply_to_reply_is_rejected(
        self, comment_service: CommentService, alice: User, bob: User
    ):
        parent = (await comment_service.create_comment("hi", alice.id)).value
        reply = (await comment_service.reply_to_comment(parent.id, "hey", bob.id)).value

        with pytest.raises(NestedReplyError):
            await comment_service.reply_to_comment(reply.id, "deeper", alice.id)

    async def test_reply_publishes_reply_event(
        self, comment_service: CommentService, alice: User, bob: User, publisher
    ):
        parent = (await comment_service.create_comment("hi", alice.id)).value

        await comment_service.reply_to_comment(parent.id, "hello", bob.id)

        assert publisher.names[-1] == CommentEvent.REPLY.value
        _, _, payload = publisher.events[-1]
        assert payload["parent_comment_id"] == str(parent.id)
        assert payload["reply"]["content"] == "hello"


class TestUpdateComment:
    """Tests for update_comment."""

    async def test_author_can_edit(
        self, comment_service: CommentService, alice: User, publisher
    ):
        created = (await comment_service.create_comment("first", alice.id)).value

        updated = (
            await comment_service.update_comment(created.id, "second", alice.id)
        ).value

        assert updated.content == "second"
        assert updated.is_edited is True
        assert updated.updated_at >= created.updated_at
        assert publisher.names[-1] == CommentEvent.UPDATED.value

    async def test_non_author_is_denied_and_nothing_changes(
        self, comment_service: CommentService, alice: User, bob: User, publisher
    ):
        created = (await comment_service.create_comment("first", alice.id)).value
        events_before = len(publisher.events)

        with pytest.raises(PermissionDeniedError):
            await comment_service.update_comment(created.id, "hijacked", bob.id)

        fetched = await comment_service.get_comment(created.id)
        assert fetched.content == "first"
        assert fetched.is_edited is False
        assert len(publisher.events) == events_before

    async def test_update_missing_comment(
        self, comment_service: CommentService, alice: User
    ):
        with pytest.raises(CommentNotFoundError):
            await comment_service.update_comment(uuid4(), "text", alice.id)


class TestDeleteComment:
    """Tests for delete_comment."""

    async def test_delete_cascades_to_replies(
        self,
        comment_service: CommentService,
        comment_repo: InMemoryCommentRepository,
        alice: User,
        bob: User,
        carol: User,
    ):
        parent = (await comment_service.create_comment("hi", alice.id)).value
        r1 = (await comment_service.reply_to_comment(parent.id, "one", bob.id)).value
        r2 = (await comment_service.reply_to_comment(parent.id, "two", carol.id)).value

        result = await comment_service.delete_comment(parent.id, alice.id)

        assert result.value == parent.id
        for comment_id in (parent.id, r1.id, r2.id):
            assert await comment_repo.get(comment_id) is None
        listing = await comment_service.list_comments()
        assert listing.total == 0

    async def test_deleting_reply_detaches_it_from_parent(
        self, comment_service: CommentService, alice: User, bob: User, publisher
    ):
        parent = (await comment_service.create_comment("hi", alice.id)).value
        reply = (await comment_service.reply_to_comment(parent.id, "one", bob.id)).value

        await comment_service.delete_comment(reply.id, bob.id)

        fetched = await comment_service.get_comment(parent.id)
        assert fetched.replies == []
        assert fetched.reply_count == 0
        assert publisher.names[-1] == CommentEvent.DELETED.value

    async def test_non_author_cannot_delete(
        self, comment_service: CommentService, alice: User, bob: User
    ):
        created = (await comment_service.create_comment("mine", alice.id)).value

        with pytest.raises(PermissionDeniedError):
            await comment_service.delete_comment(created.id, bob.id)

        assert (await comment_service.get_comment(created.id)).content == "mine"

    async def test_delete_missing_comment(
        self, comment_service: CommentService, alice: User
    ):
        with pytest.raises(CommentNotFoundError):
            await comment_service.delete_comment(uuid4(), alice.id)


class TestReactions:
    """Tests for like_comment and dislike_comment."""

    async def test_like_then_unlike(
        self, comment_service: CommentService, alice: User, bob: User
    ):
        created = (await comment_service.create_comment("hi", alice.id)).value

        liked = (await comment_service.like_comment(created.id, bob.id)).value
        unliked = (await comment_service.like_comment(created.id, bob.id)).value

        assert liked.state is ReactionState.LIKED
        assert liked.like_count == 1
        assert liked.message == "Comment liked"
        assert liked.comment.is_liked_by_user is True
        assert unliked.state is ReactionState.NEUTRAL
        assert unliked.like_count == 0
        assert unliked.message == "Like removed"

    async def test_dislike_moves_from_likes(
        self, comment_service: CommentService, alice: User, bob: User, publisher
    ):
        created = (await comment_service.create_comment("hi", alice.id)).value
        await comment_service.like_comment(created.id, bob.id)

        result = (await comment_service.dislike_comment(created.id, bob.id)).value

        assert result.state is ReactionState.DISLIKED
        assert result.like_count == 0
        assert result.dislike_count == 1
        assert publisher.names[-1] == CommentEvent.DISLIKED.value
        _, _, payload = publisher.events[-1]
        assert payload == {
            "comment_id": str(created.id),
            "like_count": 0,
            "dislike_count": 1,
        }

    async def test_react_to_missing_comment(
        self, comment_service: CommentService, bob: User
    ):
        with pytest.raises(CommentNotFoundError):
            await comment_service.like_comment(uuid4(), bob.id)


class TestListComments:
    """Tests for list_comments."""

    async def test_pagination(self, comment_service: CommentService, alice: User):
        for i in range(15):
            await comment_service.create_comment(f"comment {i}", alice.id)

        page_two = await comment_service.list_comments(page=2, limit=10)

        assert page_two.count == 5
        assert len(page_two.items) == 5
        assert page_two.total == 15
        assert page_two.pages == 2
        assert page_two.page == 2

    async def test_empty_listing(self, comment_service: CommentService):
        listing = await comment_service.list_comments()
        assert listing.items == []
        assert listing.total == 0
        assert listing.pages == 0

    async def test_liked_filter_total(
        self, comment_service: CommentService, alice: User, bob: User
    ):
        ids = [
            (await comment_service.create_comment(f"c{i}", alice.id)).value.id
            for i in range(4)
        ]
        await comment_service.like_comment(ids[0], bob.id)
        await comment_service.like_comment(ids[2], bob.id)

        listing = await comment_service.list_comments(reaction_filter="liked")

        assert listing.total == 2
        assert {item.id for item in listing.items} == {ids[0], ids[2]}

    async def test_most_liked_restricts_and_newest_does_not(
        self, comment_service: CommentService, alice: User, bob: User
    ):
        liked = (await comment_service.create_comment("liked", alice.id)).value
        await comment_service.create_comment("plain", alice.id)
        await comment_service.like_comment(liked.id, bob.id)

        most_liked = await comment_service.list_comments(sort_by="mostLiked")
        newest = await comment_service.list_comments(sort_by="newest")

        assert [item.id for item in most_liked.items] == [liked.id]
        assert newest.total == 2

    async def test_listing_embeds_every_reply_with_author(
        self,
        comment_service: CommentService,
        comment_repo: InMemoryCommentRepository,
        alice: User,
        bob: User,
        carol: User,
    ):
        older = create_comment(author_id=alice.id, content="older thread")
        older.created_at = older.updated_at = datetime(2024, 1, 1, tzinfo=UTC)
        await comment_repo.insert(older)
        parent = (await comment_service.create_comment("busy thread", alice.id)).value
        reply_ids = []
        for i in range(5):
            author = bob if i % 2 == 0 else carol
            reply = await comment_service.reply_to_comment(
                parent.id, f"reply {i}", author.id
            )
            reply_ids.append(reply.value.id)
        await comment_service.like_comment(reply_ids[0], alice.id)
        await comment_service.dislike_comment(reply_ids[1], alice.id)

        listing = await comment_service.list_comments(limit=1, sort_by="newest")

        assert listing.total == 2
        assert listing.count == 1
        item = listing.items[0]
        assert item.id == parent.id
        assert item.reply_count == 5
        assert [r.id for r in item.replies] == reply_ids
        assert [r.author.name for r in item.replies] == [
            "Bob",
            "Carol",
            "Bob",
            "Carol",
            "Bob",
        ]
        assert (item.replies[0].like_count, item.replies[0].dislike_count) == (1, 0)
        assert (item.replies[1].like_count, item.replies[1].dislike_count) == (0, 1)

    async def test_replies_are_not_listed_at_top_level(
        self, comment_service: CommentService, alice: User, bob: User
    ):
        parent = (await comment_service.create_comment("hi", alice.id)).value
        reply = (await comment_service.reply_to_comment(parent.id, "yo", bob.id)).value

        top = await comment_service.list_comments()
        replies = await comment_service.list_comments(parent_id=parent.id)

        assert [item.id for item in top.items] == [parent.id]
        assert [item.id for item in replies.items] == [reply.id]

    async def test_viewer_flags(
        self, comment_service: CommentService, alice: User, bob: User
    ):
        created = (await comment_service.create_comment("hi", alice.id)).value
        await comment_service.dislike_comment(created.id, bob.id)

        anonymous = (await comment_service.list_comments()).items[0]
        as_bob = (await comment_service.list_comments(viewer_id=bob.id)).items[0]
        as_alice = (await comment_service.list_comments(viewer_id=alice.id)).items[0]

        assert anonymous.is_liked_by_user is None
        assert anonymous.is_author is None
        assert as_bob.is_disliked_by_user is True
        assert as_bob.is_author is False
        assert as_alice.is_author is True

    async def test_invalid_parameters(self, comment_service: CommentService):
        with pytest.raises(ContentValidationError):
            await comment_service.list_comments(page=0)
        with pytest.raises(ContentValidationError):
            await comment_service.list_comments(reaction_filter="loved")

    async def test_missing_author_renders_placeholder(
        self,
        comment_service: CommentService,
        comment_repo: InMemoryCommentRepository,
    ):
        orphan = create_comment(author_id=uuid4(), content="ghost")
        await comment_repo.insert(orphan)

        item = (await comment_service.list_comments()).items[0]

        assert item.author.id == orphan.author_id
        assert item.author.name == DELETED_AUTHOR_NAME
        assert item.author.email is None

    async def test_oldest_sort(
        self,
        comment_service: CommentService,
        comment_repo: InMemoryCommentRepository,
        alice: User,
    ):
        base = datetime(2024, 1, 1, tzinfo=UTC)
        stamps = [base + timedelta(hours=h) for h in (2, 0, 1)]
        for stamp in stamps:
            comment = create_comment(author_id=alice.id, content=stamp.isoformat())
            comment.created_at = comment.updated_at = stamp
            await comment_repo.insert(comment)

        listing = await comment_service.list_comments(sort_by="oldest")

        assert [item.created_at for item in listing.items] == sorted(stamps)


class TestScenario:
    """End-to-end walk through a thread's lifecycle."""

    async def test_thread_lifecycle(
        self,
        comment_service: CommentService,
        comment_repo: InMemoryCommentRepository,
        alice: User,
        bob: User,
    ):
        c = (await comment_service.create_comment("hi", alice.id)).value
        r = (await comment_service.reply_to_comment(c.id, "hello", bob.id)).value

        fetched = await comment_service.get_comment(c.id)
        assert [reply.id for reply in fetched.replies] == [r.id]
        assert fetched.reply_count == 1

        liked = (await comment_service.like_comment(r.id, bob.id)).value
        assert liked.like_count == 1
        assert liked.comment.is_disliked_by_user is False

        disliked = (await comment_service.dislike_comment(r.id, bob.id)).value
        assert disliked.like_count == 0
        assert disliked.dislike_count == 1

        await comment_service.delete_comment(c.id, alice.id)
        with pytest.raises(CommentNotFoundError):
            await comment_service.get_comment(c.id)
        with pytest.raises(CommentNotFoundError):
            await comment_service.get_comment(r.id)


class TestNotificationFailures:
    """A broken push channel never fails a committed mutation."""

    async def test_mutation_succeeds_when_publish_raises(
        self,
        comment_repo: InMemoryCommentRepository,
        user_repo,
        failing_publisher,
        alice: User,
    ):
        service = CommentService(
            comments=comment_repo, users=user_repo, publisher=failing_publisher
        )

        result = await service.create_comment("still saved", alice.id)

        assert result.notification.ok is False
        assert "redis unreachable" in (result.notification.error or "")
        assert failing_publisher.calls == 1
        assert await comment_repo.get(result.value.id) is not None

    async def test_delete_succeeds_when_publish_raises(
        self,
        comment_repo: InMemoryCommentRepository,
        user_repo,
        failing_publisher,
        alice: User,
    ):
        service = CommentService(
            comments=comment_repo, users=user_repo, publisher=failing_publisher
        )
        created = (await service.create_comment("bye", alice.id)).value

        result = await service.delete_comment(created.id, alice.id)

        assert result.value == created.id
        assert result.notification.ok is False
        assert await comment_repo.get(created.id) is None
