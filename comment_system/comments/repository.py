"""Comment store backends.

``CommentRepository`` is the store contract used by ``CommentService``. Two
backends implement it:

- ``CassandraCommentRepository``: ``comments`` table as the record arena plus
  the ``comments_by_parent`` listing index.
- ``InMemoryCommentRepository``: dict arena plus a parent index, for local
  development and tests.

Listing reads load one parent partition and apply the pure query helpers from
``comments.query``, so sort and filter semantics live in one place.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import replace
from datetime import datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID

from .models import Comment, parent_key_for
from .query import CommentQuery, apply_query, count_matching


if TYPE_CHECKING:
    from cassandra.cluster import Session


# Upper bound of ids bound to a single ``IN ?`` lookup
_IN_QUERY_CHUNK = 100


def _is_complete(row: Any) -> bool:
    """False for partial rows left behind by a write racing a delete."""
    return row.author_id is not None and row.created_at is not None


class CommentRepository(ABC):
    """Persistence contract for comment records."""

    @abstractmethod
    async def get(self, comment_id: UUID) -> Comment | None: ...

    @abstractmethod
    async def get_many(self, comment_ids: Iterable[UUID]) -> dict[UUID, Comment]:
        """Resolve ids to records; ids that no longer exist are left out."""

    @abstractmethod
    async def find_with_total(
        self, query: CommentQuery
    ) -> tuple[list[Comment], int]:
        """One page of comments matching ``query`` and the unpaginated total."""

    @abstractmethod
    async def insert(self, comment: Comment) -> None: ...

    @abstractmethod
    async def update_content(
        self, comment_id: UUID, content: str, updated_at: datetime
    ) -> None:
        """Replace content and mark the comment as edited."""

    @abstractmethod
    async def set_reactions(
        self, comment_id: UUID, likes: set[UUID], dislikes: set[UUID]
    ) -> None:
        """Overwrite both reaction sets in a single write."""

    @abstractmethod
    async def add_reply(self, parent_id: UUID, reply_id: UUID) -> None: ...

    @abstractmethod
    async def remove_reply(self, parent_id: UUID, reply_id: UUID) -> None: ...

    @abstractmethod
    async def delete(self, comment_id: UUID) -> bool:
        """Delete one record; returns False when it did not exist."""

    @abstractmethod
    async def delete_many(self, comment_ids: Iterable[UUID]) -> int:
        """Delete the given records; returns how many existed."""


# ==============================================================================
# Cassandra backend
# ==============================================================================


class CassandraCommentRepository(CommentRepository):
    """Comment store on Cassandra with prepared statements and ``aexecute``."""

    def __init__(self, session: "Session", keyspace: str):
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient queries."""
        self._insert_comment = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.comments
            (comment_id, parent_id, author_id, content, replies, likes, dislikes,
             is_edited, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)

        self._insert_by_parent = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.comments_by_parent
            (parent_key, created_at, comment_id)
            VALUES (?, ?, ?)
        """)

        self._get_comment = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.comments WHERE comment_id = ?
        """)

        self._get_comments = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.comments WHERE comment_id IN ?
        """)

        self._get_ids_by_parent = self.session.prepare(f"""
            SELECT comment_id FROM {self.keyspace}.comments_by_parent
            WHERE parent_key = ?
        """)

        self._update_content = self.session.prepare(f"""
            UPDATE {self.keyspace}.comments
            SET content = ?, is_edited = true, updated_at = ?
            WHERE comment_id = ?
            IF EXISTS
        """)

        self._set_reactions = self.session.prepare(f"""
            UPDATE {self.keyspace}.comments
            SET likes = ?, dislikes = ?
            WHERE comment_id = ?
            IF EXISTS
        """)

        self._append_reply = self.session.prepare(f"""
            UPDATE {self.keyspace}.comments
            SET replies = replies + ?
            WHERE comment_id = ?
            IF EXISTS
        """)

        self._discard_reply = self.session.prepare(f"""
            UPDATE {self.keyspace}.comments
            SET replies = replies - ?
            WHERE comment_id = ?
            IF EXISTS
        """)

        self._delete_comment = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.comments WHERE comment_id = ?
        """)

        self._delete_by_parent = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.comments_by_parent
            WHERE parent_key = ? AND created_at = ? AND comment_id = ?
        """)

    async def get(self, comment_id: UUID) -> Comment | None:
        result = await self.session.aexecute(self._get_comment, [comment_id])
        row = result.one()
        return Comment.from_row(row) if row and _is_complete(row) else None

    async def get_many(self, comment_ids: Iterable[UUID]) -> dict[UUID, Comment]:
        ids = list(dict.fromkeys(comment_ids))
        found: dict[UUID, Comment] = {}
        for start in range(0, len(ids), _IN_QUERY_CHUNK):
            chunk = ids[start : start + _IN_QUERY_CHUNK]
            rows = await self.session.aexecute(self._get_comments, [chunk])
            for row in rows:
                if not _is_complete(row):
                    continue
                comment = Comment.from_row(row)
                found[comment.comment_id] = comment
        return found

    async def _load_partition(self, parent_id: UUID | None) -> list[Comment]:
        """All comments filed under one parent (or all top-level comments)."""
        rows = await self.session.aexecute(
            self._get_ids_by_parent, [parent_key_for(parent_id)]
        )
        ids = [row.comment_id for row in rows]
        if not ids:
            return []
        return list((await self.get_many(ids)).values())

    async def find_with_total(
        self, query: CommentQuery
    ) -> tuple[list[Comment], int]:
        candidates = await self._load_partition(query.parent_id)
        return apply_query(candidates, query), count_matching(candidates, query)

    async def insert(self, comment: Comment) -> None:
        await self.session.aexecute(
            self._insert_comment,
            [
                comment.comment_id,
                comment.parent_id,
                comment.author_id,
                comment.content,
                list(comment.replies),
                set(comment.likes),
                set(comment.dislikes),
                comment.is_edited,
                comment.created_at,
                comment.updated_at,
            ],
        )
        await self.session.aexecute(
            self._insert_by_parent,
            [parent_key_for(comment.parent_id), comment.created_at, comment.comment_id],
        )

    async def update_content(
        self, comment_id: UUID, content: str, updated_at: datetime
    ) -> None:
        await self.session.aexecute(
            self._update_content, [content, updated_at, comment_id]
        )

    async def set_reactions(
        self, comment_id: UUID, likes: set[UUID], dislikes: set[UUID]
    ) -> None:
        await self.session.aexecute(
            self._set_reactions, [set(likes), set(dislikes), comment_id]
        )

    async def add_reply(self, parent_id: UUID, reply_id: UUID) -> None:
        await self.session.aexecute(self._append_reply, [[reply_id], parent_id])

    async def remove_reply(self, parent_id: UUID, reply_id: UUID) -> None:
        await self.session.aexecute(self._discard_reply, [[reply_id], parent_id])

    async def _delete_record(self, comment: Comment) -> None:
        await self.session.aexecute(self._delete_comment, [comment.comment_id])
        await self.session.aexecute(
            self._delete_by_parent,
            [parent_key_for(comment.parent_id), comment.created_at, comment.comment_id],
        )

    async def delete(self, comment_id: UUID) -> bool:
        comment = await self.get(comment_id)
        if comment is None:
            return False
        await self._delete_record(comment)
        return True

    async def delete_many(self, comment_ids: Iterable[UUID]) -> int:
        existing = await self.get_many(comment_ids)
        for comment in existing.values():
            await self._delete_record(comment)
        return len(existing)


# ==============================================================================
# In-memory backend
# ==============================================================================


def _clone(comment: Comment) -> Comment:
    """Detached copy so callers never mutate stored state by accident."""
    return replace(
        comment,
        replies=list(comment.replies),
        likes=set(comment.likes),
        dislikes=set(comment.dislikes),
    )


class InMemoryCommentRepository(CommentRepository):
    """Comment store kept in process memory.

    ``_records`` is the arena keyed by id; ``_by_parent`` maps a listing key
    (parent id or ``ROOT_PARENT_KEY``) to the ids filed under it.
    """

    def __init__(self) -> None:
        self._records: dict[UUID, Comment] = {}
        self._by_parent: dict[UUID, list[UUID]] = {}

    def clear(self) -> None:
        self._records.clear()
        self._by_parent.clear()

    def _partition(self, parent_id: UUID | None) -> list[Comment]:
        ids = self._by_parent.get(parent_key_for(parent_id), [])
        return [self._records[i] for i in ids if i in self._records]

    async def get(self, comment_id: UUID) -> Comment | None:
        comment = self._records.get(comment_id)
        return _clone(comment) if comment else None

    async def get_many(self, comment_ids: Iterable[UUID]) -> dict[UUID, Comment]:
        return {
            cid: _clone(self._records[cid])
            for cid in comment_ids
            if cid in self._records
        }

    async def find_with_total(
        self, query: CommentQuery
    ) -> tuple[list[Comment], int]:
        candidates = self._partition(query.parent_id)
        page = [_clone(c) for c in apply_query(candidates, query)]
        return page, count_matching(candidates, query)

    async def insert(self, comment: Comment) -> None:
        self._records[comment.comment_id] = _clone(comment)
        self._by_parent.setdefault(parent_key_for(comment.parent_id), []).append(
            comment.comment_id
        )

    async def update_content(
        self, comment_id: UUID, content: str, updated_at: datetime
    ) -> None:
        comment = self._records.get(comment_id)
        if comment is None:
            return
        comment.content = content
        comment.is_edited = True
        comment.updated_at = updated_at

    async def set_reactions(
        self, comment_id: UUID, likes: set[UUID], dislikes: set[UUID]
    ) -> None:
        comment = self._records.get(comment_id)
        if comment is None:
            return
        comment.likes = set(likes)
        comment.dislikes = set(dislikes)

    async def add_reply(self, parent_id: UUID, reply_id: UUID) -> None:
        parent = self._records.get(parent_id)
        if parent is not None and reply_id not in parent.replies:
            parent.replies.append(reply_id)

    async def remove_reply(self, parent_id: UUID, reply_id: UUID) -> None:
        parent = self._records.get(parent_id)
        if parent is not None:
            parent.replies = [r for r in parent.replies if r != reply_id]

    async def delete(self, comment_id: UUID) -> bool:
        comment = self._records.pop(comment_id, None)
        if comment is None:
            return False
        siblings = self._by_parent.get(parent_key_for(comment.parent_id), [])
        if comment_id in siblings:
            siblings.remove(comment_id)
        return True

    async def delete_many(self, comment_ids: Iterable[UUID]) -> int:
        deleted = 0
        for comment_id in list(comment_ids):
            if await self.delete(comment_id):
                deleted += 1
        return deleted