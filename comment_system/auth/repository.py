"""User store backends (Cassandra and in-memory)."""

from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import replace
from typing import TYPE_CHECKING
from uuid import UUID

from comment_system.auth.models import User


if TYPE_CHECKING:
    from cassandra.cluster import Session


class UserRepository(ABC):
    """Persistence contract for user accounts."""

    @abstractmethod
    async def get(self, user_id: UUID) -> User | None: ...

    @abstractmethod
    async def get_many(self, user_ids: Iterable[UUID]) -> dict[UUID, User]:
        """Resolve ids to users; unknown ids are left out."""

    @abstractmethod
    async def get_by_email(self, email: str) -> User | None: ...

    @abstractmethod
    async def insert(self, user: User) -> None: ...

    @abstractmethod
    async def update_password_hash(self, user: User) -> None: ...


class CassandraUserRepository(UserRepository):
    """User store on the ``users`` table."""

    def __init__(self, session: "Session", keyspace: str):
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for better performance."""
        self._get_user_by_id = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.users WHERE id = ?"
        )
        self._get_users_by_ids = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.users WHERE id IN ?"
        )
        self._get_user_by_email = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.users WHERE email = ?"
        )
        self._insert_user = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.users
            (id, name, email, phone, password_hash, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        """)
        self._update_password = self.session.prepare(f"""
            UPDATE {self.keyspace}.users
            SET password_hash = ?, updated_at = ?
            WHERE id = ?
        """)

    async def get(self, user_id: UUID) -> User | None:
        result = await self.session.aexecute(self._get_user_by_id, [user_id])
        row = result.one()
        return User.from_row(row) if row else None

    async def get_many(self, user_ids: Iterable[UUID]) -> dict[UUID, User]:
        ids = list(dict.fromkeys(user_ids))
        if not ids:
            return {}
        rows = await self.session.aexecute(self._get_users_by_ids, [ids])
        users = (User.from_row(row) for row in rows)
        return {user.id: user for user in users}

    async def get_by_email(self, email: str) -> User | None:
        result = await self.session.aexecute(
            self._get_user_by_email, [email.lower().strip()]
        )
        row = result.one()
        return User.from_row(row) if row else None

    async def insert(self, user: User) -> None:
        await self.session.aexecute(
            self._insert_user,
            [
                user.id,
                user.name,
                user.email,
                user.phone,
                user.password_hash,
                user.created_at,
                user.updated_at,
            ],
        )

    async def update_password_hash(self, user: User) -> None:
        await self.session.aexecute(
            self._update_password, [user.password_hash, user.updated_at, user.id]
        )


class InMemoryUserRepository(UserRepository):
    """User store kept in process memory (development and tests)."""

    def __init__(self) -> None:
        self._users: dict[UUID, User] = {}
        self._ids_by_email: dict[str, UUID] = {}

    def clear(self) -> None:
        self._users.clear()
        self._ids_by_email.clear()

    async def get(self, user_id: UUID) -> User | None:
        user = self._users.get(user_id)
        return replace(user) if user else None

    async def get_many(self, user_ids: Iterable[UUID]) -> dict[UUID, User]:
        return {uid: replace(self._users[uid]) for uid in user_ids if uid in self._users}

    async def get_by_email(self, email: str) -> User | None:
        user_id = self._ids_by_email.get(email.lower().strip())
        return await self.get(user_id) if user_id else None

    async def insert(self, user: User) -> None:
        self._users[user.id] = replace(user)
        self._ids_by_email[user.email] = user.id

    async def update_password_hash(self, user: User) -> None:
        stored = self._users.get(user.id)
        if stored is not None:
            stored.password_hash = user.password_hash
            stored.updated_at = user.updated_at
