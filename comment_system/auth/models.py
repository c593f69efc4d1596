"""Database models for user accounts.

Cassandra table definitions for:
- users: account table keyed by id, with a secondary index on email
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from comment_system.utils.dates import ensure_utc_aware, utcnow


USER_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.users (
    id UUID PRIMARY KEY,
    name TEXT,
    email TEXT,
    phone TEXT,
    password_hash TEXT,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

USER_EMAIL_INDEX_CQL = """
CREATE INDEX IF NOT EXISTS users_email_idx ON {keyspace}.users (email)
"""

AUTH_TABLES_CQL = [
    USER_TABLE_CQL,
    USER_EMAIL_INDEX_CQL,
]


@dataclass
class User:
    """A registered account; also the author of comments.

    Attributes:
        id: Unique identifier
        name: Display name (3-50 chars)
        email: Unique, stored lower-cased
        phone: Optional 10-15 digit phone number
        password_hash: Argon2id hash
    """

    name: str
    email: str
    password_hash: str
    phone: str | None = None
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        self.email = self.email.lower().strip()
        self.created_at = ensure_utc_aware(self.created_at) or utcnow()
        self.updated_at = ensure_utc_aware(self.updated_at)

    @classmethod
    def from_row(cls, row: Any) -> "User":
        """Create User instance from Cassandra row."""
        return cls(
            id=row.id,
            name=row.name,
            email=row.email,
            phone=row.phone,
            password_hash=row.password_hash,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def __repr__(self) -> str:
        return f"<User {self.email}>"
