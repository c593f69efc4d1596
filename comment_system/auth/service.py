"""Authentication service layer.

Business logic for:
- User registration and login
- Access token issuance
- User lookups (also used to resolve comment authors)
"""

from uuid import UUID

import structlog

from comment_system.auth.models import User
from comment_system.auth.repository import UserRepository
from comment_system.auth.schemas import (
    RegisterRequest,
    TokenResponse,
    UserResponse,
)
from comment_system.auth.security import (
    access_token_lifetime,
    create_access_token,
    hash_password,
    verify_password,
)
from comment_system.utils.dates import utcnow


logger = structlog.get_logger(__name__)


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class AuthError(Exception):
    """Base authentication error."""

    def __init__(self, message: str, code: str = "auth_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class InvalidCredentialsError(AuthError):
    """Invalid email or password."""

    def __init__(self, message: str = "Invalid credentials"):
        super().__init__(message, "invalid_credentials")


class UserExistsError(AuthError):
    """Email already registered."""

    def __init__(self, message: str = "User already exists", field: str | None = None):
        super().__init__(message, "user_exists")
        self.field = field


class UserNotFoundError(AuthError):
    """User not found."""

    def __init__(self, message: str = "User not found"):
        super().__init__(message, "user_not_found")


# ==============================================================================
# Service
# ==============================================================================


class AuthService:
    """Registration, login and user lookups on top of a ``UserRepository``."""

    def __init__(self, users: UserRepository):
        self.users = users

    async def register_user(self, data: RegisterRequest) -> User:
        """Register a new user.

        Raises:
            UserExistsError: If the email is already registered
        """
        if await self.users.get_by_email(data.email):
            raise UserExistsError("User already exists", field="email")

        user = User(
            name=data.name,
            email=data.email,
            phone=data.phone,
            password_hash=hash_password(data.password),
        )
        await self.users.insert(user)
        logger.info("user_registered", user_id=str(user.id))
        return user

    async def authenticate_user(self, email: str, password: str) -> User:
        """Authenticate user with email and password.

        Raises:
            InvalidCredentialsError: If email or password is wrong
        """
        user = await self.users.get_by_email(email)
        if not user:
            raise InvalidCredentialsError

        is_valid, new_hash = verify_password(password, user.password_hash)
        if not is_valid:
            logger.info("login_failed", user_id=str(user.id))
            raise InvalidCredentialsError

        # Hash parameters changed since the password was stored
        if new_hash:
            user.password_hash = new_hash
            user.updated_at = utcnow()
            await self.users.update_password_hash(user)

        return user

    def create_token(self, user: User) -> TokenResponse:
        """Issue an access token for ``user``."""
        lifetime = access_token_lifetime()
        token = create_access_token(
            {"sub": str(user.id), "email": user.email, "name": user.name},
            expires_delta=lifetime,
        )
        return TokenResponse(
            access_token=token,
            expires_in=int(lifetime.total_seconds()),
            user=self.to_response(user),
        )

    async def get_user_by_id(self, user_id: UUID) -> User | None:
        return await self.users.get(user_id)

    async def get_user(self, user_id: UUID) -> User:
        """Like ``get_user_by_id`` but raises when the account is gone.

        Raises:
            UserNotFoundError: If no user has this id
        """
        user = await self.users.get(user_id)
        if user is None:
            raise UserNotFoundError
        return user

    def to_response(self, user: User) -> UserResponse:
        """Convert User model to UserResponse schema."""
        return UserResponse.from_user(user)
