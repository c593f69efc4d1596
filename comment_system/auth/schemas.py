"""Pydantic schemas for authentication.

Request and response models for registration, login and the profile
endpoint.
"""

import re
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from comment_system.auth.models import User


PHONE_PATTERN = re.compile(r"^[0-9]{10,15}$")

NAME_MIN_LENGTH = 3
NAME_MAX_LENGTH = 50
PASSWORD_MIN_LENGTH = 6


# ==============================================================================
# Request Schemas
# ==============================================================================


class RegisterRequest(BaseModel):
    """User registration request."""

    name: str = Field(..., description="Display name (3-50 characters)")
    email: EmailStr = Field(..., description="Email address")
    password: str = Field(
        ..., min_length=PASSWORD_MIN_LENGTH, description="Password (min 6 chars)"
    )
    phone: str | None = Field(None, description="Phone number, 10-15 digits")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not NAME_MIN_LENGTH <= len(v) <= NAME_MAX_LENGTH:
            msg = f"Name must be between {NAME_MIN_LENGTH} and {NAME_MAX_LENGTH} characters"
            raise ValueError(msg)
        return v

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower()

    @field_validator("phone")
    @classmethod
    def validate_phone_format(cls, v: str | None) -> str | None:
        if v is None or v.strip() == "":
            return None
        v = v.strip()
        if not PHONE_PATTERN.match(v):
            msg = "Please provide a valid phone number"
            raise ValueError(msg)
        return v


class LoginRequest(BaseModel):
    """User login request."""

    email: EmailStr = Field(..., description="Email address")
    password: str = Field(..., min_length=1, description="Password")

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower()


# ==============================================================================
# Response Schemas
# ==============================================================================


class UserResponse(BaseModel):
    """User response (public profile)."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    email: str
    phone: str | None = None
    created_at: datetime

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        """Create response from User model."""
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            phone=user.phone,
            created_at=user.created_at,
        )


class TokenResponse(BaseModel):
    """Access token plus the authenticated user."""

    access_token: str
    token_type: str = "Bearer"
    expires_in: int = Field(..., description="Token expiration in seconds")
    user: UserResponse


class CurrentUserClaims(BaseModel):
    """Viewer identity resolved from a validated access token."""

    id: UUID
    email: str
    name: str = ""
