"""FastAPI dependencies for authentication.

Provides dependency injection for:
- Auth service from app state
- Current viewer extraction from the JWT bearer token (required or optional)
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from jose import JWTError

from comment_system.auth.schemas import CurrentUserClaims
from comment_system.auth.security import decode_access_token
from comment_system.auth.service import AuthService
from comment_system.core.context import set_user_id


async def get_auth_service(request: Request) -> AuthService:
    """Get auth service from app state."""
    auth_service = getattr(request.app.state, "auth_service", None)
    if auth_service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Authentication service unavailable",
        )
    return auth_service


def get_token_from_header(request: Request) -> str | None:
    """Extract Bearer token from Authorization header.

    Returns:
        Token string or None if not present
    """
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return None

    expected_parts = 2
    parts = auth_header.split()
    if len(parts) != expected_parts or parts[0].lower() != "bearer":
        return None

    return parts[1]


def _claims_from_token(token: str) -> CurrentUserClaims:
    """Validate the token and bind the viewer id to the logging context.

    Raises:
        JWTError: invalid, expired or malformed token
    """
    payload = decode_access_token(token)
    try:
        claims = CurrentUserClaims(
            id=payload["sub"],
            email=payload.get("email", ""),
            name=payload.get("name", ""),
        )
    except ValueError as e:
        raise JWTError("Malformed token claims") from e

    set_user_id(claims.id)
    return claims


async def get_current_user(
    token: Annotated[str | None, Depends(get_token_from_header)],
) -> CurrentUserClaims:
    """Get current authenticated viewer from JWT token.

    Raises:
        HTTPException(401): If token is missing, invalid, or expired
    """
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authorized, no token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return _claims_from_token(token)
    except JWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authorized, token failed",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


async def get_current_user_optional(
    token: Annotated[str | None, Depends(get_token_from_header)],
) -> CurrentUserClaims | None:
    """Get current viewer if authenticated, None otherwise.

    An invalid token is treated as an anonymous viewer.
    """
    if not token:
        return None

    try:
        return _claims_from_token(token)
    except JWTError:
        return None


# Type aliases for cleaner route signatures
AuthServiceDep = Annotated[AuthService, Depends(get_auth_service)]
CurrentUser = Annotated[CurrentUserClaims, Depends(get_current_user)]
OptionalUser = Annotated[CurrentUserClaims | None, Depends(get_current_user_optional)]
