"""Authentication API endpoints: register, login and current user."""

from fastapi import APIRouter, HTTPException, status

from comment_system.auth.dependencies import AuthServiceDep, CurrentUser
from comment_system.auth.schemas import (
    LoginRequest,
    RegisterRequest,
    TokenResponse,
    UserResponse,
)
from comment_system.auth.service import (
    AuthError,
    InvalidCredentialsError,
    UserExistsError,
    UserNotFoundError,
)


router = APIRouter(prefix="/v1/auth", tags=["auth"])


def handle_auth_error(error: AuthError) -> HTTPException:
    """Convert AuthError to HTTPException."""
    status_map = {
        "invalid_credentials": status.HTTP_401_UNAUTHORIZED,
        "user_not_found": status.HTTP_404_NOT_FOUND,
        "user_exists": status.HTTP_409_CONFLICT,
        "auth_error": status.HTTP_400_BAD_REQUEST,
    }

    field = getattr(error, "field", None)
    detail: str | dict[str, str] = (
        {"message": error.message, "field": field} if field else error.message
    )

    return HTTPException(
        status_code=status_map.get(error.code, status.HTTP_400_BAD_REQUEST),
        detail=detail,
    )


@router.post(
    "/register",
    response_model=TokenResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register new user",
    responses={
        409: {"description": "Email already registered"},
        422: {"description": "Validation error"},
    },
)
async def register(
    data: RegisterRequest,
    auth_service: AuthServiceDep,
) -> TokenResponse:
    """Register a new account and return an access token for it."""
    try:
        user = await auth_service.register_user(data)
    except UserExistsError as e:
        raise handle_auth_error(e) from e
    return auth_service.create_token(user)


@router.post(
    "/login",
    response_model=TokenResponse,
    summary="User login",
    responses={401: {"description": "Invalid credentials"}},
)
async def login(
    data: LoginRequest,
    auth_service: AuthServiceDep,
) -> TokenResponse:
    """Authenticate with email and password and return an access token."""
    try:
        user = await auth_service.authenticate_user(data.email, data.password)
    except InvalidCredentialsError as e:
        raise handle_auth_error(e) from e
    return auth_service.create_token(user)


@router.get(
    "/me",
    response_model=UserResponse,
    summary="Get current user",
)
async def get_me(
    user: CurrentUser,
    auth_service: AuthServiceDep,
) -> UserResponse:
    """Current user profile, read from the store rather than token claims."""
    try:
        db_user = await auth_service.get_user(user.id)
    except UserNotFoundError as e:
        raise handle_auth_error(e) from e
    return auth_service.to_response(db_user)
