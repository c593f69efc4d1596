# Core infrastructure
from comment_system.core.context import (
    RequestContext,
    clear_context,
    get_context,
    get_request_id,
    get_user_id,
    set_request_id,
    set_user_id,
)
from comment_system.core.logging import configure_structlog, get_logger
from comment_system.core.middleware import (
    RequestContextMiddleware,
    SecurityHeadersMiddleware,
)
from comment_system.core.rate_limit import RateLimitConfig, RateLimitMiddleware


__all__ = [
    "RateLimitConfig",
    "RateLimitMiddleware",
    "RequestContext",
    "RequestContextMiddleware",
    "SecurityHeadersMiddleware",
    "clear_context",
    "configure_structlog",
    "get_context",
    "get_logger",
    "get_request_id",
    "get_user_id",
    "set_request_id",
    "set_user_id",
]
