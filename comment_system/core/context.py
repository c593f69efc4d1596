"""Request-scoped context carried in contextvars.

Every request gets a request id and, once the bearer token has been resolved,
the viewer id. Log processors read these values so callers never have to pass
them around explicitly.
"""

from contextvars import ContextVar, Token
from typing import Any
from uuid import UUID, uuid4


request_id_var: ContextVar[str] = ContextVar("request_id", default="")
user_id_var: ContextVar[str | None] = ContextVar("user_id", default=None)
trace_id_var: ContextVar[str | None] = ContextVar("trace_id", default=None)
correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)

_CONTEXT_VARS: dict[str, ContextVar[Any]] = {
    "request_id": request_id_var,
    "user_id": user_id_var,
    "trace_id": trace_id_var,
    "correlation_id": correlation_id_var,
}


def generate_request_id() -> str:
    """Generate a new unique request ID."""
    return str(uuid4())


def get_request_id() -> str:
    """Get the current request ID."""
    return request_id_var.get()


def set_request_id(request_id: str | None = None) -> str:
    """Set the request ID for the current context, generating one if missing."""
    rid = request_id or generate_request_id()
    request_id_var.set(rid)
    return rid


def get_user_id() -> str | None:
    """Get the id of the viewer bound to the current request."""
    return user_id_var.get()


def set_user_id(user_id: str | UUID | None) -> None:
    """Bind the viewer id (or clear it for anonymous viewers)."""
    user_id_var.set(str(user_id) if user_id is not None else None)


def get_trace_id() -> str | None:
    return trace_id_var.get()


def set_trace_id(trace_id: str | None) -> None:
    trace_id_var.set(trace_id)


def get_correlation_id() -> str | None:
    return correlation_id_var.get()


def set_correlation_id(correlation_id: str | None) -> None:
    correlation_id_var.set(correlation_id)


def get_context() -> dict[str, Any]:
    """Return the non-empty context values as a dictionary."""
    return {name: var.get() for name, var in _CONTEXT_VARS.items() if var.get()}


def clear_context() -> None:
    """Reset all context variables.

    Called at the end of each request so values never leak into the next one.
    """
    request_id_var.set("")
    user_id_var.set(None)
    trace_id_var.set(None)
    correlation_id_var.set(None)


class RequestContext:
    """Context manager binding request values for a block of code.

    Used by scripts and background tasks that run outside the HTTP middleware:

        with RequestContext(request_id="publish-test"):
            logger.info("publishing")  # carries request_id
    """

    def __init__(self, **values: str | UUID | None) -> None:
        unknown = set(values) - set(_CONTEXT_VARS)
        if unknown:
            raise ValueError(f"Unknown context keys: {sorted(unknown)}")
        self._values = values
        self._tokens: list[tuple[ContextVar[Any], Token[Any]]] = []

    def __enter__(self) -> "RequestContext":
        values = dict(self._values)
        values.setdefault("request_id", None)
        for name, value in values.items():
            if name == "request_id":
                value = value or generate_request_id()
            elif value is None:
                continue
            var = _CONTEXT_VARS[name]
            self._tokens.append((var, var.set(str(value))))
        return self

    def __exit__(self, *_: object) -> None:
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens.clear()
