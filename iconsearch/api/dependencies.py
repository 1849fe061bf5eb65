"""Request dependencies."""

import hmac

from fastapi import Header, Request

from iconsearch.context import AppContext, build_context
from iconsearch.exceptions import AccessDeniedError


def get_context(request: Request) -> AppContext:
    """Application context of the running app, built on first use."""
    context: AppContext | None = getattr(request.app.state, "context", None)
    if context is None:
        context = build_context()
        request.app.state.context = context
    return context


def is_console_allowed(context: AppContext, token: str | None) -> bool:
    """Whether ``token`` grants administrative embedding operations.

    With no console token configured every request is denied.
    """
    expected = context.settings.console_token
    if expected is None or not token:
        return False
    return hmac.compare_digest(token.encode(), expected.get_secret_value().encode())


def require_console_access(
    request: Request,
    x_console_token: str | None = Header(default=None),
) -> None:
    """Reject requests without a valid ``X-Console-Token`` header."""
    if not is_console_allowed(get_context(request), x_console_token):
        raise AccessDeniedError("Console access required")
