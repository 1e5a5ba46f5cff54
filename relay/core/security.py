"""Admin-token gate for the management listing."""

from __future__ import annotations

import secrets

from fastapi import HTTPException, Request

from relay.core.config import Settings, get_settings
from relay.domain.slugs import normalize_slug

ADMIN_HEADER_NAME = "x-admin-access"
ADMIN_QUERY_NAME = "admin"


def _settings(request: Request) -> Settings:
    return getattr(request.app.state, "settings", None) or get_settings()


def admin_slug(settings: Settings) -> str:
    """The admin token doubles as a hidden slug that lists every hook."""
    return normalize_slug(settings.admin_access) if settings.admin_access else ""


def token_matches(expected: str, supplied: str | None) -> bool:
    token = (supplied or "").strip()
    if not expected or not token:
        return False
    return secrets.compare_digest(expected.encode("utf-8"), token.encode("utf-8"))


def require_admin(request: Request) -> None:
    """FastAPI dependency: open when no token is configured."""
    expected = _settings(request).admin_access
    if not expected:
        return
    supplied = request.headers.get(ADMIN_HEADER_NAME) or request.query_params.get(ADMIN_QUERY_NAME)
    if not token_matches(expected, supplied):
        raise HTTPException(401, "Admin access token required.")
