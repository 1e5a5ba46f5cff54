"""Domain helpers for slug normalisation and validation."""
from __future__ import annotations

import re
from typing import Any

MIN_SLUG_LENGTH = 2
MAX_SLUG_LENGTH = 64
SLUG_PATTERN = re.compile(r"[a-z0-9@._-]+")
_DISALLOWED = re.compile(r"[^a-z0-9@._-]+")
_DASH_RUNS = re.compile(r"-+")
RESERVED_SLUGS = {
    "webhooks",
    "hooks",
    "health",
    "favicon.ico",
    "meta",
    "recent",
}


class SlugValidationError(ValueError):
    """Raised when a slug does not satisfy the format rules."""

    status_code = 400


def normalize_slug(value: Any) -> str:
    """Lowercase, replace disallowed runs with "-", trim dashes."""
    if value is None:
        return ""
    slug = str(value).strip().lower()
    slug = _DISALLOWED.sub("-", slug)
    slug = _DASH_RUNS.sub("-", slug)
    return slug.strip("-")


def is_reserved(slug: str | None) -> bool:
    return (slug or "") in RESERVED_SLUGS


def validate_slug(slug: str | None) -> str:
    if not slug:
        raise SlugValidationError("A slug is required.")
    if len(slug) < MIN_SLUG_LENGTH or len(slug) > MAX_SLUG_LENGTH:
        raise SlugValidationError(
            f"Slug must be between {MIN_SLUG_LENGTH} and {MAX_SLUG_LENGTH} characters."
        )
    if not SLUG_PATTERN.fullmatch(slug):
        raise SlugValidationError(
            "Slug may only contain letters, numbers, @, ., _, and - characters."
        )
    if is_reserved(slug):
        raise SlugValidationError(f'The slug "{slug}" is reserved.')
    return slug


def is_valid_slug(value: str | None) -> bool:
    """Return True when slug matches allowed pattern and is not reserved."""
    try:
        validate_slug(value)
    except SlugValidationError:
        return False
    return True
