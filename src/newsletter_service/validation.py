# ABOUTME: Pure input validation helpers for emails, identifiers and pagination.
# ABOUTME: Every failure is reported as a VALIDATION ServiceError.

import re

from newsletter_service.errors import ServiceError

EMAIL_PATTERN = re.compile(r"^[a-z0-9._%+\-]+@[a-z0-9.\-]+\.[a-z]{2,}$")
MAX_EMAIL_LENGTH = 320

DEFAULT_PAGE_LIMIT = 10
MAX_PAGE_LIMIT = 100


def normalize_email(email: str | None) -> str:
    """Trim, lowercase and validate an email address.

    Args:
        email: Raw address as received from the caller.

    Returns:
        The normalized address.

    Raises:
        ServiceError: VALIDATION if the address is empty or malformed.
    """
    email = (email or "").strip().lower()
    if not email:
        raise ServiceError.validation("email cannot be empty")
    if len(email) > MAX_EMAIL_LENGTH or not EMAIL_PATTERN.match(email):
        raise ServiceError.validation(f"invalid email format: '{email}'")
    return email


def clean_identifier(value: str | None, field: str) -> str:
    """Strip an identifier and reject it when empty."""
    value = (value or "").strip()
    if not value:
        raise ServiceError.validation(f"{field} cannot be empty")
    return value


def id_from_path(path: str, prefix: str, suffix: str = "") -> str | None:
    """Extract an identifier sitting between a path prefix and suffix.

    Example: ``id_from_path("/newsletters/123/subscribe", "/newsletters/", "/subscribe")``
    returns ``"123"``. Returns None when the path does not have the expected shape.
    """
    if not path.startswith(prefix):
        return None
    remainder = path[len(prefix) :]
    if suffix:
        if not remainder.endswith(suffix):
            return None
        remainder = remainder[: -len(suffix)]
    if not remainder or "/" in remainder:
        return None
    return remainder


def parse_int_param(raw: str | int | None, name: str) -> int | None:
    """Parse an optional integer query parameter; None when absent."""
    if raw is None or raw == "":
        return None
    if isinstance(raw, int):
        return raw
    try:
        return int(raw)
    except ValueError as e:
        raise ServiceError.validation(f"Invalid {name} parameter") from e


def resolve_page_window(
    limit: int | None,
    offset: int | None,
    default_limit: int = DEFAULT_PAGE_LIMIT,
    max_limit: int = MAX_PAGE_LIMIT,
) -> tuple[int, int]:
    """Apply pagination defaults and bounds.

    A missing limit defaults to ``default_limit`` and a limit above ``max_limit``
    is clamped. A missing offset defaults to 0.

    Raises:
        ServiceError: VALIDATION for a non-positive limit or a negative offset.
    """
    if limit is None:
        limit = default_limit
    elif limit <= 0:
        raise ServiceError.validation("Invalid limit parameter")
    limit = min(limit, max_limit)

    if offset is None:
        offset = 0
    elif offset < 0:
        raise ServiceError.validation("Invalid offset parameter")

    return limit, offset
