"""Security utilities for the authorization flow.

Provides the anti-CSRF state parameter and its constant-time check.
"""

from __future__ import annotations

import secrets
import string

from ocra.auth.client.models.errors import InvalidStateError


def generate_state() -> str:
    """Generate cryptographically secure state parameter.

    The state parameter provides CSRF protection by ensuring the callback
    matches the original authorization request.

    Returns:
        Cryptographically secure random state string (32 characters)
    """
    alphabet = string.ascii_letters + string.digits + "-_"
    return "".join(secrets.choice(alphabet) for _ in range(32))


def validate_state(expected: str, actual: str | None) -> None:
    """Validate state parameter matches expected value.

    Args:
        expected: State parameter from original authorization request
        actual: State parameter from callback URL

    Raises:
        InvalidStateError: If state parameters don't match
    """
    if actual is None:
        raise InvalidStateError("Callback missing required state parameter")
    if not secrets.compare_digest(expected.encode("utf-8"), actual.encode("utf-8")):
        raise InvalidStateError("State parameter mismatch - possible CSRF attack")
