"""PKCE (Proof Key for Code Exchange) primitives.

Implements RFC 7636 verifier generation and S256 challenge derivation to
prevent authorization code interception attacks.
"""

from __future__ import annotations

import base64
import hashlib
import secrets
import string

from ocra.auth.client.models.errors import PKCEError
from ocra.auth.client.models.security import (
    MAX_VERIFIER_LENGTH,
    MIN_VERIFIER_LENGTH,
    PKCEParameters,
)

# RFC 7636 Section 4.1 unreserved characters
VERIFIER_ALPHABET = string.ascii_letters + string.digits + "-._~"


def generate_verifier(length: int = MAX_VERIFIER_LENGTH) -> str:
    """Generate a cryptographically secure code verifier.

    RFC 7636 Section 4.1: code verifier must be 43-128 characters long
    and use only unreserved characters:
        [A-Z] / [a-z] / [0-9] / "-" / "." / "_" / "~"

    Args:
        length: Verifier length, defaults to the maximum for best security

    Returns:
        Random code verifier
    """
    if not (MIN_VERIFIER_LENGTH <= length <= MAX_VERIFIER_LENGTH):
        raise ValueError(
            f"Verifier length must be {MIN_VERIFIER_LENGTH}-{MAX_VERIFIER_LENGTH}"
        )
    return "".join(secrets.choice(VERIFIER_ALPHABET) for _ in range(length))


def derive_challenge(code_verifier: str) -> str:
    """Derive the S256 code challenge for a verifier.

    RFC 7636 Section 4.2: BASE64URL-ENCODE(SHA256(ASCII(code_verifier)))
    with padding stripped.
    """
    digest = hashlib.sha256(code_verifier.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


class PKCEManager:
    """Generates PKCE pairs for authorization attempts.

    Only the S256 method is supported; plain challenges are never issued.
    """

    def __init__(self, verifier_length: int = MAX_VERIFIER_LENGTH):
        self.verifier_length = verifier_length

    def generate_parameters(self) -> PKCEParameters:
        """Generate a new verifier and its derived challenge.

        Raises:
            PKCEError: If the secure random source is unavailable
        """
        try:
            code_verifier = generate_verifier(self.verifier_length)
        except (OSError, NotImplementedError) as e:
            raise PKCEError(f"Secure random source unavailable: {e}") from e

        return PKCEParameters(
            code_verifier=code_verifier,
            code_challenge=derive_challenge(code_verifier),
            code_challenge_method="S256",
        )
