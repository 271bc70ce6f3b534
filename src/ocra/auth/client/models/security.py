"""Security-related models for the PKCE authorization flow."""

from __future__ import annotations

from dataclasses import dataclass, field

MIN_VERIFIER_LENGTH = 43
MAX_VERIFIER_LENGTH = 128


@dataclass(frozen=True)
class PKCEParameters:
    """PKCE (Proof Key for Code Exchange) pair for one authorization attempt.

    The verifier stays in transient storage until redeemed or discarded;
    only the challenge ever leaves the process (RFC 7636).
    """

    code_verifier: str = field(repr=False)
    code_challenge: str = field()
    code_challenge_method: str = field(default="S256")

    def __post_init__(self) -> None:
        """Validate PKCE parameters meet RFC 7636 requirements."""
        if not (MIN_VERIFIER_LENGTH <= len(self.code_verifier) <= MAX_VERIFIER_LENGTH):
            raise ValueError("code_verifier must be 43-128 characters")
        if len(self.code_challenge) != 43:
            raise ValueError("code_challenge must be a 43 character S256 digest")
        if self.code_challenge_method != "S256":
            raise ValueError("Only S256 code challenge method is supported")
