import base64
import hashlib
import re

import pytest

from ocra.auth.client.models.security import PKCEParameters
from ocra.auth.client.primitives.pkce import (
    PKCEManager,
    derive_challenge,
    generate_verifier,
)

UNRESERVED = re.compile(r"^[A-Za-z0-9\-._~]+$")


class TestPKCEManager:
    def test_generate_parameters_crypto_requirements(self) -> None:
        # Arrange
        pkce_manager = PKCEManager()

        # Act
        params = pkce_manager.generate_parameters()

        # Assert RFC 7636 requirements
        assert 43 <= len(params.code_verifier) <= 128
        assert len(params.code_challenge) == 43
        assert params.code_challenge_method == "S256"

        # Verify code_challenge is base64url(sha256(code_verifier))
        expected_challenge = (
            base64.urlsafe_b64encode(
                hashlib.sha256(params.code_verifier.encode("ascii")).digest()
            )
            .decode("ascii")
            .rstrip("=")
        )
        assert params.code_challenge == expected_challenge

    def test_generate_parameters_uniqueness(self) -> None:
        # Arrange
        pkce_manager = PKCEManager()

        # Act - Generate multiple parameters
        params1 = pkce_manager.generate_parameters()
        params2 = pkce_manager.generate_parameters()

        # Assert - Each generation is unique
        assert params1.code_verifier != params2.code_verifier
        assert params1.code_challenge != params2.code_challenge

    def test_verifier_is_not_in_repr(self) -> None:
        # Arrange
        params = PKCEManager().generate_parameters()

        # Act
        text = repr(params)

        # Assert
        assert params.code_verifier not in text


class TestVerifier:
    def test_verifiers_use_unreserved_alphabet_and_minimum_length(self) -> None:
        # Act
        verifiers = [generate_verifier() for _ in range(50)]

        # Assert
        for verifier in verifiers:
            assert len(verifier) >= 43
            assert UNRESERVED.match(verifier)

    def test_minimum_length_verifier_is_accepted(self) -> None:
        # Act
        verifier = generate_verifier(43)

        # Assert
        assert len(verifier) == 43

    @pytest.mark.parametrize("length", [42, 129])
    def test_out_of_range_length_is_rejected(self, length: int) -> None:
        with pytest.raises(ValueError):
            generate_verifier(length)


class TestChallenge:
    def test_rfc7636_appendix_b_vector(self) -> None:
        # Arrange
        verifier = "dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk"

        # Act
        challenge = derive_challenge(verifier)

        # Assert
        assert challenge == "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM"

    def test_challenge_is_deterministic(self) -> None:
        # Arrange
        verifier = generate_verifier()

        # Act / Assert
        assert derive_challenge(verifier) == derive_challenge(verifier)

    def test_challenge_has_no_padding_or_standard_base64_chars(self) -> None:
        # Act
        challenges = [derive_challenge(generate_verifier()) for _ in range(50)]

        # Assert
        for challenge in challenges:
            assert "=" not in challenge
            assert "+" not in challenge
            assert "/" not in challenge


class TestPKCEParameters:
    def test_short_verifier_rejected(self) -> None:
        with pytest.raises(ValueError, match="43-128"):
            PKCEParameters(
                code_verifier="short",
                code_challenge=derive_challenge("short"),
            )

    def test_plain_method_rejected(self) -> None:
        # Arrange
        verifier = generate_verifier()

        # Act / Assert
        with pytest.raises(ValueError, match="S256"):
            PKCEParameters(
                code_verifier=verifier,
                code_challenge=derive_challenge(verifier),
                code_challenge_method="plain",
            )
