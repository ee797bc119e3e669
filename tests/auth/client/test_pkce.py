import base64
import hashlib
import re

import pytest

from sikp.auth.client.models.errors import PKCEError
from sikp.auth.client.models.security import PKCEParameters
from sikp.auth.client.primitives.pkce import PKCEManager, compute_code_challenge
from sikp.auth.client.primitives.random import UNRESERVED_CHARACTERS, random_string

VERIFIER_PATTERN = re.compile(r"^[A-Za-z0-9\-._~]+$")


class TestPKCEManager:
    def test_generate_parameters_crypto_requirements(self) -> None:
        # Arrange
        pkce_manager = PKCEManager()

        # Act
        params = pkce_manager.generate_parameters()

        # Assert RFC 7636 requirements
        assert len(params.code_verifier) == 128
        assert VERIFIER_PATTERN.match(params.code_verifier)
        assert 43 <= len(params.code_challenge) <= 128
        assert params.code_challenge_method == "S256"

        # Verify code_challenge is base64url(sha256(code_verifier))
        expected_challenge = (
            base64.urlsafe_b64encode(
                hashlib.sha256(params.code_verifier.encode("utf-8")).digest()
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

    def test_seeded_source_is_reproducible(self, random_source) -> None:
        # Arrange
        other_source = type(random_source)()

        # Act
        params1 = PKCEManager(random_source).generate_parameters()
        params2 = PKCEManager(other_source).generate_parameters()

        # Assert
        assert params1 == params2
        assert params1.code_challenge == compute_code_challenge(params1.code_verifier)

    def test_broken_random_source_raises_pkce_error(self) -> None:
        # Arrange
        class BrokenSource:
            def choice(self, alphabet: str) -> str:
                raise OSError("entropy unavailable")

        # Act & Assert
        with pytest.raises(PKCEError):
            PKCEManager(BrokenSource()).generate_parameters()


class TestCodeChallenge:
    def test_rfc_7636_appendix_b_vector(self) -> None:
        verifier = "dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk"

        assert (
            compute_code_challenge(verifier)
            == "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM"
        )

    def test_challenge_has_no_padding(self) -> None:
        challenge = compute_code_challenge("a" * 43)

        assert "=" not in challenge
        assert len(challenge) == 43


class TestPKCEParameters:
    def test_short_verifier_rejected(self) -> None:
        with pytest.raises(ValueError):
            PKCEParameters(code_verifier="short", code_challenge="c" * 43)

    def test_plain_method_rejected(self) -> None:
        with pytest.raises(ValueError):
            PKCEParameters(
                code_verifier="v" * 43,
                code_challenge="c" * 43,
                code_challenge_method="plain",
            )


class TestRandomString:
    def test_length_and_alphabet(self) -> None:
        value = random_string(64)

        assert len(value) == 64
        assert set(value) <= set(UNRESERVED_CHARACTERS)

    def test_custom_alphabet(self, random_source) -> None:
        value = random_string(20, source=random_source, alphabet="ab")

        assert set(value) <= {"a", "b"}

    def test_negative_length_rejected(self) -> None:
        with pytest.raises(ValueError):
            random_string(-1)
