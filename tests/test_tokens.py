"""Tests for access tokens."""

from datetime import timedelta

import jwt
import pytest

from cardkeep.config import settings
from cardkeep.models.failure import UnauthenticatedError
from cardkeep.services.tokens import JWT_ALGORITHM, decode_access_token, issue_access_token

FIRST_KEY = "first-signing-key-0123456789abcdef"
SECOND_KEY = "second-signing-key-0123456789abcdef"


class TestAccessTokens:
    def test_round_trip(self) -> None:
        """A fresh token decodes to the user it was issued for."""
        assert decode_access_token(issue_access_token(7)) == 7

    def test_default_lifetime(self) -> None:
        """Tokens expire after the configured number of minutes."""
        token = issue_access_token(7)
        claims = jwt.decode(token, options={"verify_signature": False})

        assert claims["sub"] == "7"
        assert claims["exp"] - claims["iat"] == settings.access_token_minutes * 60

    def test_expired(self) -> None:
        """An expired token is rejected as expired."""
        token = issue_access_token(7, lifetime=timedelta(minutes=-1))

        with pytest.raises(UnauthenticatedError, match="expired"):
            decode_access_token(token)

    def test_tampered(self) -> None:
        """A token with a modified payload fails verification."""
        header, payload, signature = issue_access_token(7).split(".")
        forged = jwt.encode({"sub": "1", "exp": 9_999_999_999}, SECOND_KEY, JWT_ALGORITHM)

        with pytest.raises(UnauthenticatedError, match="verification"):
            decode_access_token(f"{header}.{forged.split('.')[1]}.{signature}")

    def test_other_signing_key(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Tokens signed under another key are rejected."""
        monkeypatch.setattr(settings, "signing_key", FIRST_KEY)
        token = issue_access_token(7)
        monkeypatch.setattr(settings, "signing_key", SECOND_KEY)

        with pytest.raises(UnauthenticatedError):
            decode_access_token(token)

    def test_missing_subject(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """A correctly signed token without a subject is rejected."""
        monkeypatch.setattr(settings, "signing_key", FIRST_KEY)
        token = jwt.encode({"exp": 9_999_999_999}, FIRST_KEY, algorithm=JWT_ALGORITHM)

        with pytest.raises(UnauthenticatedError):
            decode_access_token(token)
