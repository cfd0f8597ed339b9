"""Tests for token issuance/verification and password hashing."""

import uuid
from datetime import UTC, datetime, timedelta
from types import SimpleNamespace

import jwt as pyjwt
import pytest

from farm_manager.core.config import Settings
from farm_manager.core.errors import TokenExpiredError, TokenMalformedError
from farm_manager.core.security import (
    TokenType,
    create_access_token,
    create_refresh_token,
    decode_token,
    generate_reset_token,
    hash_opaque_token,
    hash_password,
    issue_tokens,
    verify_password,
    verify_token,
)


def _user(**overrides: object) -> SimpleNamespace:
    fields: dict[str, object] = {
        "id": uuid.uuid4(),
        "email": "alice@example.com",
        "username": "alice",
        "role": "worker",
        "refresh_token_hash": None,
    }
    fields.update(overrides)
    return SimpleNamespace(**fields)


class TestDecodeToken:
    """JWT edge cases at the PyJWT layer."""

    SECRET = "test-secret-key-for-testing-32chars"

    def test_expired_token_rejected(self) -> None:
        token = create_access_token("user", "admin", self.SECRET, expires_minutes=-1)
        with pytest.raises(pyjwt.ExpiredSignatureError):
            decode_token(token, self.SECRET)

    def test_truncated_token_missing_signature(self) -> None:
        token = create_access_token("user", "admin", self.SECRET)
        truncated = ".".join(token.split(".")[:2])
        with pytest.raises(pyjwt.DecodeError):
            decode_token(truncated, self.SECRET)

    def test_wrong_secret_key_rejected(self) -> None:
        token = create_access_token("user", "admin", self.SECRET)
        with pytest.raises(pyjwt.InvalidSignatureError):
            decode_token(token, "completely-wrong-secret-completely-wrong")

    def test_missing_required_claim_rejected(self) -> None:
        token = pyjwt.encode({"sub": "user", "exp": datetime.now(UTC) + timedelta(minutes=5)}, self.SECRET)
        with pytest.raises(pyjwt.MissingRequiredClaimError):
            decode_token(token, self.SECRET)

    def test_access_token_claims(self) -> None:
        token = create_access_token("user-id", "viewer", self.SECRET, email="v@example.com", username="v")
        payload = decode_token(token, self.SECRET)
        assert payload["sub"] == "user-id"
        assert payload["role"] == "viewer"
        assert payload["type"] == "access"
        assert payload["email"] == "v@example.com"
        assert payload["username"] == "v"

    def test_refresh_token_carries_no_profile(self) -> None:
        payload = decode_token(create_refresh_token("user-id", self.SECRET), self.SECRET)
        assert payload["type"] == "refresh"
        assert "role" not in payload
        assert "email" not in payload


class TestIssueTokens:
    """Tests for issue_tokens."""

    def test_issues_pair_with_configured_lifetimes(self, settings: Settings) -> None:
        now = datetime(2026, 3, 1, 6, 0, tzinfo=UTC)
        user = _user()
        tokens = issue_tokens(user, settings, now=now)

        assert tokens.expires_in == settings.jwt_access_token_expire_minutes * 60
        access = pyjwt.decode(tokens.access_token, options={"verify_signature": False})
        refresh = pyjwt.decode(tokens.refresh_token, options={"verify_signature": False})
        assert access["sub"] == str(user.id)
        assert access["exp"] - access["iat"] == settings.jwt_access_token_expire_minutes * 60
        assert refresh["exp"] - refresh["iat"] == settings.jwt_refresh_token_expire_days * 86400

    def test_deterministic_for_same_instant(self, settings: Settings) -> None:
        now = datetime(2026, 3, 1, 6, 0, tzinfo=UTC)
        user = _user()
        assert issue_tokens(user, settings, now=now) == issue_tokens(user, settings, now=now)

    def test_rotation_in_same_instant_yields_new_refresh_token(self, settings: Settings) -> None:
        now = datetime(2026, 3, 1, 6, 0, tzinfo=UTC)
        user = _user()
        first = issue_tokens(user, settings, now=now)
        user.refresh_token_hash = hash_opaque_token(first.refresh_token)

        second = issue_tokens(user, settings, now=now)

        assert second.refresh_token != first.refresh_token

    def test_sub_second_issue_times_differ(self, settings: Settings) -> None:
        now = datetime(2026, 3, 1, 6, 0, tzinfo=UTC)
        user = _user()
        first = issue_tokens(user, settings, now=now)
        second = issue_tokens(user, settings, now=now + timedelta(microseconds=1))
        assert first.refresh_token != second.refresh_token

    def test_refresh_token_carries_token_id(self, settings: Settings) -> None:
        tokens = issue_tokens(_user(), settings)
        payload = pyjwt.decode(tokens.refresh_token, options={"verify_signature": False})
        assert len(payload["jti"]) == 32

    def test_default_access_lifetime_is_seven_days(self, settings: Settings) -> None:
        assert issue_tokens(_user(), settings).expires_in == 7 * 24 * 3600


class TestVerifyToken:
    """Tests for verify_token."""

    def test_fresh_access_token_accepted(self, settings: Settings) -> None:
        user = _user(role="manager")
        tokens = issue_tokens(user, settings)
        claims = verify_token(tokens.access_token, settings)
        assert claims.subject == str(user.id)
        assert claims.token_type is TokenType.ACCESS
        assert claims.role == "manager"
        assert claims.username == "alice"
        assert claims.expires_at > claims.issued_at

    def test_access_token_rejected_once_expired(self, settings: Settings) -> None:
        issued = datetime.now(UTC) - timedelta(minutes=settings.jwt_access_token_expire_minutes, seconds=1)
        tokens = issue_tokens(_user(), settings, now=issued)
        with pytest.raises(TokenExpiredError):
            verify_token(tokens.access_token, settings)

    def test_refresh_token_is_not_an_access_token(self, settings: Settings) -> None:
        tokens = issue_tokens(_user(), settings)
        with pytest.raises(TokenMalformedError):
            verify_token(tokens.refresh_token, settings)

    def test_access_token_is_not_a_refresh_token(self, settings: Settings) -> None:
        tokens = issue_tokens(_user(), settings)
        with pytest.raises(TokenMalformedError):
            verify_token(tokens.access_token, settings, expected_type=TokenType.REFRESH)

    def test_refresh_token_verifies_under_refresh_secret(self, settings: Settings) -> None:
        tokens = issue_tokens(_user(), settings)
        claims = verify_token(tokens.refresh_token, settings, expected_type=TokenType.REFRESH)
        assert claims.token_type is TokenType.REFRESH

    def test_access_typed_token_signed_with_refresh_secret_rejected(self, settings: Settings) -> None:
        token = create_access_token("someone", "admin", settings.jwt_refresh_secret_key)
        with pytest.raises(TokenMalformedError):
            verify_token(token, settings)

    @pytest.mark.parametrize("garbage", ["", "abc", "a.b.c", "not.a.valid.token.at.all"])
    def test_garbage_is_malformed(self, settings: Settings, garbage: str) -> None:
        with pytest.raises(TokenMalformedError):
            verify_token(garbage, settings)

    def test_empty_subject_is_malformed(self, settings: Settings) -> None:
        token = create_access_token("", "admin", settings.jwt_secret_key)
        with pytest.raises(TokenMalformedError):
            verify_token(token, settings)

    def test_expired_and_malformed_are_both_unauthorized(self) -> None:
        assert TokenExpiredError.status_code == 401
        assert TokenMalformedError.status_code == 401
        assert TokenExpiredError.code != TokenMalformedError.code


class TestPasswordHashing:
    """Tests for password hashing and verification."""

    def test_hash_is_not_plaintext(self) -> None:
        hashed = hash_password("Str0ng!Pass")
        assert hashed != "Str0ng!Pass"
        assert hashed.startswith("$2")

    def test_verify_correct_password(self) -> None:
        assert verify_password("Str0ng!Pass", hash_password("Str0ng!Pass")) is True

    def test_verify_wrong_password(self) -> None:
        assert verify_password("wrong", hash_password("Str0ng!Pass")) is False

    def test_malformed_hash_verifies_false(self) -> None:
        assert verify_password("anything", "not-a-bcrypt-hash") is False

    def test_same_password_produces_different_hashes(self) -> None:
        assert hash_password("SamePassword") != hash_password("SamePassword")


class TestOpaqueTokens:
    """Tests for reset token generation and at-rest hashing."""

    def test_reset_token_is_random_hex(self) -> None:
        first, second = generate_reset_token(), generate_reset_token()
        assert len(first) == 64
        int(first, 16)
        assert first != second

    def test_hash_is_sha256_hex(self) -> None:
        digest = hash_opaque_token("token")
        assert len(digest) == 64
        assert digest == hash_opaque_token("token")
        assert digest != hash_opaque_token("token2")
