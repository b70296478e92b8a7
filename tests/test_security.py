"""Unit tests for app.core.security: password hashing and the access/refresh token service."""

import unittest
from datetime import UTC, datetime, timedelta
from unittest.mock import patch

import jwt
from pydantic import SecretStr

from app.core.config import Settings
from app.core.security import (
    TOKEN_TYPE_ACCESS,
    TOKEN_TYPE_REFRESH,
    TokenExpiredError,
    TokenInvalidError,
    TokenWrongTypeError,
    create_token,
    hash_password,
    issue_token_pair,
    verify_access_token,
    verify_password,
    verify_refresh_token,
)


def _settings(**overrides: object) -> Settings:
    values: dict[str, object] = {
        "DATABASE_URL": "sqlite://",
        "JWT_SECRET": SecretStr("access-secret-for-tests"),
    }
    values.update(overrides)
    return Settings(**values)


class TestPasswordHashing(unittest.TestCase):
    @patch("app.core.security.BCRYPT_ROUNDS", 4)
    def test_hash_verifies_and_is_not_plaintext(self) -> None:
        hashed = hash_password("Secret1!")
        self.assertNotEqual(hashed, "Secret1!")
        self.assertTrue(verify_password("Secret1!", hashed))
        self.assertFalse(verify_password("secret1!", hashed))

    def test_garbage_hash_is_rejected_not_raised(self) -> None:
        self.assertFalse(verify_password("Secret1!", "not-a-bcrypt-hash"))


class TestTokenPair(unittest.TestCase):
    def setUp(self) -> None:
        patcher = patch("app.core.security.settings", _settings())
        self.settings = patcher.start()
        self.addCleanup(patcher.stop)

    def test_pair_round_trips_to_user_id(self) -> None:
        pair = issue_token_pair(42)
        self.assertEqual(verify_access_token(pair.access_token), 42)
        self.assertEqual(verify_refresh_token(pair.refresh_token), 42)

    def test_claims_and_lifetimes(self) -> None:
        now = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)
        access = jwt.decode(
            create_token(7, TOKEN_TYPE_ACCESS, now=now), options={"verify_signature": False}
        )
        refresh = jwt.decode(
            create_token(7, TOKEN_TYPE_REFRESH, now=now), options={"verify_signature": False}
        )
        self.assertEqual(access["sub"], "7")
        self.assertEqual(access["type"], "access")
        self.assertEqual(refresh["type"], "refresh")
        self.assertEqual(access["exp"] - access["iat"], 15 * 60)
        self.assertEqual(refresh["exp"] - refresh["iat"], 7 * 24 * 3600)
        self.assertNotEqual(access["jti"], refresh["jti"])

    def test_two_pairs_for_same_user_differ(self) -> None:
        first = issue_token_pair(1)
        second = issue_token_pair(1)
        self.assertNotEqual(first.access_token, second.access_token)
        self.assertNotEqual(first.refresh_token, second.refresh_token)


class TestTokenRejection(unittest.TestCase):
    def setUp(self) -> None:
        patcher = patch("app.core.security.settings", _settings())
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_refresh_token_rejected_as_access(self) -> None:
        pair = issue_token_pair(3)
        with self.assertRaises(TokenWrongTypeError):
            verify_access_token(pair.refresh_token)

    def test_access_token_rejected_as_refresh(self) -> None:
        pair = issue_token_pair(3)
        with self.assertRaises(TokenWrongTypeError) as ctx:
            verify_refresh_token(pair.access_token)
        self.assertEqual(ctx.exception.message, "Invalid token type")

    def test_expired_access_token(self) -> None:
        issued = datetime.now(UTC) - timedelta(minutes=16)
        token = create_token(3, TOKEN_TYPE_ACCESS, now=issued)
        with self.assertRaises(TokenExpiredError):
            verify_access_token(token)

    def test_access_token_still_valid_just_before_expiry(self) -> None:
        issued = datetime.now(UTC) - timedelta(minutes=14)
        token = create_token(3, TOKEN_TYPE_ACCESS, now=issued)
        self.assertEqual(verify_access_token(token), 3)

    def test_malformed_token(self) -> None:
        with self.assertRaises(TokenInvalidError):
            verify_access_token("not.a.jwt")

    def test_wrong_signature(self) -> None:
        forged = jwt.encode(
            {
                "sub": "3",
                "type": "access",
                "iat": datetime.now(UTC),
                "exp": datetime.now(UTC) + timedelta(minutes=5),
            },
            "some-other-secret",
            algorithm="HS256",
        )
        with self.assertRaises(TokenInvalidError):
            verify_access_token(forged)

    def test_non_numeric_subject(self) -> None:
        token = create_token("abc", TOKEN_TYPE_ACCESS)
        with self.assertRaises(TokenInvalidError):
            verify_access_token(token)


class TestRefreshSecret(unittest.TestCase):
    def test_refresh_secret_falls_back_to_access_secret(self) -> None:
        s = _settings()
        self.assertEqual(s.refresh_secret.get_secret_value(), "access-secret-for-tests")

    def test_blank_refresh_secret_is_treated_as_unset(self) -> None:
        s = _settings(JWT_REFRESH_SECRET=SecretStr("   "))
        self.assertIsNone(s.JWT_REFRESH_SECRET)

    def test_separate_refresh_secret_signs_refresh_tokens(self) -> None:
        separate = _settings(JWT_REFRESH_SECRET=SecretStr("refresh-secret-for-tests"))
        with patch("app.core.security.settings", separate):
            pair = issue_token_pair(9)
            self.assertEqual(verify_refresh_token(pair.refresh_token), 9)
        jwt.decode(
            pair.refresh_token,
            "refresh-secret-for-tests",
            algorithms=["HS256"],
        )
        with self.assertRaises(jwt.InvalidSignatureError):
            jwt.decode(pair.refresh_token, "access-secret-for-tests", algorithms=["HS256"])


if __name__ == "__main__":
    unittest.main()
