"""
Unit tests for JWT issuance and verification.
"""

from datetime import timedelta

import jwt
import pytest

from conftest import TEST_SECRET
from hris.auth.exceptions import ConfigurationError, InvalidTokenError
from hris.auth.jwt_handler import JWTHandler


class TestAccessToken:
    """Test access token payloads."""

    def test_payload_shape(self, tokens):
        token = tokens.create_access_token(
            user_id="u1",
            email="a@example.com",
            permissions=["employee:read:own"],
            roles=["employee"],
            employee_id="E1",
        )

        payload = jwt.decode(token, TEST_SECRET, algorithms=["HS256"])

        assert payload["sub"] == "u1"
        assert payload["email"] == "a@example.com"
        assert payload["permissions"] == ["employee:read:own"]
        assert payload["roles"] == ["employee"]
        assert payload["employeeId"] == "E1"
        assert payload["type"] == "access"
        assert payload["exp"] > payload["iat"]

    def test_employee_id_omitted_when_absent(self, tokens):
        token = tokens.create_access_token("u1", "a@example.com", [], [])

        payload = jwt.decode(token, TEST_SECRET, algorithms=["HS256"])

        assert "employeeId" not in payload

    def test_permissions_are_deduplicated(self, tokens):
        token = tokens.create_access_token(
            "u1", "a@example.com",
            ["leave:read:own", "leave:read:own", "employee:read:own"],
            ["employee", "employee"],
        )

        claims = tokens.verify_token(token)

        assert claims.permissions == ["leave:read:own", "employee:read:own"]
        assert claims.roles == ["employee"]

    def test_default_lifetime_is_short(self, tokens):
        claims = tokens.verify_token(tokens.create_access_token("u1", "a@example.com", [], []))

        assert claims.exp - claims.iat == timedelta(minutes=15)


class TestRefreshToken:
    """Test refresh token payloads."""

    def test_carries_no_permissions(self, tokens):
        token = tokens.create_refresh_token("u1", "a@example.com")

        payload = jwt.decode(token, TEST_SECRET, algorithms=["HS256"])

        assert payload["type"] == "refresh"
        assert payload["sub"] == "u1"
        assert "permissions" not in payload
        assert "roles" not in payload

    def test_tokens_minted_together_are_unique(self, tokens):
        assert tokens.create_refresh_token("u1", "a@example.com") != tokens.create_refresh_token("u1", "a@example.com")

    def test_lifetime_is_seven_days(self, tokens):
        claims = tokens.verify_refresh_token(tokens.create_refresh_token("u1", "a@example.com"))

        assert claims.exp - claims.iat == timedelta(days=7)

    def test_expiry_left_to_the_session(self):
        lapsed = JWTHandler(TEST_SECRET, refresh_token_ttl=timedelta(seconds=-30))

        claims = lapsed.verify_refresh_token(lapsed.create_refresh_token("u1", "a@example.com"))

        assert claims.sub == "u1"
        assert claims.token_type == "refresh"

    def test_signature_still_checked(self, tokens):
        forged = JWTHandler("another-secret-of-sufficient-length-123456", refresh_token_ttl=timedelta(seconds=-30))

        with pytest.raises(InvalidTokenError):
            tokens.verify_refresh_token(forged.create_refresh_token("u1", "a@example.com"))


class TestVerifyToken:
    """Test verification failures."""

    def test_round_trip(self, tokens):
        token = tokens.create_access_token("u1", "a@example.com", ["payroll:read:own"], ["employee"])

        claims = tokens.verify_token(token)

        assert claims.sub == "u1"
        assert claims.token_type == "access"
        assert claims.permissions == ["payroll:read:own"]

    def test_wrong_secret_rejected(self, tokens):
        other = JWTHandler("another-secret-of-sufficient-length-123456")
        token = other.create_access_token("u1", "a@example.com", ["*:*:*"], ["super_admin"])

        with pytest.raises(InvalidTokenError):
            tokens.verify_token(token)

    def test_tampered_payload_rejected(self, tokens):
        honest = tokens.create_access_token("u1", "a@example.com", [], ["employee"])
        forged = jwt.encode(
            {"sub": "u1", "email": "a@example.com", "permissions": ["*:*:*"], "roles": [], "type": "access", "iat": 0, "exp": 9999999999},
            "guessed-secret-guessed-secret-guessed-secret",
            algorithm="HS256",
        )
        header, _, signature = honest.split(".")
        spliced = ".".join([header, forged.split(".")[1], signature])

        with pytest.raises(InvalidTokenError):
            tokens.verify_token(spliced)

    def test_expired_rejected(self):
        expired = JWTHandler(TEST_SECRET, access_token_ttl=timedelta(seconds=-30))
        token = expired.create_access_token("u1", "a@example.com", [], [])

        with pytest.raises(InvalidTokenError):
            expired.verify_token(token)

    def test_expiry_and_signature_failures_look_identical(self, tokens):
        expired = JWTHandler(TEST_SECRET, access_token_ttl=timedelta(seconds=-30))
        forged = JWTHandler("another-secret-of-sufficient-length-123456")

        with pytest.raises(InvalidTokenError) as expired_error:
            tokens.verify_token(expired.create_access_token("u1", "a@example.com", [], []))
        with pytest.raises(InvalidTokenError) as forged_error:
            tokens.verify_token(forged.create_access_token("u1", "a@example.com", [], []))

        assert type(expired_error.value) is type(forged_error.value)
        assert str(expired_error.value) == str(forged_error.value)

    def test_refresh_token_is_not_an_access_token(self, tokens):
        with pytest.raises(InvalidTokenError):
            tokens.verify_token(tokens.create_refresh_token("u1", "a@example.com"))

    def test_access_token_is_not_a_refresh_token(self, tokens):
        with pytest.raises(InvalidTokenError):
            tokens.verify_refresh_token(tokens.create_access_token("u1", "a@example.com", [], []))

    def test_garbage_rejected(self, tokens):
        with pytest.raises(InvalidTokenError):
            tokens.verify_token("not-a-jwt")


class TestConfiguration:
    def test_empty_secret_fails_fast(self):
        with pytest.raises(ConfigurationError):
            JWTHandler("")
