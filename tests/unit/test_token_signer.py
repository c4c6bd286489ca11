"""Unit tests for TokenSigner.

Tests JWT issuance/verification against a fixed clock, zero-leeway
lifetime checks, and refresh secret generation.
"""

import base64
from datetime import timedelta
from uuid import uuid4

import jwt
import pytest

from authcore.exceptions import ConfigurationError, InvalidTokenError
from authcore.services.token_signer import JWT_ALGORITHM, TokenSigner

JWT_SECRET = "test-secret-key-for-jwt-unit-tests-0123456789"
JWT_ISSUER = "authcore-test"
JWT_AUDIENCE = "authcore-test-clients"


def _craft(clock, **overrides):
    """Encode a token by hand, bypassing TokenSigner.issue."""
    now = clock()
    payload = {
        "sub": "user-1",
        "email": "user@example.com",
        "username": "user1",
        "jti": str(uuid4()),
        "clientId": "user-1",
        "roles": ["User"],
        "iss": JWT_ISSUER,
        "aud": JWT_AUDIENCE,
        "iat": now,
        "nbf": now,
        "exp": now + timedelta(minutes=15),
    }
    secret = overrides.pop("secret", JWT_SECRET)
    payload.update(overrides)
    payload = {key: value for key, value in payload.items() if value is not None}
    return jwt.encode(payload, secret, algorithm=JWT_ALGORITHM)


class TestConstruction:
    def test_missing_secret_fails_fast(self):
        with pytest.raises(ConfigurationError):
            TokenSigner(secret_key="", issuer=JWT_ISSUER, audience=JWT_AUDIENCE)

    def test_expires_in_seconds(self, signer):
        assert signer.expires_in_seconds == 15 * 60


class TestIssueAndVerify:
    def test_round_trip_recovers_claims(self, signer):
        user_id = uuid4()
        token = signer.issue(user_id, "alice@example.com", "alice", ["User", "Admin"])

        principal = signer.verify(token)

        assert principal.user_id == str(user_id)
        assert principal.email == "alice@example.com"
        assert principal.username == "alice"
        assert principal.roles == ["User", "Admin"]

    def test_client_id_duplicates_subject(self, signer):
        user_id = uuid4()
        principal = signer.verify(signer.issue(user_id, "a@x.com", "alice", []))
        assert principal.client_id == str(user_id)

    def test_client_id_claim_is_camel_case(self, signer):
        user_id = uuid4()
        token = signer.issue(user_id, "a@x.com", "alice", [])
        payload = jwt.decode(token, options={"verify_signature": False})

        assert payload["clientId"] == str(user_id)
        assert "client_id" not in payload

    def test_payload_carries_issuer_audience_and_lifetime(self, signer):
        token = signer.issue(uuid4(), "a@x.com", "alice", ["User"])
        payload = jwt.decode(token, options={"verify_signature": False})

        assert payload["iss"] == JWT_ISSUER
        assert payload["aud"] == JWT_AUDIENCE
        assert payload["exp"] - payload["iat"] == 15 * 60

    def test_each_token_gets_fresh_jti(self, signer):
        user_id = uuid4()
        first = signer.verify(signer.issue(user_id, "a@x.com", "alice", []))
        second = signer.verify(signer.issue(user_id, "a@x.com", "alice", []))
        assert first.token_id != second.token_id

    def test_no_roles_yields_empty_list(self, signer):
        principal = signer.verify(signer.issue(uuid4(), "a@x.com", "alice", []))
        assert principal.roles == []

    def test_single_string_role_claim_is_accepted(self, signer, clock):
        principal = signer.verify(_craft(clock, roles="Admin"))
        assert principal.roles == ["Admin"]


class TestLifetime:
    def test_valid_one_second_before_expiry(self, signer, clock):
        token = signer.issue(uuid4(), "a@x.com", "alice", [])
        clock.advance(minutes=15, seconds=-1)
        assert signer.verify(token).username == "alice"

    def test_rejected_exactly_at_expiry(self, signer, clock):
        token = signer.issue(uuid4(), "a@x.com", "alice", [])
        clock.advance(minutes=15)

        with pytest.raises(InvalidTokenError) as exc_info:
            signer.verify(token)

        assert exc_info.value.reason == "expired"

    def test_rejected_before_issued_at(self, signer, clock):
        token = signer.issue(uuid4(), "a@x.com", "alice", [])
        clock.advance(seconds=-1)

        with pytest.raises(InvalidTokenError) as exc_info:
            signer.verify(token)

        assert exc_info.value.reason == "not_yet_valid"


class TestRejection:
    def test_wrong_secret(self, signer, clock):
        with pytest.raises(InvalidTokenError) as exc_info:
            signer.verify(_craft(clock, secret="another-secret-key-of-adequate-length-42"))

        assert exc_info.value.reason == "invalid_signature"
        assert isinstance(exc_info.value.__cause__, jwt.InvalidSignatureError)

    def test_wrong_issuer(self, signer, clock):
        with pytest.raises(InvalidTokenError) as exc_info:
            signer.verify(_craft(clock, iss="someone-else"))
        assert exc_info.value.reason == "invalid_issuer"

    def test_wrong_audience(self, signer, clock):
        with pytest.raises(InvalidTokenError) as exc_info:
            signer.verify(_craft(clock, aud="other-clients"))
        assert exc_info.value.reason == "invalid_audience"

    def test_missing_required_claim(self, signer, clock):
        with pytest.raises(InvalidTokenError) as exc_info:
            signer.verify(_craft(clock, email=None))
        assert exc_info.value.reason == "malformed"

    def test_garbage_string(self, signer):
        with pytest.raises(InvalidTokenError) as exc_info:
            signer.verify("not.a.jwt")
        assert exc_info.value.reason == "malformed"

    def test_message_does_not_leak_detail(self, signer, clock):
        with pytest.raises(InvalidTokenError) as exc_info:
            signer.verify(_craft(clock, secret="another-secret-key-of-adequate-length-42"))
        assert str(exc_info.value) == "Invalid token"


class TestRefreshSecret:
    def test_is_64_random_bytes_base64(self, signer):
        secret = signer.generate_refresh_secret()
        assert len(base64.b64decode(secret)) == 64

    def test_uses_injected_random_source(self):
        signer = TokenSigner(
            secret_key=JWT_SECRET,
            issuer=JWT_ISSUER,
            audience=JWT_AUDIENCE,
            random_source=lambda n: b"\x01" * n,
        )
        assert signer.generate_refresh_secret() == base64.b64encode(b"\x01" * 64).decode("ascii")

    def test_successive_secrets_differ(self, signer):
        assert signer.generate_refresh_secret() != signer.generate_refresh_secret()
