"""Unit tests for auth/tokens.py -- JWT issuance and verification.

Covers:
- issued tokens decode to the same subject and roles
- claim shape on the wire (sub, roles, iat, exp; iss only when configured)
- tampering with subject or roles breaks the signature
- expired tokens, wrong keys and foreign algorithms are rejected
- RS256 deployments: sign with the private key, verify with the public key
- SigningConfig.from_settings() and its key-free repr
"""

from __future__ import annotations

import base64
import json
from datetime import datetime, timedelta, timezone

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from jose import jwt

from auth.tokens import SigningConfig, TokenService
from core.config import Settings


def _b64url(data: dict) -> str:
    raw = json.dumps(data, separators=(",", ":")).encode()
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode()


def _b64url_decode(segment: str) -> dict:
    padded = segment + "=" * (-len(segment) % 4)
    return json.loads(base64.urlsafe_b64decode(padded))


# ---------------------------------------------------------------------------
# Issue / decode
# ---------------------------------------------------------------------------


class TestIssue:
    def test_admin_token_decodes_to_subject_and_role(self, token_service: TokenService) -> None:
        token = token_service.issue("u", ["ROLE_ADMIN"])
        claims = token_service.decode(token)
        assert claims is not None
        assert claims.subject == "u"
        assert claims.roles == ["ROLE_ADMIN"]

    def test_wire_claims(self, token_service: TokenService) -> None:
        now = datetime(2030, 1, 1, tzinfo=timezone.utc)
        token = token_service.issue("alice", ["ROLE_USER"], now=now)
        payload = jwt.get_unverified_claims(token)
        assert payload == {
            "sub": "alice",
            "roles": ["ROLE_USER"],
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(hours=1)).timestamp()),
        }
        assert jwt.get_unverified_header(token)["alg"] == "HS256"

    def test_roles_sorted_and_deduplicated(self, token_service: TokenService) -> None:
        token = token_service.issue("bob", ["ROLE_USER", "ROLE_ADMIN", "ROLE_USER"])
        assert jwt.get_unverified_claims(token)["roles"] == ["ROLE_ADMIN", "ROLE_USER"]

    def test_issuer_claim_when_configured(self, signing_config_factory) -> None:
        service = TokenService(signing_config_factory(issuer="userservice"))
        token = service.issue("carol", ["ROLE_USER"])
        assert jwt.get_unverified_claims(token)["iss"] == "userservice"
        assert service.decode(token) is not None

    def test_empty_subject_rejected(self, token_service: TokenService) -> None:
        with pytest.raises(ValueError):
            token_service.issue("", ["ROLE_USER"])

    def test_claims_times(self, token_service: TokenService) -> None:
        claims = token_service.decode(token_service.issue("dave", []))
        assert claims is not None
        assert claims.roles == []
        assert claims.expires_at - claims.issued_at == timedelta(seconds=3600)


# ---------------------------------------------------------------------------
# Rejection
# ---------------------------------------------------------------------------


class TestDecodeRejects:
    def test_tampered_roles(self, token_service: TokenService) -> None:
        header, payload, signature = token_service.issue("eve", ["ROLE_USER"]).split(".")
        claims = _b64url_decode(payload)
        claims["roles"] = ["ROLE_ADMIN"]
        forged = ".".join([header, _b64url(claims), signature])
        assert token_service.decode(forged) is None

    def test_tampered_subject(self, token_service: TokenService) -> None:
        header, payload, signature = token_service.issue("eve", ["ROLE_USER"]).split(".")
        claims = _b64url_decode(payload)
        claims["sub"] = "alice"
        forged = ".".join([header, _b64url(claims), signature])
        assert token_service.decode(forged) is None

    def test_expired(self, token_service: TokenService) -> None:
        past = datetime.now(timezone.utc) - timedelta(hours=2)
        token = token_service.issue("frank", ["ROLE_USER"], now=past)
        assert token_service.decode(token) is None

    def test_wrong_key(self, token_service: TokenService, signing_config_factory) -> None:
        other = TokenService(signing_config_factory(signing_key="x" * 40, verification_key="x" * 40))
        assert token_service.decode(other.issue("grace", ["ROLE_USER"])) is None

    def test_unsigned_token(self, token_service: TokenService) -> None:
        header = _b64url({"alg": "none", "typ": "JWT"})
        payload = _b64url({"sub": "mallory", "roles": ["ROLE_ADMIN"], "iat": 1, "exp": 9999999999})
        assert token_service.decode(f"{header}.{payload}.") is None

    def test_other_hs_algorithm(self, token_service: TokenService, secret_key: str) -> None:
        token = jwt.encode(
            {"sub": "mallory", "roles": ["ROLE_ADMIN"], "iat": 1, "exp": 9999999999},
            secret_key,
            algorithm="HS512",
        )
        assert token_service.decode(token) is None

    def test_missing_roles_claim(self, token_service: TokenService, secret_key: str) -> None:
        token = jwt.encode({"sub": "heidi", "iat": 1, "exp": 9999999999}, secret_key, algorithm="HS256")
        assert token_service.decode(token) is None

    def test_issuer_mismatch(self, signing_config_factory) -> None:
        issuing = TokenService(signing_config_factory(issuer="somewhere-else"))
        verifying = TokenService(signing_config_factory(issuer="userservice"))
        assert verifying.decode(issuing.issue("ivan", ["ROLE_USER"])) is None

    def test_garbage(self, token_service: TokenService) -> None:
        assert token_service.decode("not.a.jwt") is None
        assert token_service.decode("") is None


# ---------------------------------------------------------------------------
# Asymmetric signing
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def rsa_pems() -> tuple[str, str]:
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()
    public_pem = (
        key.public_key()
        .public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        .decode()
    )
    return private_pem, public_pem


class TestAsymmetric:
    def test_rs256_round_trip(self, rsa_pems: tuple[str, str]) -> None:
        private_pem, public_pem = rsa_pems
        service = TokenService(
            SigningConfig(algorithm="RS256", signing_key=private_pem, verification_key=public_pem)
        )
        claims = service.decode(service.issue("judy", ["ROLE_ADMIN"]))
        assert claims is not None
        assert claims.subject == "judy"
        assert claims.roles == ["ROLE_ADMIN"]

    def test_public_key_alone_verifies(self, rsa_pems: tuple[str, str]) -> None:
        """A downstream service holding only the public key can verify."""
        private_pem, public_pem = rsa_pems
        issuer = TokenService(SigningConfig(algorithm="RS256", signing_key=private_pem, verification_key=public_pem))
        token = issuer.issue("ken", ["ROLE_USER"])
        payload = jwt.decode(token, public_pem, algorithms=["RS256"])
        assert payload["sub"] == "ken"

    def test_from_settings_asymmetric(self, rsa_pems: tuple[str, str]) -> None:
        private_pem, public_pem = rsa_pems
        settings = Settings(jwt_algorithm="RS256", jwt_private_key=private_pem, jwt_public_key=public_pem)
        config = SigningConfig.from_settings(settings)
        assert config.signing_key == private_pem
        assert config.verification_key == public_pem


# ---------------------------------------------------------------------------
# SigningConfig
# ---------------------------------------------------------------------------


class TestSigningConfig:
    def test_from_settings_symmetric(self, secret_key: str) -> None:
        settings = Settings(secret_key=secret_key, token_expire_seconds=600, jwt_issuer="userservice")
        config = SigningConfig.from_settings(settings)
        assert config.algorithm == "HS256"
        assert config.signing_key == config.verification_key == secret_key
        assert config.expire_seconds == 600
        assert config.issuer == "userservice"

    def test_repr_hides_keys(self, secret_key: str, signing_config_factory) -> None:
        assert secret_key not in repr(signing_config_factory())

    def test_is_immutable(self, signing_config_factory) -> None:
        config = signing_config_factory()
        with pytest.raises(AttributeError):
            config.signing_key = "other"  # type: ignore[misc]
