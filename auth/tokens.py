"""
auth/tokens.py -- JWT issuance and verification.

Claim contract (consumed by other services -- keep stable):

    {
        "sub":   "<username>",
        "roles": ["ROLE_ADMIN", "ROLE_USER"],   # sorted, de-duplicated
        "iat":   <unix seconds>,
        "exp":   <unix seconds>,
        "iss":   "<issuer>"                      # only when JWT_ISSUER is set
    }

Signing: python-jose. HS256/384/512 sign and verify with SECRET_KEY. RS*/ES*
sign with the PEM private key; verifiers only need the PEM public key. The
algorithm is pinned on decode -- a token declaring any other "alg" header is
rejected, which closes the alg=none / key-confusion family of attacks.

The signing material lives in a SigningConfig built once at startup and passed
to TokenService. Nothing in this module reads configuration on its own.

Layer rule: no imports from api/. core/ is only touched by
SigningConfig.from_settings().
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Iterable

from jose import JWTError, jwt

if TYPE_CHECKING:
    from core.config import Settings

logger = logging.getLogger("userservice.auth.tokens")


@dataclass(frozen=True)
class SigningConfig:
    """Immutable signing material. For HS* both keys are the shared secret."""

    algorithm: str
    signing_key: str
    verification_key: str
    expire_seconds: int = 3600
    issuer: str = ""

    @classmethod
    def from_settings(cls, settings: Settings) -> SigningConfig:
        if settings.jwt_algorithm.startswith("HS"):
            signing_key = verification_key = settings.secret_key
        else:
            signing_key = settings.jwt_private_key
            verification_key = settings.jwt_public_key
        return cls(
            algorithm=settings.jwt_algorithm,
            signing_key=signing_key,
            verification_key=verification_key,
            expire_seconds=settings.token_expire_seconds,
            issuer=settings.jwt_issuer,
        )

    def __repr__(self) -> str:
        # Keys stay out of logs and tracebacks.
        return (
            f"SigningConfig(algorithm={self.algorithm!r}, "
            f"expire_seconds={self.expire_seconds}, issuer={self.issuer!r})"
        )


@dataclass(frozen=True)
class TokenClaims:
    """Decoded, verified claims."""

    subject: str
    roles: list[str]
    issued_at: datetime
    expires_at: datetime


class TokenService:
    """Issues signed access tokens and verifies them.

    Usage:
        tokens = TokenService(SigningConfig.from_settings(get_settings()))
        token = tokens.issue("alice", ["ROLE_USER"])
        claims = tokens.decode(token)   # TokenClaims or None
    """

    def __init__(self, config: SigningConfig) -> None:
        self.config = config

    def issue(self, subject: str, roles: Iterable[str], now: datetime | None = None) -> str:
        """Encode a signed JWT carrying the subject and its role names.

        Args:
            subject: Username the token asserts. Must be non-empty.
            roles:   Role wire names held at issuance time. Order is ignored.
            now:     Issue time override, for tests. Defaults to the current UTC time.
        """
        if not subject:
            raise ValueError("Token subject must be a non-empty username.")
        issued = now or datetime.now(timezone.utc)
        payload = {
            "sub": subject,
            "roles": sorted(set(roles)),
            "iat": int(issued.timestamp()),
            "exp": int((issued + timedelta(seconds=self.config.expire_seconds)).timestamp()),
        }
        if self.config.issuer:
            payload["iss"] = self.config.issuer
        return jwt.encode(payload, self.config.signing_key, algorithm=self.config.algorithm)

    def decode(self, token: str) -> TokenClaims | None:
        """Verify a JWT and return its claims, or None on any failure.

        Returning None (rather than raising) keeps the caller simple: any
        invalid token is treated as unauthenticated. Route dependencies turn
        None into 401.
        """
        options = {"verify_iss": bool(self.config.issuer)}
        try:
            payload = jwt.decode(
                token,
                self.config.verification_key,
                algorithms=[self.config.algorithm],
                issuer=self.config.issuer or None,
                options=options,
            )
        except JWTError as exc:
            logger.debug("Rejected token: %s", exc)
            return None

        subject = payload.get("sub")
        roles = payload.get("roles")
        if not subject or not isinstance(roles, list) or "iat" not in payload or "exp" not in payload:
            return None
        return TokenClaims(
            subject=subject,
            roles=[str(r) for r in roles],
            issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        )
