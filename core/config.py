"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for the user service happen here. No module
should call os.getenv() or os.environ.get() directly -- import get_settings()
instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. secret_key -> SECRET_KEY). Type coercion and validation are built in.

  @model_validator(mode="after"): Cross-field validation after all fields are
      resolved. The signing key rules depend on both JWT_ALGORITHM and DEBUG.

Security notes:
  [M6] SECRET_KEY shorter than 32 chars is rejected outright for HS* signing.

  [M7] In production mode (DEBUG not set or false), a missing SECRET_KEY is a
       hard startup failure. Tokens signed with a random per-process key would
       be rejected by every other service after a restart.

  RS*/ES* deployments sign with JWT_PRIVATE_KEY and publish JWT_PUBLIC_KEY to
  the services that verify tokens. Both PEM strings are required.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import secrets
from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("userservice.config")

SYMMETRIC_ALGORITHMS = ("HS256", "HS384", "HS512")
ASYMMETRIC_ALGORITHMS = ("RS256", "RS384", "RS512", "ES256", "ES384", "ES512")


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file (DEBUG=true is still needed for the
    signing key to be generated).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    database_url: str = "sqlite:///userservice.db"
    # Create the ROLE_USER / ROLE_ADMIN rows at startup if they are missing.
    # Turn off when roles are provisioned by a migration tool instead.
    seed_roles: bool = True

    # ------------------------------------------------------------------
    # Token signing
    # ------------------------------------------------------------------

    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    secret_key: str = ""
    jwt_algorithm: str = "HS256"
    jwt_private_key: str = ""  # PEM, RS*/ES* only
    jwt_public_key: str = ""  # PEM, RS*/ES* only
    jwt_issuer: str = ""
    token_expire_seconds: int = Field(default=3600, gt=0)

    # ------------------------------------------------------------------
    # Password hashing
    # ------------------------------------------------------------------

    bcrypt_rounds: int = Field(default=12, ge=4, le=31)

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_signing_keys(self) -> "Settings":
        """Enforce the signing key policy [M6][M7].

        HS*: dev mode (DEBUG=true) auto-generates SECRET_KEY with a warning,
            production mode refuses to start without one. Keys shorter than
            32 characters are rejected in both modes.

        RS*/ES*: JWT_PRIVATE_KEY and JWT_PUBLIC_KEY must both be set. There is
            no dev fallback -- generating a key pair silently would hide a
            broken deployment.
        """
        self.jwt_algorithm = self.jwt_algorithm.upper()
        if self.jwt_algorithm in ASYMMETRIC_ALGORITHMS:
            if not self.jwt_private_key or not self.jwt_public_key:
                raise ValueError(
                    f"{self.jwt_algorithm} requires both JWT_PRIVATE_KEY and JWT_PUBLIC_KEY (PEM encoded)."
                )
            return self
        if self.jwt_algorithm not in SYMMETRIC_ALGORITHMS:
            raise ValueError(f"Unsupported JWT_ALGORITHM: {self.jwt_algorithm!r}")

        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning(
                    "WARNING: Using auto-generated SECRET_KEY. " "Issued tokens will not verify after a restart."
                )
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    Only startup code (the API lifespan and the CLI) should call this. Runtime
    components receive the values they need through their constructors.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
