"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for the service happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. secret_key -> SECRET_KEY). Type coercion and validation are built in.

  Explicit injection: the Settings object is read once in the API lifespan and
      its values are handed to TokenIssuer, PasswordHasher, ChallengeEngine and
      MailDispatcher as constructor arguments. Those classes never call
      get_settings() themselves, so tests can build them with any values.

Security notes:
  [S1] SECRET_KEY shorter than 32 chars is rejected outright. JWT signing relies
       on key entropy -- a short key weakens every issued token.

  [S2] A missing SECRET_KEY is NOT replaced by a generated or default key.
       The service starts (so health checks and registration still answer) but
       TokenIssuer refuses to sign or verify anything until a key is set.

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
lessons/, or notify/.
"""

import logging
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("otpauth.config")


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.
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
    # Empty string is the sentinel for "not configured" [S2].
    secret_key: str = ""
    database_url: str = "sqlite:///otpauth.db"

    # ------------------------------------------------------------------
    # Credentials and challenges
    # ------------------------------------------------------------------

    token_expire_seconds: int = 3600
    otp_length: int = 6
    otp_ttl_seconds: int = 600
    bcrypt_rounds: int = 12

    # ------------------------------------------------------------------
    # Mail transport (empty host/user/password = log instead of send)
    # ------------------------------------------------------------------

    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_from: str = ""
    smtp_use_tls: bool = True
    smtp_timeout: float = 10.0

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]
    allowed_hosts: list[str] = ["*"]

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    auth_rate_limit: str = "10/minute"
    api_rate_limit: str = "60/minute"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce the SECRET_KEY policy [S1][S2].

        A missing key only produces a warning here; token operations fail
        later with MissingSigningSecret. A key that is present but shorter
        than 32 characters is a hard configuration error.
        """
        if not self.secret_key:
            logger.warning("SECRET_KEY is not set. Token issuance and verification are disabled.")
        elif len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        if not 4 <= self.otp_length <= 10:
            raise ValueError("OTP_LENGTH must be between 4 and 10.")
        return self

    @property
    def smtp_configured(self) -> bool:
        return bool(self.smtp_host and self.smtp_user and self.smtp_password)


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
