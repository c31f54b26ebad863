"""Runtime settings — env-driven.

Centralized settings using pydantic-settings.  Reads from a .env file and
SITEDEPLOY_* environment variables.  Per-environment deploy targets live
in ``sitedeploy.toml`` (see ``sitedeploy.core.environments``), not here.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from sitedeploy.core.retry import RetryPolicy
from sitedeploy.models.environment import DeployCredentials


class DeploySettings(BaseSettings):
    """Process-wide settings with environment variable overrides.

    Examples
    --------
    Override via environment::

        export SITEDEPLOY_LOG_LEVEL=DEBUG
        export SITEDEPLOY_MAX_WORKERS=16
        export SITEDEPLOY_VERIFY_PRECONDITIONS=true

    CI runs that federate into a cloud role export the temporary
    credentials they obtained::

        SITEDEPLOY_AWS_ACCESS_KEY_ID=...
        SITEDEPLOY_AWS_SECRET_ACCESS_KEY=...
        SITEDEPLOY_AWS_SESSION_TOKEN=...
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="SITEDEPLOY_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Runtime environment
    environment: str = "development"
    log_level: str = "INFO"
    debug: bool = False

    # Files
    environments_file: Path = Path("sitedeploy.toml")
    ledger_path: Path = Path(".sitedeploy/ledger.db")
    lock_path: Path = Path(".sitedeploy/locks.db")

    # Apply
    max_workers: int = 8
    max_attempts: int = 3
    backoff_base_seconds: float = 0.5
    backoff_factor: float = 2.0
    verify_preconditions: bool = False

    # Invalidation
    invalidation_poll_seconds: float = 5.0
    invalidation_timeout_seconds: float = 600.0

    # Environment lease
    lock_ttl_seconds: float = 1800.0
    lock_wait_seconds: float = 0.0

    # Scoped cloud credentials (empty -> SDK default chain)
    aws_access_key_id: str = ""
    aws_secret_access_key: SecretStr = SecretStr("")
    aws_session_token: SecretStr = SecretStr("")
    aws_region: str = ""

    @property
    def is_production(self) -> bool:
        """Whether running in production mode."""
        return self.environment == "production"

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=max(self.max_attempts, 1),
            base_delay=self.backoff_base_seconds,
            factor=self.backoff_factor,
        )

    def credentials(self) -> DeployCredentials:
        return DeployCredentials(
            access_key_id=self.aws_access_key_id,
            secret_access_key=self.aws_secret_access_key,
            session_token=self.aws_session_token,
            region=self.aws_region,
        )


# Module-level singleton: import as `from sitedeploy.config import settings`
settings = DeploySettings()
