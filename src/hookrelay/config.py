"""Configuration management for hookrelay."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings

if TYPE_CHECKING:
    from hookrelay.models import DispatchOptions

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """hookrelay configuration loaded from environment variables.

    All settings can be overridden via environment variables with
    the HOOKRELAY_ prefix. For example:
        HOOKRELAY_SIGNATURE_ALGORITHM=sha512
        HOOKRELAY_INBOUND_SECRET=whsec_...
        HOOKRELAY_PROVIDER_SECRETS__GITHUB=ghsecret
    """

    # Environment
    env: Literal["development", "production", "test"] = Field(
        default="development",
        description="Environment: development, production, or test",
    )

    # Signing
    signature_algorithm: Literal["sha256", "sha1", "sha512"] = Field(
        default="sha256",
        description="HMAC hash algorithm for outbound signatures",
    )

    # Outbound defaults
    default_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Per-attempt HTTP timeout in seconds",
    )
    default_retry: int = Field(
        default=3,
        ge=0,
        le=20,
        description="Additional attempts after the first one",
    )
    retry_delay_ms: int = Field(
        default=1000,
        ge=1,
        description="Base backoff delay in milliseconds (doubles each retry)",
    )
    max_retry_delay_ms: int = Field(
        default=60000,
        ge=1,
        description="Upper bound for a single backoff delay, jitter included",
    )
    retry_jitter_ms: int = Field(
        default=1000,
        ge=0,
        description="Maximum random jitter added to each backoff delay",
    )
    max_concurrent_deliveries: int = Field(
        default=10,
        ge=1,
        le=500,
        description="Maximum endpoints dispatched concurrently for one event",
    )
    response_body_limit: int = Field(
        default=1000,
        ge=0,
        description="Characters of response body kept on delivery records",
    )

    # Inbound
    inbound_secret: str | None = Field(
        default=None,
        description="Shared secret for verifying inbound webhooks",
    )
    provider_secrets: dict[str, str] = Field(
        default_factory=dict,
        description="Per-provider inbound secrets, falling back to inbound_secret",
    )
    replay_tolerance_seconds: int = Field(
        default=300,
        ge=1,
        description="Maximum clock distance accepted for inbound timestamps",
    )

    # Queue
    queue_enabled: bool = Field(
        default=True,
        description="Allow queued (async) dispatch",
    )
    queue_name: str = Field(
        default="webhooks",
        description="Default queue name for async dispatch",
    )
    queue_workers: int = Field(
        default=1,
        ge=1,
        le=100,
        description="Worker tasks per queue for the in-process queue",
    )

    # Storage
    storage_backend: Literal["memory", "qdrant"] = Field(
        default="memory",
        description="Record store for endpoints, deliveries and failures",
    )
    qdrant_url: str = Field(
        default="http://localhost:6333",
        description="Qdrant connection URL",
    )
    qdrant_api_key: str | None = Field(
        default=None,
        description="Qdrant API key (for cloud)",
    )
    collection_prefix: str = Field(
        default="hookrelay",
        description="Prefix for Qdrant collection names",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    log_format: Literal["json", "text"] = Field(
        default="json",
        description="Log output format",
    )

    model_config = {
        "env_prefix": "HOOKRELAY_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_nested_delimiter": "__",
    }

    @model_validator(mode="after")
    def validate_backoff_bounds(self) -> Settings:
        """Ensure the backoff cap is not below the base delay."""
        if self.max_retry_delay_ms < self.retry_delay_ms:
            raise ValueError(
                f"max_retry_delay_ms ({self.max_retry_delay_ms}) must be >= "
                f"retry_delay_ms ({self.retry_delay_ms})"
            )
        return self

    @model_validator(mode="after")
    def warn_missing_inbound_secret(self) -> Settings:
        """Warn in production when inbound verification cannot work."""
        if self.env == "production" and not self.inbound_secret and not self.provider_secrets:
            logger.warning("No inbound webhook secret configured; inbound routes will fail")
        return self

    def secret_for(self, provider: str | None) -> str | None:
        """Resolve the inbound secret for a provider.

        Args:
            provider: Provider name from the route, or None.

        Returns:
            The provider's secret, the shared inbound secret, or None.
        """
        if provider is not None and provider in self.provider_secrets:
            return self.provider_secrets[provider]
        return self.inbound_secret

    def default_options(self) -> DispatchOptions:
        """Build dispatch options from the configured defaults."""
        from hookrelay.models import DispatchOptions

        return DispatchOptions(
            timeout=self.default_timeout,
            retry=self.default_retry,
            retry_delay=self.retry_delay_ms,
        )


# Global settings instance
settings = Settings()
