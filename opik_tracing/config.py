"""Client configuration."""

from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from opik_tracing.exceptions import ConfigurationError
from opik_tracing.settings import DEFAULT_PROJECT_NAME, DEFAULT_URL, Settings

ANONYMOUS_WORKSPACE = "default"


class ClientConfig(BaseModel):
    """Immutable configuration for ``OpikClient``.

    ``anonymous=True`` is the explicit opt-in for self-hosted deployments that
    run without authentication: the API key may be empty, the workspace
    defaults to ``default`` and no Authorization header is sent.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    url: str = DEFAULT_URL
    api_key: str = ""
    workspace: str = ""
    project_name: str = DEFAULT_PROJECT_NAME
    anonymous: bool = False

    # Transport
    timeout_seconds: float = 10.0

    # Delivery
    batch_size: int = 100
    flush_interval_seconds: float = 1.0
    max_queue_size: int = 10_000
    max_retries: int = 3
    retry_base_delay_seconds: float = 0.5

    @classmethod
    def from_settings(cls, settings: Settings | None = None, **overrides: Any) -> "ClientConfig":
        """Build a config from environment settings, applying explicit overrides on top.

        Raises:
            ConfigurationError: If an override names an unknown field or has the wrong type.
        """
        if settings is None:
            settings = Settings()
        values: dict[str, Any] = {
            "url": settings.url_override,
            "api_key": settings.api_key,
            "workspace": settings.workspace,
            "project_name": settings.project_name,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        try:
            return cls(**values)
        except PydanticValidationError as e:
            raise ConfigurationError(f"Invalid client configuration: {e}") from e

    @property
    def effective_workspace(self) -> str:
        """Workspace sent to the backend."""
        return self.workspace or (ANONYMOUS_WORKSPACE if self.anonymous else "")

    def validate_for_client(self) -> None:
        """Raise ConfigurationError if the config cannot back a client."""
        if not self.url:
            raise ConfigurationError("Backend URL is empty")
        if not self.url.startswith(("http://", "https://")):
            raise ConfigurationError(f"Backend URL must be http(s): {self.url!r}")
        if not self.project_name:
            raise ConfigurationError("Project name is empty")
        if not self.anonymous:
            if not self.api_key:
                raise ConfigurationError("OPIK_API_KEY is not set; pass api_key or set anonymous=True for a local backend")
            if not self.workspace:
                raise ConfigurationError("OPIK_WORKSPACE is not set; pass workspace or set anonymous=True for a local backend")
        if self.timeout_seconds <= 0:
            raise ConfigurationError(f"timeout_seconds must be positive, got {self.timeout_seconds}")
        if self.batch_size <= 0:
            raise ConfigurationError(f"batch_size must be positive, got {self.batch_size}")
        if self.flush_interval_seconds <= 0:
            raise ConfigurationError(f"flush_interval_seconds must be positive, got {self.flush_interval_seconds}")
        if self.max_queue_size <= 0:
            raise ConfigurationError(f"max_queue_size must be positive, got {self.max_queue_size}")
        if self.max_retries < 0:
            raise ConfigurationError(f"max_retries must not be negative, got {self.max_retries}")
