"""Environment-backed settings for the Opik tracing client.

Settings are loaded from environment variables with .env file support via
pydantic-settings. Only ``OpikClient.from_env()`` reads them; the client core
receives an explicit ``ClientConfig``.

Environment variables:
    OPIK_API_KEY: API key sent in the Authorization header
    OPIK_WORKSPACE: Workspace name sent in the Comet-Workspace header
    OPIK_URL_OVERRIDE: Backend base URL (defaults to the hosted Opik API)
    OPIK_PROJECT_NAME: Project that traces are logged to by default

Example:
    >>> from opik_tracing.settings import Settings
    >>> settings = Settings()
    >>> print(settings.url_override)
"""

from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_URL = "https://www.comet.com/opik/api"
DEFAULT_PROJECT_NAME = "Default Project"


class Settings(BaseSettings):
    """Opik connection settings read from the environment.

    Empty strings are used as defaults so that a missing credential can be
    reported as a ``ConfigurationError`` by the client rather than failing
    here with a pydantic error.
    """

    model_config = SettingsConfigDict(
        env_prefix="OPIK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    api_key: str = ""
    workspace: str = ""
    url_override: str = DEFAULT_URL
    project_name: str = DEFAULT_PROJECT_NAME
