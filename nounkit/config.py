"""
Configuration for nounkit.

Uses pydantic-settings for environment variable loading. Every value
can be overridden by explicit options passed to ``init()`` or
``create_tenant()``; the environment only supplies defaults.

Environment variables:
    NOUNKIT_ENDPOINT: Remote backend endpoint
    NOUNKIT_API_KEY: Bearer credential for the remote backend
    NOUNKIT_TENANT: Default tenant identifier
    NOUNKIT_DATA_DIR: Directory for the local (SQLite) backend
    NOUNKIT_CONTEXT_BASE: Base of tenant context URLs
    NOUNKIT_REMOTE_BASE: Base URL of the tenant-scoped remote backend
    NOUNKIT_TIMEOUT: Remote request timeout in seconds
    NOUNKIT_LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR)
    NOUNKIT_LOG_FORMAT: Logging format (json, text)
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings

DEFAULT_CONTEXT_BASE = "https://headless.ly"
DEFAULT_REMOTE_BASE = "https://db.headless.ly"


class Settings(BaseSettings):
    """nounkit configuration loaded from environment."""

    # Remote backend
    endpoint: Optional[str] = Field(default=None, description="Remote backend endpoint")
    api_key: Optional[str] = Field(default=None, description="Remote backend bearer credential")
    timeout: float = Field(default=30.0, description="Remote request timeout seconds")

    # Tenancy
    tenant: Optional[str] = Field(default=None, description="Default tenant identifier")
    context_base: str = Field(default=DEFAULT_CONTEXT_BASE, description="Tenant context URL base")
    remote_base: str = Field(default=DEFAULT_REMOTE_BASE, description="Tenant remote endpoint base")

    # Local backend
    data_dir: str = Field(default=".nounkit", description="Local backend data directory")
    journal: bool = Field(default=True, description="Write NDJSON event journal in local mode")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="text", description="Logging format (json, text)")

    model_config = {"env_prefix": "NOUNKIT_"}

    @property
    def default_context(self) -> str:
        """Context URL used when no tenant is configured."""
        if self.tenant:
            return f"{self.context_base}/~{self.tenant}"
        return self.context_base
