"""
Configuration settings for the workspace RBAC engine.

This module defines the configuration schema using Pydantic settings,
supporting environment variables, .env files, and direct configuration.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

INVALIDATION_SCOPES = ("role", "workspace", "all")
MAX_CACHE_TTL_SECONDS = 86400
MAX_CACHE_ENTRIES = 1000000


class Settings(BaseSettings):
    """
    Configuration settings for the RBAC service.

    Environment Variable Mapping:
        All settings can be configured via environment variables by prefixing
        with 'RBAC_' (e.g., RBAC_CACHE_ENABLED, RBAC_CACHE_TTL_SECONDS).

    Example:
        Correctness-sensitive deployment (no caching):

        >>> settings = Settings()

        Cached deployment that clears a whole workspace on every role edit:

        >>> settings = Settings(
        ...     cache_enabled=True,
        ...     cache_ttl_seconds=60,
        ...     invalidation_scope="workspace",
        ... )
    """

    # Cache Configuration
    cache_enabled: bool = Field(
        default=False,
        description="Memoize effective permission sets per (workspace, role)",
    )
    cache_ttl_seconds: float = Field(
        default=300.0, description="Lifetime of a cached effective permission set"
    )
    cache_max_entries: int = Field(
        default=10000, description="Maximum cached (workspace, role) entries"
    )
    invalidation_scope: str = Field(
        default="role",
        description="Cache entries dropped by role mutations: 'role', 'workspace' or 'all'",
    )

    # Request integration
    workspace_header: str = "X-Workspace-ID"
    """Header the example application reads the workspace ID from."""

    role_header: str = "X-Role-ID"
    """Header the example application reads the role ID from."""

    # Development and debugging
    debug: bool = False
    """Enable debug logging."""

    model_config = SettingsConfigDict(
        env_file=".env", env_prefix="RBAC_", case_sensitive=False, extra="forbid"
    )

    def validate_configuration(self) -> None:
        """
        Validate the current configuration for common issues.

        Raises:
            ValueError: If configuration is invalid.
        """
        if self.invalidation_scope not in INVALIDATION_SCOPES:
            raise ValueError(
                f"Invalid invalidation_scope '{self.invalidation_scope}'. "
                f"Must be one of: {list(INVALIDATION_SCOPES)}"
            )

        if not 1 <= self.cache_max_entries <= MAX_CACHE_ENTRIES:
            raise ValueError(
                f"cache_max_entries must be between 1 and {MAX_CACHE_ENTRIES:,}"
            )

        if self.cache_enabled and not (
            0 < self.cache_ttl_seconds <= MAX_CACHE_TTL_SECONDS
        ):
            raise ValueError(
                f"cache_ttl_seconds must be between 0 and {MAX_CACHE_TTL_SECONDS:,} "
                "seconds when caching is enabled"
            )
