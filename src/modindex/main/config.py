import logging
import os
import sys
from typing import Optional
from urllib.parse import urlparse

from pydantic import computed_field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def validate_forge_host_name(host_name: str) -> str:
    """
    Validate and normalize the forge host name.

    Rules:
    - Bare host name only (optionally with a port), e.g. github.mycompany.net
    - No scheme, path, query or fragment
    - Normalize: lowercase, strip trailing slash

    Raises:
        ValueError: Invalid host name format

    Examples:
        >>> validate_forge_host_name("GitHub.MyCompany.net/")
        "github.mycompany.net"

        >>> validate_forge_host_name("https://github.mycompany.net")
        ValueError: forge_host_name must not include a scheme
    """
    host_name = host_name.strip().rstrip("/")
    if not host_name:
        raise ValueError("forge_host_name cannot be an empty string")

    if "://" in host_name:
        raise ValueError(
            f"forge_host_name must not include a scheme (use github.mycompany.net), got: {host_name}"
        )

    parsed = urlparse(f"//{host_name}")
    if not parsed.hostname:
        raise ValueError(f"forge_host_name missing hostname: {host_name}")
    if parsed.path or parsed.query or parsed.fragment:
        raise ValueError(f"forge_host_name must not include path or query: {host_name}")

    return host_name.lower()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Forge
    forge_host_name: str
    forge_auth_token: str
    forge_raw_use_https: bool = True  # Scheme used to fetch go.mod files at a tag
    forge_repo_search_query: str = "language:golang"
    forge_request_timeout_seconds: float = 10.0  # Bound on every single forge call

    # Backoff for forge errors (rate limits, outages)
    forge_backoff_initial_seconds: float = 30.0
    forge_backoff_multiplier: float = 1.5
    forge_backoff_max_seconds: float = 5 * 60.0

    # Infrastructure dependencies
    postgres_user: str
    postgres_host: str
    postgres_password: str
    postgres_port: int
    postgres_db: str
    db_pool_size: int = 20
    db_max_overflow: int = 10

    # Feed server
    port: int = 8081
    feed_default_limit: int = 2000

    # Re-indexing the list of all repos (one global work item)
    all_repos_reindex_check_period_seconds: float = 5 * 60.0
    all_repos_reindex_period_seconds: float = 24 * 60 * 60.0
    all_repos_reindex_ttl_seconds: float = 5 * 60.0

    # Re-indexing tags, one work item per repo
    repo_tags_reindex_check_period_seconds: float = 5 * 60.0
    repo_tags_reindex_jitter_min_seconds: float = 1.0
    repo_tags_reindex_jitter_max_seconds: float = 60.0
    repo_tags_reindexing_workers: int = 10
    repo_tags_reindex_period_seconds: float = 24 * 60 * 60.0
    repo_tags_reindex_ttl_seconds: float = 10 * 60.0

    @model_validator(mode="after")
    def validate_forge_settings(self):
        """Normalize the forge host and reject unusable credentials."""
        try:
            self.forge_host_name = validate_forge_host_name(self.forge_host_name)
        except ValueError as e:
            logging.error(
                f"Invalid FORGE_HOST_NAME configuration: {e}\n"
                f"Example: FORGE_HOST_NAME=github.mycompany.net"
            )
            sys.exit(1)

        if not self.forge_auth_token.strip():
            logging.error("FORGE_AUTH_TOKEN is required and cannot be empty.")
            sys.exit(1)

        if self.forge_request_timeout_seconds <= 0:
            logging.error(
                "FORGE_REQUEST_TIMEOUT_SECONDS must be greater than zero. Current value: %s",
                self.forge_request_timeout_seconds,
            )
            sys.exit(1)

        return self

    @model_validator(mode="after")
    def validate_indexing_settings(self):
        """Ensure indexing-related configuration values are sane."""
        positive = {
            "ALL_REPOS_REINDEX_CHECK_PERIOD_SECONDS": self.all_repos_reindex_check_period_seconds,
            "ALL_REPOS_REINDEX_PERIOD_SECONDS": self.all_repos_reindex_period_seconds,
            "ALL_REPOS_REINDEX_TTL_SECONDS": self.all_repos_reindex_ttl_seconds,
            "REPO_TAGS_REINDEX_CHECK_PERIOD_SECONDS": self.repo_tags_reindex_check_period_seconds,
            "REPO_TAGS_REINDEX_PERIOD_SECONDS": self.repo_tags_reindex_period_seconds,
            "REPO_TAGS_REINDEX_TTL_SECONDS": self.repo_tags_reindex_ttl_seconds,
            "FORGE_BACKOFF_INITIAL_SECONDS": self.forge_backoff_initial_seconds,
            "FORGE_BACKOFF_MAX_SECONDS": self.forge_backoff_max_seconds,
        }
        for name, value in positive.items():
            if value <= 0:
                logging.error("%s must be greater than zero. Current value: %s", name, value)
                sys.exit(1)

        if self.repo_tags_reindexing_workers < 1:
            logging.error(
                "REPO_TAGS_REINDEXING_WORKERS must be at least 1. Current value: %s",
                self.repo_tags_reindexing_workers,
            )
            sys.exit(1)

        if not (
            0 <= self.repo_tags_reindex_jitter_min_seconds
            <= self.repo_tags_reindex_jitter_max_seconds
        ):
            logging.error(
                "REPO_TAGS_REINDEX_JITTER_MIN_SECONDS (%s) must be between zero and"
                " REPO_TAGS_REINDEX_JITTER_MAX_SECONDS (%s).",
                self.repo_tags_reindex_jitter_min_seconds,
                self.repo_tags_reindex_jitter_max_seconds,
            )
            sys.exit(1)

        if self.forge_backoff_multiplier <= 1:
            logging.error(
                "FORGE_BACKOFF_MULTIPLIER must be greater than 1. Current value: %s",
                self.forge_backoff_multiplier,
            )
            sys.exit(1)

        if self.forge_backoff_max_seconds < self.forge_backoff_initial_seconds:
            logging.warning(
                "FORGE_BACKOFF_MAX_SECONDS (%s) is lower than FORGE_BACKOFF_INITIAL_SECONDS (%s)."
                " Every backoff will be capped at the maximum.",
                self.forge_backoff_max_seconds,
                self.forge_backoff_initial_seconds,
            )

        if self.feed_default_limit < 1:
            logging.error(
                "FEED_DEFAULT_LIMIT must be at least 1. Current value: %s",
                self.feed_default_limit,
            )
            sys.exit(1)

        return self

    @computed_field
    @property
    def sync_database_url(self) -> str:
        return (
            f"postgresql://{self.postgres_user}:"
            f"{self.postgres_password}@{self.postgres_host}:"
            f"{self.postgres_port}/{self.postgres_db}"
        )

    @computed_field
    @property
    def database_url(self) -> str:
        return (
            f"postgresql+asyncpg://{self.postgres_user}:"
            f"{self.postgres_password}@{self.postgres_host}:"
            f"{self.postgres_port}/{self.postgres_db}"
        )


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get settings singleton, creating it if needed.

    Returns:
        Settings: The application settings instance.
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def set_settings(settings: Settings) -> None:
    """Override settings (primarily for testing).

    Args:
        settings: The Settings instance to use.
    """
    global _settings
    _settings = settings


def reset_settings() -> None:
    """Reset settings to None (for test cleanup)."""
    global _settings
    _settings = None


def get_loglevel():
    loglevel = os.getenv("LOGLEVEL", "INFO")

    match loglevel:
        case "INFO":
            return logging.INFO
        case "WARNING":
            return logging.WARNING
        case "ERROR":
            return logging.ERROR
        case "CRITICAL":
            return logging.CRITICAL
        case "DEBUG":
            return logging.DEBUG
        case _:
            return logging.INFO
