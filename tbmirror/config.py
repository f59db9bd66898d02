import logging
from functools import lru_cache
from pathlib import Path
from urllib.parse import urlparse

from pydantic_settings import BaseSettings

from tbmirror.domain.exceptions import ConfigurationError

_config_logger = logging.getLogger(__name__)

_PROJECT_DIR = Path(__file__).resolve().parents[1]
_ENV_FILES = (
    _PROJECT_DIR / ".env",
    ".env",
)


class Settings(BaseSettings):
    """Tool settings loaded from ``TBMIRROR_*`` environment variables."""

    # Platform connection
    base_url: str = ""
    token: str = ""

    # Listing / lookup
    list_page_size: int = 1000
    resolve_page_size: int = 1

    # Fan-out
    max_concurrency: int = 8
    request_timeout: float = 30.0
    item_timeout: float = 120.0

    # Restore policy
    duplicate_error_code: int = 31
    default_device_type: str = "default"

    # Output locations
    backup_dir: str = "./backups"
    convert_dir: str = "./converts"

    # Logging: per-category levels (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    log_level: str = "INFO"              # Root / app-wide
    log_level_http: str = "WARNING"      # httpx / httpcore, outbound HTTP
    log_level_walk: str = "INFO"         # Exporter / importer walk logger
    log_color: bool = True

    model_config = {
        "env_prefix": "TBMIRROR_",
        "env_file": _ENV_FILES,
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def api_url(self) -> str:
        """Platform REST root (``<base_url>/api``), keeping any path prefix.

        Raises:
            ConfigurationError: If ``base_url`` is unset or not an http(s) URL.
        """
        parsed = urlparse(self.base_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ConfigurationError(
                "Platform URL is not set. Set it with TBMIRROR_BASE_URL=<url>"
            )
        return f"{parsed.scheme}://{parsed.netloc}{parsed.path.rstrip('/')}/api"

    @property
    def host(self) -> str:
        """Host name used to namespace backups per installation."""
        return urlparse(self.base_url).netloc or "unknown-host"

    def require_token(self) -> str:
        if not self.token:
            raise ConfigurationError(
                "You are not logged in. Set TBMIRROR_TOKEN to a valid platform JWT"
            )
        return self.token


@lru_cache
def get_settings() -> Settings:
    """Cached settings instance — reads .env once."""
    settings = Settings()
    _config_logger.debug("Settings loaded for %s", settings.host)
    return settings
