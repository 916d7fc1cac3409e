"""Configuration management for the CyberPress dashboard core.

All settings are loaded from environment variables with sensible defaults.
Every upstream key is optional: without keys the clients run against the
public endpoints and fall back to placeholder content when rate limited.

Environment Variables:
    Upstream APIs:
        COINGECKO_API_KEY: Demo key for the CoinGecko markets endpoint
        GITHUB_TOKEN: Token for the GitHub repository API
        PERPLEXITY_API_KEY: Enables the search-backed news boundary

    Storage:
        STORAGE_PATH: SQLite file holding preferences, saved items and cache
        CONTENT_CACHE_HOURS: Expiry for cached section content

    HTTP:
        REQUEST_TIMEOUT: Per-request timeout in seconds
        SECTION_TIMEOUT: Deadline for one section refresh in seconds
        HTTP_CACHE_TTL: In-memory response cache TTL in seconds
        MAX_WORKERS: Maximum concurrent connections

    Content:
        CRYPTO_LIMIT: Number of assets fetched per price refresh
        TOOLS_LIMIT: Maximum tools listed per category

    Schedules:
        DAILY_REFRESH_HOUR / DAILY_REFRESH_MINUTE: Daily content refresh time
        WEEKLY_REFRESH_WEEKDAY: Day for the weekly tools refresh (0 = Sunday)
        CRYPTO_REFRESH_MINUTES: Interval between price refreshes
        CACHE_CLEANUP_MINUTES: Interval between expired-cache sweeps

    Notifications:
        PRICE_ALERT_THRESHOLD: Absolute 24h % change that raises a price alert
        NOTIFICATION_WEBHOOK_URL: HTTP endpoint for alerts
        ALERTS_FILE: Path for JSONL alert file

    Optional Features:
        ENABLE_LOGFIRE: Enable Logfire/OpenTelemetry tracing

    Logging:
        LOG_LEVEL: Logging verbosity (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        LOG_BACKUP_COUNT: Number of rotated log files to keep
        LOG_MAX_BYTES: Max log file size in bytes (0 = time-based rotation)
        LOG_FORMAT: Log format ('text' or 'json' for structured logging)
"""

import os
from dataclasses import dataclass, field
from pathlib import Path


def _env(key: str, default: str = "") -> str:
    """Get string environment variable with optional default."""
    return os.environ.get(key, default)


def _env_int(key: str, default: int) -> int:
    """Get integer environment variable with default.

    Args:
        key: Environment variable name
        default: Value to return if not set

    Returns:
        Parsed integer or default value

    Raises:
        ValueError: If value is set but cannot be parsed as integer
    """
    val = os.environ.get(key)
    if not val:
        return default
    try:
        return int(val)
    except ValueError:
        raise ValueError(f"Invalid integer value for {key}: '{val}'")


def _env_float(key: str, default: float) -> float:
    """Get float environment variable with default.

    Raises:
        ValueError: If value is set but cannot be parsed as float
    """
    val = os.environ.get(key)
    if not val:
        return default
    try:
        return float(val)
    except ValueError:
        raise ValueError(f"Invalid float value for {key}: '{val}'")


def _env_bool(key: str, default: bool = False) -> bool:
    """Get boolean environment variable with default.

    Recognizes truthy values: '1', 'true', 'yes', 'on'
    Recognizes falsy values: '0', 'false', 'no', 'off'
    """
    val = os.environ.get(key, "").lower()
    if val in ("1", "true", "yes", "on"):
        return True
    if val in ("0", "false", "no", "off"):
        return False
    return default


@dataclass
class Config:
    """Application configuration loaded from environment variables.

    Use Config.load() to create an instance with values from the environment.

    Example:
        >>> config = Config.load()
        >>> if error := config.validate():
        ...     print(f"Config error: {error}")
    """

    # === Upstream APIs (all optional) ===
    coingecko_api_key: str = ""  # COINGECKO_API_KEY
    github_token: str = ""  # GITHUB_TOKEN
    perplexity_api_key: str = ""  # PERPLEXITY_API_KEY - search-backed news

    # === Storage ===
    storage_path: Path = field(default_factory=lambda: Path("cyberpress.db"))  # STORAGE_PATH
    content_cache_hours: float = 1.0  # CONTENT_CACHE_HOURS

    # === HTTP ===
    request_timeout: int = 30  # REQUEST_TIMEOUT - seconds per request
    section_timeout: int = 60  # SECTION_TIMEOUT - deadline per section refresh
    http_cache_ttl: int = 300  # HTTP_CACHE_TTL - response cache TTL
    max_workers: int = 8  # MAX_WORKERS - connection pool size

    # === Content sizes ===
    crypto_limit: int = 10  # CRYPTO_LIMIT
    tools_limit: int = 10  # TOOLS_LIMIT, per category

    # === Schedules ===
    daily_refresh_hour: int = 8  # DAILY_REFRESH_HOUR
    daily_refresh_minute: int = 0  # DAILY_REFRESH_MINUTE
    weekly_refresh_weekday: int = 0  # WEEKLY_REFRESH_WEEKDAY - 0 = Sunday
    crypto_refresh_minutes: int = 60  # CRYPTO_REFRESH_MINUTES
    cache_cleanup_minutes: int = 60  # CACHE_CLEANUP_MINUTES

    # === Notifications ===
    price_alert_threshold: float = 5.0  # PRICE_ALERT_THRESHOLD - abs % change
    webhook_url: str = ""  # NOTIFICATION_WEBHOOK_URL
    alerts_file: str = ""  # ALERTS_FILE

    # === Logging ===
    log_dir: Path = field(default_factory=lambda: Path("log"))  # LOG_DIR
    log_level: str = "INFO"  # LOG_LEVEL
    log_backup_count: int = 30  # LOG_BACKUP_COUNT
    log_max_bytes: int = 0  # LOG_MAX_BYTES - 0 = time-based rotation
    log_format: str = "text"  # LOG_FORMAT - 'text' or 'json'

    # === Optional: Observability ===
    # Requires: pip install logfire
    enable_logfire: bool = False  # ENABLE_LOGFIRE
    logfire_token: str = ""  # LOGFIRE_TOKEN

    @classmethod
    def load(cls) -> "Config":
        """Load configuration from environment variables."""
        return cls(
            coingecko_api_key=_env("COINGECKO_API_KEY"),
            github_token=_env("GITHUB_TOKEN"),
            perplexity_api_key=_env("PERPLEXITY_API_KEY"),
            storage_path=Path(_env("STORAGE_PATH", "cyberpress.db")),
            content_cache_hours=_env_float("CONTENT_CACHE_HOURS", 1.0),
            request_timeout=_env_int("REQUEST_TIMEOUT", 30),
            section_timeout=_env_int("SECTION_TIMEOUT", 60),
            http_cache_ttl=_env_int("HTTP_CACHE_TTL", 300),
            max_workers=_env_int("MAX_WORKERS", 8),
            crypto_limit=_env_int("CRYPTO_LIMIT", 10),
            tools_limit=_env_int("TOOLS_LIMIT", 10),
            daily_refresh_hour=_env_int("DAILY_REFRESH_HOUR", 8),
            daily_refresh_minute=_env_int("DAILY_REFRESH_MINUTE", 0),
            weekly_refresh_weekday=_env_int("WEEKLY_REFRESH_WEEKDAY", 0),
            crypto_refresh_minutes=_env_int("CRYPTO_REFRESH_MINUTES", 60),
            cache_cleanup_minutes=_env_int("CACHE_CLEANUP_MINUTES", 60),
            price_alert_threshold=_env_float("PRICE_ALERT_THRESHOLD", 5.0),
            webhook_url=_env("NOTIFICATION_WEBHOOK_URL"),
            alerts_file=_env("ALERTS_FILE"),
            log_dir=Path(_env("LOG_DIR", "log")),
            log_level=_env("LOG_LEVEL", "INFO").upper(),
            log_backup_count=_env_int("LOG_BACKUP_COUNT", 30),
            log_max_bytes=_env_int("LOG_MAX_BYTES", 0),
            log_format=_env("LOG_FORMAT", "text").lower(),
            enable_logfire=_env_bool("ENABLE_LOGFIRE", False),
            logfire_token=_env("LOGFIRE_TOKEN"),
        )

    def validate(self) -> str | None:
        """Validate configuration values.

        Returns:
            Error message string if invalid, None if valid.
        """
        if self.request_timeout <= 0:
            return "REQUEST_TIMEOUT must be positive"
        if self.section_timeout <= 0:
            return "SECTION_TIMEOUT must be positive"
        if self.http_cache_ttl < 0:
            return "HTTP_CACHE_TTL must be non-negative"
        if self.content_cache_hours < 0:
            return "CONTENT_CACHE_HOURS must be non-negative"
        if self.max_workers <= 0:
            return "MAX_WORKERS must be positive"
        if self.crypto_limit <= 0 or self.tools_limit <= 0:
            return "CRYPTO_LIMIT and TOOLS_LIMIT must be positive"
        if not 0 <= self.daily_refresh_hour <= 23:
            return f"Invalid DAILY_REFRESH_HOUR {self.daily_refresh_hour} - must be 0-23"
        if not 0 <= self.daily_refresh_minute <= 59:
            return f"Invalid DAILY_REFRESH_MINUTE {self.daily_refresh_minute} - must be 0-59"
        if not 0 <= self.weekly_refresh_weekday <= 6:
            return f"Invalid WEEKLY_REFRESH_WEEKDAY {self.weekly_refresh_weekday} - must be 0-6 (0 = Sunday)"
        if self.crypto_refresh_minutes <= 0 or self.cache_cleanup_minutes <= 0:
            return "CRYPTO_REFRESH_MINUTES and CACHE_CLEANUP_MINUTES must be positive"
        if self.price_alert_threshold < 0:
            return "PRICE_ALERT_THRESHOLD must be non-negative"
        if self.log_level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            return f"Invalid LOG_LEVEL '{self.log_level}' - must be DEBUG, INFO, WARNING, ERROR, or CRITICAL"
        if self.log_format not in ("text", "json"):
            return f"Invalid LOG_FORMAT '{self.log_format}' - must be 'text' or 'json'"
        if self.log_backup_count < 0:
            return "LOG_BACKUP_COUNT must be non-negative"
        if self.log_max_bytes < 0:
            return "LOG_MAX_BYTES must be non-negative"
        return None
