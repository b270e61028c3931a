"""
Configuration management using YAML files and dataclasses.

This module defines all configuration dataclasses and provides loading
from YAML files with defaults. Configuration sections:
- FeedConfig: Hacker News API settings and recency window
- RetryConfig: Backoff policy for feed requests
- StoreConfig: Subscriber database location
- DeliveryConfig: Push transport settings
- VapidConfig: Web Push sender credentials
- DispatchConfig: Run scheduling and concurrency
- ApiConfig: Registration HTTP server settings
- LoggingConfig: Logging behavior
- AppConfig: Root configuration container
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
import os
from typing import Any

import yaml


@dataclass
class FeedConfig:
    """Configuration for reading the Hacker News feed.

    Attributes:
        base_url: Root of the Hacker News Firebase API
        window_seconds: Items newer than this many seconds are considered recent
        scan_limit: Number of newest identifiers inspected per run
        timeout_seconds: Per-request HTTP timeout
        user_agent: HTTP User-Agent header string
        trust_env: Whether to respect system proxy settings
    """

    base_url: str = "https://hacker-news.firebaseio.com/v0"
    window_seconds: int = 3600
    scan_limit: int = 30
    timeout_seconds: float = 10.0
    user_agent: str = "hn-watcher/0.1"
    trust_env: bool = True


@dataclass
class RetryConfig:
    """Exponential backoff settings for feed requests.

    Attributes:
        max_retries: Additional attempts after the first failure
        initial_delay_ms: Delay before the first retry
        max_delay_ms: Upper bound for any single delay
        backoff_multiplier: Growth factor between consecutive delays
    """

    max_retries: int = 3
    initial_delay_ms: int = 1000
    max_delay_ms: int = 10000
    backoff_multiplier: float = 2


@dataclass
class StoreConfig:
    """Configuration for the subscriber store.

    Attributes:
        path: SQLite database file holding subscriber records
    """

    path: str = "data/subscribers.db"


@dataclass
class DeliveryConfig:
    """Configuration for push delivery.

    Attributes:
        transport: Registered transport name ("webpush" or "log")
        timeout_seconds: Timeout for one push request
        ttl_seconds: How long the push service should hold an undelivered message
        icon: Icon reference embedded in every notification
    """

    transport: str = "webpush"
    timeout_seconds: float = 10.0
    ttl_seconds: int = 3600
    icon: str = "https://news.ycombinator.com/y18.gif"


@dataclass
class VapidConfig:
    """Web Push sender credentials.

    Inline values win; otherwise the named environment variables are read.

    Attributes:
        public_key: VAPID application server public key
        private_key: VAPID private key used to sign push requests
        contact_email: Contact address placed in the VAPID "sub" claim
        public_key_env: Environment variable holding the public key
        private_key_env: Environment variable holding the private key
        contact_email_env: Environment variable holding the contact address
    """

    public_key: str | None = None
    private_key: str | None = None
    contact_email: str | None = None
    public_key_env: str = "VAPID_PUBLIC_KEY"
    private_key_env: str = "VAPID_PRIVATE_KEY"
    contact_email_env: str = "VAPID_CONTACT_EMAIL"

    def resolved_public_key(self) -> str:
        return self.public_key or os.getenv(self.public_key_env, "")

    def resolved_private_key(self) -> str:
        return self.private_key or os.getenv(self.private_key_env, "")

    def resolved_contact_email(self) -> str:
        return self.contact_email or os.getenv(self.contact_email_env, "admin@example.com")

    def is_valid(self) -> bool:
        """Return True when both keys look like real VAPID keys."""
        return len(self.resolved_public_key()) > 80 and len(self.resolved_private_key()) > 40


@dataclass
class DispatchConfig:
    """Configuration for dispatch runs.

    Attributes:
        concurrency: Maximum number of subscribers notified at the same time
        interval_seconds: Delay between scheduled runs in watch mode
        run_timeout_seconds: Optional deadline for one whole run
    """

    concurrency: int = 8
    interval_seconds: int = 3600
    run_timeout_seconds: float | None = None


@dataclass
class ApiConfig:
    """Configuration for the registration HTTP server.

    Attributes:
        host: Bind address
        port: Bind port
        allow_origins: Origins allowed by CORS
    """

    host: str = "127.0.0.1"
    port: int = 5000
    allow_origins: list[str] = field(default_factory=lambda: ["*"])


@dataclass
class LoggingConfig:
    """Configuration for logging behavior.

    Attributes:
        level: Logging level ("DEBUG", "INFO", "WARNING", "ERROR")
        console: Whether to log to console
        file: Whether to log to file
        format: Log file format ("jsonl" or "plain")
        filename: Name of the log file
        log_dir: Directory for the log file
    """

    level: str = "INFO"
    console: bool = True
    file: bool = False
    format: str = "jsonl"
    filename: str = "hn-watcher.jsonl"
    log_dir: str = "logs"


@dataclass
class AppConfig:
    """Root configuration container aggregating all config sections."""

    feed: FeedConfig = field(default_factory=FeedConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    delivery: DeliveryConfig = field(default_factory=DeliveryConfig)
    vapid: VapidConfig = field(default_factory=VapidConfig)
    dispatch: DispatchConfig = field(default_factory=DispatchConfig)
    api: ApiConfig = field(default_factory=ApiConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def load_config(path: str | None) -> AppConfig:
    """Load configuration from a YAML file with defaults."""
    if not path:
        return AppConfig()

    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    return _merge_config(AppConfig(), raw)


def _merge_config(base: AppConfig, raw: dict[str, Any]) -> AppConfig:
    """Merge raw YAML config into base AppConfig."""
    data = asdict(base)
    for key, value in raw.items():
        if key not in data:
            continue
        if isinstance(value, dict) and isinstance(data[key], dict):
            data[key].update(value)
        else:
            data[key] = value
    return _fromdict(data)


def _fromdict(data: dict[str, Any]) -> AppConfig:
    """Reconstruct AppConfig from nested dictionary."""
    return AppConfig(
        feed=FeedConfig(**data["feed"]),
        retry=RetryConfig(**data["retry"]),
        store=StoreConfig(**data["store"]),
        delivery=DeliveryConfig(**data["delivery"]),
        vapid=VapidConfig(**data["vapid"]),
        dispatch=DispatchConfig(**data["dispatch"]),
        api=ApiConfig(**data["api"]),
        logging=LoggingConfig(**data["logging"]),
    )
