"""
Configuration settings for the backfill system.
Centralizes all configurable parameters for the clients, pipeline and store.
"""
import os
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from common.errors import BackfillConfigError
from common.models.partitions import DEFAULT_MARKET_TIMEZONE

# Load environment variables
load_dotenv()

# Polygon starts throttling after 100 req/s
DEFAULT_RATE_LIMIT = 100


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise BackfillConfigError(f"Invalid {name} value: expected integer, got '{raw}'") from e


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class HTTPConfig:
    """HTTP connection pool configuration"""
    max_connections: int = 100
    connect_retries: int = 2
    timeout: int = 30


@dataclass
class PolygonConfig:
    """Polygon.io API configuration"""
    api_key: Optional[str] = None
    key_file: Optional[str] = None
    base_url: str = "https://api.polygon.io"
    rate_limit: int = DEFAULT_RATE_LIMIT
    burst: int = 1

    def __post_init__(self):
        if self.key_file is None:
            self.key_file = os.getenv('POLYGON_KEY_FILE')
        if self.api_key is None:
            self.api_key = os.getenv('POLYGON_API_KEY')
        if not self.api_key and self.key_file:
            key_path = Path(self.key_file).expanduser()
            if key_path.is_file():
                self.api_key = key_path.read_text().strip()


@dataclass
class SystemConfig:
    """Pipeline execution configuration"""
    max_workers: int = DEFAULT_RATE_LIMIT
    reverse_order: bool = True
    refresh_open_partition: bool = True
    start_date: date = field(default_factory=lambda: date(2004, 1, 1))
    market_timezone: str = DEFAULT_MARKET_TIMEZONE
    calendar: str = "XNYS"


@dataclass
class RetryConfig:
    """Per-unit retry budget"""
    default_max_attempts: int = 10
    trades_max_attempts: int = 50
    base_delay: float = 1.0
    max_delay: Optional[float] = None


@dataclass
class PaginationConfig:
    """Timestamp-cursor pagination settings"""
    page_limit: int = 50000
    trades_margin_ns: int = 1_000_000
    minute_margin_ms: int = 0


@dataclass
class DatabaseConfig:
    """Database configuration (TimescaleDB)"""
    host: Optional[str] = None
    port: Optional[int] = None
    database: Optional[str] = None
    user: Optional[str] = None
    password: Optional[str] = None

    def __post_init__(self):
        self.host = self.host or os.getenv('DB_HOST', 'localhost')
        self.port = self.port or _env_int('DB_PORT', 5432)
        self.database = self.database or os.getenv('DB_NAME', 'market')
        self.user = self.user or os.getenv('DB_USER', 'postgres')
        self.password = self.password or os.getenv('DB_PASSWORD')


@dataclass
class BackfillConfig:
    """Complete backfill system configuration"""
    http: HTTPConfig
    polygon: PolygonConfig
    system: SystemConfig
    retry: RetryConfig
    pagination: PaginationConfig
    database: DatabaseConfig

    @classmethod
    def default(cls):
        """Create default configuration"""
        return cls(
            http=HTTPConfig(),
            polygon=PolygonConfig(),
            system=SystemConfig(),
            retry=RetryConfig(),
            pagination=PaginationConfig(),
            database=DatabaseConfig()
        )

    @classmethod
    def from_env(cls):
        """Create configuration with environment overrides applied"""
        config = cls.default()
        config.polygon.rate_limit = _env_int('POLYGON_RATE_LIMIT', config.polygon.rate_limit)
        config.http.max_connections = _env_int('POLYGON_MAX_CONNECTIONS', config.http.max_connections)
        config.system.max_workers = _env_int('BACKFILL_WORKERS', config.system.max_workers)
        config.system.reverse_order = _env_bool('BACKFILL_REVERSE_ORDER', config.system.reverse_order)
        config.system.refresh_open_partition = _env_bool(
            'BACKFILL_REFRESH_OPEN_PARTITION', config.system.refresh_open_partition
        )
        start = os.getenv('BACKFILL_START_DATE')
        if start:
            try:
                config.system.start_date = date.fromisoformat(start)
            except ValueError as e:
                raise BackfillConfigError(
                    f"Invalid BACKFILL_START_DATE value: expected YYYY-MM-DD, got '{start}'"
                ) from e
        config.pagination.trades_margin_ns = _env_int(
            'TRADES_PAGE_MARGIN_NS', config.pagination.trades_margin_ns
        )
        config.validate()
        return config

    def validate(self) -> None:
        """Reject values the pipeline cannot run with."""
        if self.polygon.rate_limit <= 0:
            raise BackfillConfigError("rate_limit must be positive")
        if self.polygon.burst <= 0:
            raise BackfillConfigError("burst must be positive")
        if self.system.max_workers <= 0:
            raise BackfillConfigError("max_workers must be positive")
        if self.retry.default_max_attempts <= 0 or self.retry.trades_max_attempts <= 0:
            raise BackfillConfigError("retry attempts must be positive")
        if self.pagination.page_limit <= 0:
            raise BackfillConfigError("page_limit must be positive")
        if self.pagination.trades_margin_ns < 0 or self.pagination.minute_margin_ms < 0:
            raise BackfillConfigError("pagination margins cannot be negative")
