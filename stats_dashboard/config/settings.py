"""
Stats Dashboard
Centralized Configuration Management

Pydantic settings with environment variable support, grouped per subsystem:
cache store, upstream stats API, aggregation workers and monitoring.
"""

from functools import lru_cache
from typing import Optional, List
from pydantic import Field, field_validator, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class RedisSettings(BaseSettings):
    """Redis Cache Configuration"""

    model_config = SettingsConfigDict(env_prefix="REDIS_")

    host: str = Field(default="localhost", description="Redis host")
    port: int = Field(default=6379, description="Redis port")
    password: Optional[SecretStr] = Field(default=None, description="Redis password")
    db: int = Field(default=0, description="Redis database number")
    max_connections: int = Field(default=20, description="Max connections")
    socket_timeout: int = Field(default=5, description="Socket timeout in seconds")
    namespace: str = Field(default="stats", description="Key namespace for metric trees")
    url: Optional[str] = Field(default=None, alias="REDIS_URL", description="Redis URL (overrides host/port)")

    def get_url(self) -> str:
        """Redis connection URL - uses REDIS_URL if set, otherwise builds from host/port"""
        if self.url:
            return self.url
        if self.password:
            return f"redis://:{self.password.get_secret_value()}@{self.host}:{self.port}/{self.db}"
        return f"redis://{self.host}:{self.port}/{self.db}"


class StatsApiSettings(BaseSettings):
    """Upstream product statistics API"""

    model_config = SettingsConfigDict(env_prefix="STATS_API_")

    base_url: Optional[str] = Field(default=None, description="Stats API base URL; synthetic data when unset")
    products_path: str = Field(default="/stats/full", description="Path of the flat product list")
    timeout_seconds: float = Field(default=60.0, description="Request timeout")
    token: Optional[SecretStr] = Field(default=None, description="Bearer token for the stats API")


class AggregationSettings(BaseSettings):
    """Background aggregation configuration"""

    model_config = SettingsConfigDict(env_prefix="AGGREGATION_")

    executor: str = Field(default="process", description="Executor kind: process or thread")
    prefetch: bool = Field(default=True, description="Compute non-selected metrics after the selected one")
    synthetic_products: int = Field(default=2000, description="Synthetic product count when no stats API is configured")

    @field_validator("executor")
    @classmethod
    def validate_executor(cls, v: str) -> str:
        """Validate executor kind"""
        allowed = ["process", "thread"]
        if v.lower() not in allowed:
            raise ValueError(f"Executor must be one of: {allowed}")
        return v.lower()


class MonitoringSettings(BaseSettings):
    """Monitoring and Observability Configuration"""

    model_config = SettingsConfigDict(env_prefix="")

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL", description="Logging level")
    log_format: str = Field(default="json", alias="LOG_FORMAT", description="Log format: json or text")

    enable_metrics_endpoint: bool = Field(
        default=True,
        alias="ENABLE_METRICS_ENDPOINT",
        description="Expose Prometheus metrics on /metrics",
    )


class Settings(BaseSettings):
    """
    Main Application Settings

    Aggregates all configuration sections and provides a single entry point
    for accessing application configuration.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="stats-dashboard", alias="APP_NAME", description="Application name")
    app_env: str = Field(default="development", alias="APP_ENV", description="Environment")
    debug: bool = Field(default=False, alias="DEBUG", description="Debug mode")

    # API Server
    api_host: str = Field(default="0.0.0.0", alias="API_HOST", description="API host")
    api_port: int = Field(default=8000, alias="API_PORT", description="API port")
    api_workers: int = Field(default=1, alias="API_WORKERS", description="API workers")

    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"],
        description="Allowed CORS origins",
    )

    # Version
    version: str = Field(default="1.0.0", description="Application version")

    # Subsystem configurations
    redis: RedisSettings = Field(default_factory=RedisSettings)
    stats_api: StatsApiSettings = Field(default_factory=StatsApiSettings)
    aggregation: AggregationSettings = Field(default_factory=AggregationSettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment value"""
        allowed = ["development", "staging", "production", "testing"]
        if v.lower() not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v.lower()

    @property
    def is_production(self) -> bool:
        """Check if running in production"""
        return self.app_env == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development"""
        return self.app_env == "development"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses LRU cache to ensure settings are only loaded once.

    Returns:
        Settings: Application settings instance
    """
    return Settings()
