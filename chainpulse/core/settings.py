"""Application settings using Pydantic."""

from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with validation."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="Chainpulse", description="Application name")
    app_version: str = Field(default="0.1.0", description="Application version")
    debug: bool = Field(default=False, description="Debug mode")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_dir: Path = Field(default=Path("logs"), description="Log file directory")

    # Probe schedule
    health_check_interval: float = Field(
        default=30.0,
        description="Seconds between probe cycles",
        ge=1.0,
        le=3600.0,
    )
    health_check_timeout: float = Field(
        default=5.0,
        description="Per-probe timeout in seconds",
        gt=0.0,
        le=120.0,
    )
    failure_threshold: int = Field(
        default=3,
        description="Consecutive failures before a service is unhealthy",
        ge=1,
        le=100,
    )
    history_capacity: int = Field(
        default=1000,
        description="Maximum retained health check results",
        ge=10,
        le=100000,
    )

    # Scoring and alert thresholds
    slow_response_threshold_ms: float = Field(
        default=3000.0,
        description="Probe latency above which the system is degraded",
        gt=0.0,
    )
    error_rate_threshold: float = Field(
        default=10.0,
        description="Outbound error rate (percent) at which the api-metrics check fails",
        gt=0.0,
        le=100.0,
    )
    degraded_penalty: int = Field(
        default=20, description="Health score penalty per degraded service", ge=1, le=100
    )
    unhealthy_penalty: int = Field(
        default=50,
        description="Health score penalty per unhealthy service",
        ge=1,
        le=100,
    )

    # Monitored dependencies
    rpc_url: Optional[str] = Field(
        default="https://dream-rpc.somnia.network",
        description="JSON-RPC endpoint to probe (empty disables the probe)",
    )
    explorer_base_url: Optional[str] = Field(
        default="https://api.subgraph.somnia.network",
        description="Explorer/data API base URL (empty disables the probe)",
    )
    explorer_health_path: str = Field(
        default="/public_api/data_api",
        description="Path probed on the explorer API",
    )
    explorer_api_key: Optional[str] = Field(
        default=None, description="Bearer token for the explorer API"
    )
    explorer_api_key_required: bool = Field(
        default=False, description="Refuse to start without an explorer API key"
    )
    system_probe_enabled: bool = Field(
        default=True, description="Probe local memory pressure"
    )
    metrics_probe_enabled: bool = Field(
        default=True,
        description="Judge recorded outbound call metrics as an api-metrics service",
    )

    # Outbound client behaviour
    api_timeout: float = Field(
        default=10.0, description="Outbound request timeout in seconds", gt=0.0, le=300.0
    )
    max_retries: int = Field(
        default=3, description="Retries for retryable outbound failures", ge=0, le=10
    )
    retry_delay: float = Field(
        default=1.0, description="Base retry delay in seconds", ge=0.0, le=60.0
    )

    # Server
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, description="API port", ge=1, le=65535)
    reload: bool = Field(default=False, description="Enable auto-reload")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level. Must be one of: {valid_levels}")
        return v_upper

    @field_validator("rpc_url", "explorer_base_url")
    @classmethod
    def validate_url(cls, v: Optional[str]) -> Optional[str]:
        """Accept http(s) URLs; blank disables the dependency."""
        if v is None or not v.strip():
            return None
        v = v.strip().rstrip("/")
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"URL must start with http:// or https://: {v}")
        return v

    @field_validator("explorer_health_path")
    @classmethod
    def validate_health_path(cls, v: str) -> str:
        """Ensure the probe path is absolute."""
        return v if v.startswith("/") else f"/{v}"

    @model_validator(mode="after")
    def validate_penalties(self) -> "Settings":
        """An unhealthy service must cost at least as much as a degraded one."""
        if self.unhealthy_penalty < self.degraded_penalty:
            raise ValueError(
                "unhealthy_penalty must be greater than or equal to degraded_penalty"
            )
        return self


# Global settings instance
settings = Settings()
