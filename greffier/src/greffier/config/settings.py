"""
Greffier configuration with hybrid YAML + ENV support.

Sections:
- cache: in-memory escrow cache bounds
- rate_limit: dual-window request budget of the ledger endpoint
- fetch: per-record timeout and retry policy
- sync: batch run chunking and freshness
- resolver: fallback scan of the ledger when the user index fails

Priority: Environment variables > YAML config > Pydantic defaults
"""

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import (
    BaseSettings,
    EnvSettingsSource,
    SettingsConfigDict,
)


class CacheConfig(BaseModel):
    """Escrow cache configuration."""

    max_size: int = Field(default=200, ge=1, le=100_000)
    expiration_time: float = Field(default=300.0, gt=0, le=86_400)
    sweep_interval: float = Field(default=120.0, gt=0, le=3_600)


class RateLimitConfig(BaseModel):
    """
    Ledger RPC rate budget.

    Defaults keep headroom under the provider limits
    (300 requests / 10s and 12000 requests / 10min).
    """

    short_window_max: int = Field(default=250, ge=1)
    short_window_seconds: float = Field(default=10.0, gt=0)
    long_window_max: int = Field(default=10_000, ge=1)
    long_window_seconds: float = Field(default=600.0, gt=0)
    poll_interval: float = Field(default=1.0, ge=0, le=60)
    cooldown_seconds: float = Field(default=30.0, ge=0, le=600)

    @model_validator(mode="after")
    def check_windows(self) -> "RateLimitConfig":
        """Long window must cover the short one."""
        if self.long_window_seconds < self.short_window_seconds:
            raise ValueError("long_window_seconds must be >= short_window_seconds")
        if self.long_window_max < self.short_window_max:
            raise ValueError("long_window_max must be >= short_window_max")
        return self


class FetchConfig(BaseModel):
    """Single record fetch configuration."""

    timeout: float = Field(default=5.0, gt=0, le=60)
    max_attempts: int = Field(default=3, ge=1, le=10)
    retry_delay: float = Field(default=0.5, ge=0, le=30)
    amount_decimals: int = Field(default=18, ge=0, le=36)


class SyncConfig(BaseModel):
    """Batch synchronizer configuration."""

    chunk_size: int = Field(default=5, ge=1, le=50)
    chunk_delay: float = Field(default=0.5, ge=0, le=10)
    default_max_age: float = Field(default=60.0, gt=0, le=3_600)


class ResolverConfig(BaseModel):
    """Membership resolver fallback scan configuration."""

    scan_limit: int = Field(default=50, ge=1, le=100_000)
    scan_batch_size: int = Field(default=5, ge=1, le=50)
    scan_batch_delay: float = Field(default=0.5, ge=0, le=10)


class GreffierConfig(BaseSettings):
    """Greffier configuration schema."""

    model_config = SettingsConfigDict(
        env_prefix="GREFFIER_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    # Ledger bridge
    bridge_url: str = Field(default="http://127.0.0.1:8768")
    request_timeout: float = Field(default=10.0, gt=0, le=120)

    # Logging
    log_level: str = Field(default="info")
    json_logs: bool = Field(default=True)

    cache: CacheConfig = Field(default_factory=CacheConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    fetch: FetchConfig = Field(default_factory=FetchConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    resolver: ResolverConfig = Field(default_factory=ResolverConfig)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        allowed = ["debug", "info", "warning", "error", "critical"]
        v_lower = v.lower()
        if v_lower not in allowed:
            raise ValueError(f"Invalid log_level. Must be one of: {allowed}")
        return v_lower

    @field_validator("bridge_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize bridge URL."""
        v = v.strip().rstrip("/")
        if not v.startswith(("http://", "https://")):
            raise ValueError("bridge_url must be an http(s) URL")
        return v


def _read_yaml(path: Path) -> dict:
    if not path.exists():
        return {}
    with open(path, "r") as f:
        loaded = yaml.safe_load(f)
    return loaded or {}


def _deep_update(base: dict, override: dict) -> dict:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _deep_update(base[key], value)
        else:
            base[key] = value
    return base


def load_config(
    config_file: Optional[str] = None,
    config_dir: Optional[Path] = None,
) -> GreffierConfig:
    """
    Load configuration from YAML files.

    Priority: Environment variables > environment-specific YAML > default YAML

    Args:
        config_file: Optional YAML filename override
        config_dir: Optional directory holding the YAML files

    Returns:
        GreffierConfig instance
    """
    env = os.getenv("ENV", "production")

    config_map = {
        "production": "production.yaml",
        "development": "development.yaml",
        "test": "test.yaml",
    }

    if config_dir is None:
        project_root = Path(__file__).resolve().parent.parent.parent.parent
        config_dir = project_root / "config"

    merged_config = _read_yaml(config_dir / "default.yaml")

    if config_file is None:
        config_file = os.getenv("GREFFIER_CONFIG") or config_map.get(
            env, "production.yaml"
        )

    _deep_update(merged_config, _read_yaml(config_dir / config_file))

    # Init kwargs outrank env in pydantic-settings, so fold env back on top
    _deep_update(merged_config, EnvSettingsSource(GreffierConfig)())

    return GreffierConfig(**merged_config)


# Global settings instance
_settings: Optional[GreffierConfig] = None


def get_settings() -> GreffierConfig:
    """
    Get singleton settings instance.

    Returns:
        GreffierConfig instance
    """
    global _settings
    if _settings is None:
        _settings = load_config()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings instance (tests, reconfiguration)."""
    global _settings
    _settings = None
