"""Configuration models using Pydantic for validation."""
from typing import Literal
import os
import socket

from pydantic import BaseModel, ConfigDict, Field, field_validator

from dogmetrics.client import ENDPOINT


class DatadogConfig(BaseModel):
    """Datadog API connection settings."""
    host: str = Field(default_factory=socket.gethostname)
    api_key: str
    endpoint: str = ENDPOINT
    timeout_s: float = 10.0

    @field_validator("api_key")
    @classmethod
    def validate_api_key(cls, v):
        if not v:
            raise ValueError("Datadog api_key must be set (or DATADOG_API_KEY exported)")
        return v


class ReporterConfig(BaseModel):
    """Reporting loop settings."""
    interval_s: float = 10.0
    self_metrics: bool = True
    prefix: str = "dogmetrics.reporter"

    @field_validator("interval_s")
    @classmethod
    def validate_interval(cls, v):
        if v <= 0:
            raise ValueError("interval_s must be positive")
        return v


class GlobalConfig(BaseModel):
    """Global configuration settings."""
    log_level: str = "INFO"
    log_format: Literal["json", "text"] = "text"
    control_api_enabled: bool = True
    control_api_port: int = 8081


class Config(BaseModel):
    """Root configuration model."""
    model_config = ConfigDict(populate_by_name=True)

    global_: GlobalConfig = Field(default_factory=GlobalConfig, alias="global")
    datadog: DatadogConfig
    reporter: ReporterConfig = Field(default_factory=ReporterConfig)


def load_config(config_path: str) -> Config:
    """Load and validate configuration from YAML file."""
    import yaml

    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, 'r') as f:
        raw_config = yaml.safe_load(f) or {}

    # Apply environment variable overrides
    if env_api_key := os.getenv('DATADOG_API_KEY'):
        raw_config.setdefault('datadog', {})['api_key'] = env_api_key

    if env_host := os.getenv('DATADOG_HOST'):
        raw_config.setdefault('datadog', {})['host'] = env_host

    if env_log_level := os.getenv('LOG_LEVEL'):
        raw_config.setdefault('global', {})['log_level'] = env_log_level

    raw_config.setdefault('datadog', {})

    try:
        return Config(**raw_config)
    except Exception as e:
        raise ValueError(f"Configuration validation failed: {e}")
