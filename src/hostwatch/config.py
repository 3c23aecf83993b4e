import logging
import math
import os
from pathlib import Path
from typing import Optional

from pydantic import field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)


class LoggingYamlConfigSettingsSource(YamlConfigSettingsSource):
    """YAML config source that logs whether the file was found."""

    def __init__(self, settings_cls: type[BaseSettings]):
        yaml_file = settings_cls.model_config.get("yaml_file")
        super().__init__(settings_cls)

        # logging is not configured yet when settings load at import time
        if yaml_file and Path(yaml_file).exists():
            print(f"INFO: Loading configuration from YAML file: {yaml_file}")
        elif yaml_file:
            print(
                f"WARNING: YAML config file not found: {yaml_file} (using defaults and env vars)"
            )


class Settings(BaseSettings):
    """
    Settings class manages configuration options.

    precedence: ENVVARS > env_file > yaml_file > defaults
    ENVVARS are prefixed with "HOSTWATCH_" (but are not case sensitive)

    :var log_level: Logging level. "info", "debug", etc.
    :type log_level: str

    :var backend_url: Base URL of the probing backend.
    :type backend_url: str
    :var probe_timeout: Seconds a single probe call may take.
    :type probe_timeout: float
    :var max_concurrent_probes: Upper bound on probes in flight at once.
    :type max_concurrent_probes: int

    :var simulation_enabled: Fall back to simulated results when the
        backend cannot be reached. When False the failure is raised.
    :type simulation_enabled: bool
    :var simulation_seed: Seed for the simulator; None means unseeded.
    :type simulation_seed: int
    """

    log_level: str | int = "info"  # Input is str, but we convert to int for actual use

    # Probing backend
    backend_url: str = "http://localhost:8000"
    backend_connect_timeout: float = 3.0
    probe_timeout: float = 10.0
    max_concurrent_probes: int = 32

    # Simulation fallback
    simulation_enabled: bool = True
    simulation_seed: Optional[int] = None
    simulation_latency: float = 0.0

    # API server
    host: str = "0.0.0.0"
    port: int = 8030

    model_config = SettingsConfigDict(
        env_prefix="HOSTWATCH_",
        env_file=os.getenv("HOSTWATCH_ENV_FILE", "hostwatch.env"),
        yaml_file=os.getenv("HOSTWATCH_CONFIG_FILE", "hostwatch_config.yaml"),
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v) -> int:
        if isinstance(v, int):
            return v
        return logging.getLevelName(v.upper())

    @field_validator("probe_timeout", "backend_connect_timeout")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0 or not math.isfinite(v):
            raise ValueError("timeouts must be positive and finite")
        return v

    @field_validator("max_concurrent_probes")
    @classmethod
    def validate_concurrency(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_concurrent_probes must be at least 1")
        return v

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            LoggingYamlConfigSettingsSource(settings_cls),
        )


# Global settings instance - initialized at import time
settings = Settings()
