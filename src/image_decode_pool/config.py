import logging
import os

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .pool.limiter import default_concurrency


# Helper functions for parsing environment variables
def get_str_env(key: str, default: str = "") -> str:
    return os.environ.get(key, default)


def get_int_env(key: str, default: int) -> int:
    try:
        return int(os.environ.get(key, str(default)))
    except ValueError:
        return default


def get_float_env(key: str, default: float) -> float:
    try:
        return float(os.environ.get(key, str(default)))
    except ValueError:
        return default


# Default factory functions
def default_surface_pool_size() -> int:
    return get_int_env("IDP_SURFACE_POOL_SIZE", default_concurrency())


def default_surface_width() -> int:
    return get_int_env("IDP_SURFACE_WIDTH", 2048)


def default_surface_height() -> int:
    return get_int_env("IDP_SURFACE_HEIGHT", 2048)


def default_worker_pool_size() -> int:
    return get_int_env("IDP_WORKER_POOL_SIZE", default_concurrency())


def default_acquire_timeout() -> float:
    return get_float_env("IDP_ACQUIRE_TIMEOUT", 15.0)


def default_worker_acquire_timeout() -> float:
    return get_float_env("IDP_WORKER_ACQUIRE_TIMEOUT", 5.0)


def default_max_concurrent() -> int:
    return get_int_env("IDP_MAX_CONCURRENT", default_concurrency())


def default_log_level() -> str:
    return get_str_env("IDP_LOG_LEVEL", "INFO")


class Settings(BaseModel):
    """Pool sizes, timeouts and logging, defaulting to IDP_* environment variables."""
    # env-derived defaults go through the validators below
    model_config = ConfigDict(validate_default=True)

    surface_pool_size: int = Field(default_factory=default_surface_pool_size)
    surface_width: int = Field(default_factory=default_surface_width)
    surface_height: int = Field(default_factory=default_surface_height)
    worker_pool_size: int = Field(default_factory=default_worker_pool_size)
    acquire_timeout: float = Field(default_factory=default_acquire_timeout)
    worker_acquire_timeout: float = Field(default_factory=default_worker_acquire_timeout)
    max_concurrent: int = Field(default_factory=default_max_concurrent)
    log_level: str = Field(default_factory=default_log_level)

    @field_validator(
        "surface_pool_size", "surface_width", "surface_height", "worker_pool_size", "max_concurrent"
    )
    @classmethod
    def validate_positive_int(cls, v: int) -> int:
        if v <= 0:
            raise ValueError(f"must be positive, got {v}")
        return v

    @field_validator("acquire_timeout", "worker_acquire_timeout")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"timeout must be positive, got {v}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"unknown log level {v!r}")
        return level


def load_settings(**overrides) -> Settings:
    """Build Settings from the environment, with explicit *overrides* taking precedence."""
    return Settings(**{k: v for k, v in overrides.items() if v is not None})
