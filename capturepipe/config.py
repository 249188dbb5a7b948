"""Configuration management with YAML and environment variable support."""

import re
from pathlib import Path
from typing import ClassVar, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

DEFAULT_CONFIG_PATH = Path("config.yaml")
DEFAULT_OVERLAY_FONT = "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf"

_RESOLUTION_RE = re.compile(r"^\d+x\d+$")


class ConfigError(Exception):
    """Raised when the configuration file is missing, unreadable or invalid."""


class MediaConfig(BaseModel):
    """Synthetic test video parameters."""

    resolution: str = "1280x720"
    fps: int = Field(default=30, gt=0)
    duration: int = Field(default=10, gt=0)
    overlay_font: str = DEFAULT_OVERLAY_FONT

    @field_validator("resolution")
    @classmethod
    def check_resolution(cls, v: str) -> str:
        """Resolution must look like WIDTHxHEIGHT."""
        if not _RESOLUTION_RE.match(v):
            raise ValueError(f"resolution must be WIDTHxHEIGHT, got {v!r}")
        return v


class TransferConfig(BaseModel):
    """Remote FTPS endpoint and connection retry budget.

    retry_interval and connect_timeout are in seconds.
    """

    host: str = Field(min_length=1)
    port: int = Field(default=21, gt=0, le=65535)
    username: str
    password: str
    upload_dir: str = Field(min_length=1)
    max_retries: int = Field(default=3, ge=1)
    retry_interval: float = Field(default=5.0, ge=0)
    connect_timeout: float = Field(default=5.0, gt=0)
    use_tls: bool = True


class StorageConfig(BaseModel):
    """Local filesystem layout for generated artifacts."""

    output_dir: Path
    artifact_path: Path
    capture_dir: Path
    manifest_path: Path

    @field_validator("output_dir", "artifact_path", "capture_dir", "manifest_path", mode="before")
    @classmethod
    def convert_to_path(cls, v):
        """Convert string to Path object, rejecting empty values."""
        if isinstance(v, str):
            if not v.strip():
                raise ValueError("path must not be empty")
            return Path(v)
        return v


class PipelineConfig(BaseModel):
    """Stage timing parameters (seconds).

    upload_pacing defaults to capture_interval and linger defaults to the
    media duration when left unset.
    """

    capture_interval: int = Field(default=1, gt=0)
    upload_pacing: Optional[float] = Field(default=None, ge=0)
    linger: Optional[float] = Field(default=None, ge=0)


class LoggingConfig(BaseModel):
    """Log output configuration."""

    level: str = "INFO"
    rich: bool = True

    @field_validator("level")
    @classmethod
    def normalize_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level {v!r}")
        return level


class Settings(BaseSettings):
    """Main application settings with YAML and environment variable support.

    Configuration sources (in priority order):
    1. Environment variables (prefix: CAPTUREPIPE_, delimiter: __)
    2. Values passed in (the YAML file via load_settings)
    3. Field defaults
    """

    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_nested_delimiter="__",
        env_prefix="CAPTUREPIPE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    media: MediaConfig = Field(default_factory=MediaConfig)
    transfer: TransferConfig
    storage: StorageConfig
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @property
    def upload_pacing(self) -> float:
        """Seconds to wait after each capture upload."""
        if self.pipeline.upload_pacing is None:
            return float(self.pipeline.capture_interval)
        return self.pipeline.upload_pacing

    @property
    def linger(self) -> float:
        """Seconds to wait after the upload barrier before exiting."""
        if self.pipeline.linger is None:
            return float(self.media.duration)
        return self.pipeline.linger

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ):
        """Customize settings sources so the environment overrides the file.

        Priority order (highest to lowest):
        1. Environment variables
        2. .env file
        3. Init settings (the parsed configuration file)
        """
        return (
            env_settings,
            dotenv_settings,
            init_settings,
        )


def read_config_file(path: Path) -> dict:
    """Parse a YAML (or JSON) configuration file into a dict.

    Raises:
        ConfigError: If the file is missing, unreadable or not a mapping.
    """
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigError(f"Cannot read configuration file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Malformed configuration file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Configuration file {path} must contain a mapping")
    return data


def load_settings(path: Path | str = DEFAULT_CONFIG_PATH) -> Settings:
    """Load and validate settings from a configuration file.

    Args:
        path: YAML or JSON configuration file

    Returns:
        Frozen Settings instance

    Raises:
        ConfigError: If the file cannot be read or fails validation
    """
    data = read_config_file(Path(path))
    try:
        return Settings(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {path}:\n{e}") from e
