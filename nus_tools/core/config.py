"""Configuration management for nus-tools."""

from __future__ import annotations

import json
from pathlib import Path

import structlog
from pydantic import BaseModel, Field, field_validator

from nus_tools.crypto.title_key import COMMON_KEY

logger = structlog.get_logger()

DEFAULT_CONFIG_FILE = Path.home() / ".config" / "nus-tools" / "config.json"


class AppConfig(BaseModel):
    """Application configuration."""

    config_dir: Path = Field(
        default=DEFAULT_CONFIG_FILE.parent,
        description="Configuration directory"
    )

    # Key settings
    common_key: str = Field(
        default=COMMON_KEY.hex(),
        description="Common key used to decrypt title keys (hex)"
    )

    # Verification settings
    max_workers: int = Field(
        default=4,
        description="Maximum contents verified concurrently"
    )

    # Output settings
    output_format: str = Field(
        default="rich",
        description="Output format (rich, json, plain)"
    )
    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    @property
    def common_key_bytes(self) -> bytes:
        """Common key as bytes."""
        return bytes.fromhex(self.common_key)

    @classmethod
    def load(cls, config_file: Path | None = None) -> AppConfig:
        """Load configuration from file.

        Args:
            config_file: Path to config file, uses default if None

        Returns:
            Application configuration
        """
        if config_file is None:
            config_file = DEFAULT_CONFIG_FILE

        if config_file.exists():
            with open(config_file) as f:
                data = json.load(f)
                return cls(**data)

        # Return defaults
        return cls()

    def save(self, config_file: Path | None = None) -> None:
        """Save configuration to file.

        Args:
            config_file: Path to config file, uses default if None
        """
        if config_file is None:
            config_file = self.config_dir / "config.json"

        config_file.parent.mkdir(parents=True, exist_ok=True)

        with open(config_file, "w") as f:
            json.dump(self.model_dump(mode="json"), f, indent=2, default=str)

        logger.info("config_saved", path=str(config_file))

    @field_validator("common_key")
    @classmethod
    def validate_common_key(cls, v: str) -> str:
        """Validate common key value."""
        try:
            key = bytes.fromhex(v)
        except ValueError as e:
            raise ValueError(f"Common key must be hex: {e}") from e
        if len(key) != 16:
            raise ValueError(f"Common key must be 16 bytes, got {len(key)}")
        return v.lower()

    @field_validator("max_workers")
    @classmethod
    def validate_max_workers(cls, v: int) -> int:
        """Validate worker count."""
        if v < 1:
            raise ValueError("Max workers must be at least 1")
        return v

    @field_validator("output_format")
    @classmethod
    def validate_output_format(cls, v: str) -> str:
        """Validate output format."""
        valid_formats = {"rich", "json", "plain"}
        if v not in valid_formats:
            raise ValueError(f"Invalid output format: {v}. Valid formats: {valid_formats}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Valid levels: {valid_levels}")
        return v
