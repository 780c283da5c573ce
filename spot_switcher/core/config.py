"""Configuration management for the Spot Switcher CLI."""

import json
import os
import re
from datetime import datetime
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator


ENV_API_URL = "SPOT_SWITCHER_API_URL"
ENV_CLIENT_ID = "SPOT_SWITCHER_CLIENT_ID"
ENV_API_TOKEN = "SPOT_SWITCHER_API_TOKEN"


class Config(BaseModel):
    """Configuration model for the Spot Switcher CLI."""

    api_base_url: str = Field(..., description="Base URL of the optimizer backend")
    client_id: str = Field(..., description="Client whose instances and agents are managed")
    api_token: Optional[str] = Field(default=None, description="Bearer token sent with every request")
    request_timeout_seconds: float = Field(default=30.0, gt=0, description="HTTP request timeout")
    poll_interval_seconds: float = Field(default=30.0, gt=0, description="Dashboard refresh cadence")
    history_days: int = Field(default=7, ge=1, le=90, description="Price history lookback window")
    history_interval: str = Field(default="hour", description="Price history bucket size")
    price_precision: int = Field(default=4, ge=0, le=8, description="Decimal places for prices")
    created_at: datetime = Field(default_factory=datetime.utcnow, description="Configuration creation timestamp")
    version: str = Field(default="1.0.0", description="Configuration version")

    @field_validator('api_base_url')
    @classmethod
    def validate_api_base_url(cls, v: str) -> str:
        """Validate backend URL format."""
        url_pattern = r'^https?://[A-Za-z0-9.\-_:]+(/.*)?$'
        if not re.match(url_pattern, v):
            raise ValueError(
                f"Invalid backend URL: {v}. "
                "Expected format: https://optimizer.example.com"
            )
        return v.rstrip('/')

    @field_validator('client_id')
    @classmethod
    def validate_client_id(cls, v: str) -> str:
        """Validate client identifier."""
        if not v or not v.strip():
            raise ValueError("Client ID cannot be empty")
        return v.strip()

    @field_validator('history_interval')
    @classmethod
    def validate_history_interval(cls, v: str) -> str:
        """Validate price history bucket."""
        if v not in ("hour", "day"):
            raise ValueError(
                f"Invalid history interval: {v}. Expected 'hour' or 'day'"
            )
        return v


class ConfigManager:
    """Manages local configuration file for the Spot Switcher CLI."""

    def __init__(self, config_dir: Optional[Path] = None):
        """Initialize configuration manager.

        Args:
            config_dir: Optional custom configuration directory path.
                       Defaults to ~/.spot-switcher/
        """
        if config_dir is None:
            config_dir = Path.home() / ".spot-switcher"

        self.config_dir = config_dir
        self.config_file = config_dir / "config.json"

        self.config_dir.mkdir(parents=True, exist_ok=True)

    def load_config(self) -> Optional[Config]:
        """Load configuration from file.

        Returns:
            Config object if file exists and is valid, None otherwise.

        Raises:
            ValueError: If configuration file is corrupted or invalid.
        """
        if not self.config_file.exists():
            return None

        try:
            with open(self.config_file, 'r') as f:
                config_data = json.load(f)

            if isinstance(config_data.get('created_at'), str):
                dt_str = config_data['created_at'].replace('Z', '+00:00')
                dt_with_tz = datetime.fromisoformat(dt_str)
                config_data['created_at'] = dt_with_tz.replace(tzinfo=None)

            return Config(**config_data)

        except (json.JSONDecodeError, ValueError) as e:
            raise ValueError(f"Invalid configuration file: {e}")
        except Exception as e:
            raise ValueError(f"Failed to load configuration: {e}")

    def resolve_config(self) -> Optional[Config]:
        """Load configuration and apply environment overrides.

        Environment variables win over the file. When no file exists but
        both the URL and client ID are set in the environment, a config is
        built from the environment alone.

        Returns:
            Effective Config, or None if nothing is configured.

        Raises:
            ValueError: If the file or the overrides are invalid.
        """
        overrides = {}
        if os.environ.get(ENV_API_URL):
            overrides['api_base_url'] = os.environ[ENV_API_URL]
        if os.environ.get(ENV_CLIENT_ID):
            overrides['client_id'] = os.environ[ENV_CLIENT_ID]
        if os.environ.get(ENV_API_TOKEN):
            overrides['api_token'] = os.environ[ENV_API_TOKEN]

        config = self.load_config()
        if config is None:
            if 'api_base_url' in overrides and 'client_id' in overrides:
                return Config(**overrides)
            return None

        if not overrides:
            return config
        return Config(**{**config.model_dump(), **overrides})

    def save_config(self, config: Config) -> None:
        """Save configuration to file.

        Args:
            config: Configuration object to save.

        Raises:
            OSError: If unable to write configuration file.
        """
        try:
            config_dict = config.model_dump()
            config_dict['created_at'] = config.created_at.isoformat() + 'Z'

            # Write atomically by writing to temp file first
            temp_file = self.config_file.with_suffix('.tmp')
            with open(temp_file, 'w') as f:
                json.dump(config_dict, f, indent=2)

            temp_file.replace(self.config_file)

        except Exception as e:
            temp_file = self.config_file.with_suffix('.tmp')
            if temp_file.exists():
                temp_file.unlink()
            raise OSError(f"Failed to save configuration: {e}")

    def config_exists(self) -> bool:
        """Check if configuration file exists."""
        return self.config_file.exists()

    def get_config_path(self) -> Path:
        """Get the configuration file path."""
        return self.config_file

    def delete_config(self) -> None:
        """Delete the configuration file.

        Raises:
            OSError: If unable to delete configuration file.
        """
        if self.config_file.exists():
            try:
                self.config_file.unlink()
            except Exception as e:
                raise OSError(f"Failed to delete configuration: {e}")
