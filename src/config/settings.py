import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings


class SessionConfig(BaseModel):
    milestone_km: float = Field(default=1.0, ge=0)


class PositionConfig(BaseModel):
    gpx_path: str = Field(default="")
    replay_interval: float = Field(default=1.0, gt=0)


class WebhookConfig(BaseModel):
    url: str = Field(default="")
    max_retries: int = Field(default=3, ge=1)
    timeout: float = Field(default=5.0, gt=0)


class APIConfig(BaseModel):
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8080)


class AppConfig(BaseSettings):
    session: SessionConfig = Field(default_factory=SessionConfig)
    position: PositionConfig = Field(default_factory=PositionConfig)
    webhook: WebhookConfig = Field(default_factory=WebhookConfig)
    api: APIConfig = Field(default_factory=APIConfig)

    @classmethod
    def load(cls, config_path: Optional[str] = None) -> "AppConfig":
        """Load config from YAML file and override with environment variables."""
        config_data = {}

        # Load from YAML if exists
        if config_path is None:
            config_path = os.environ.get("CONFIG_PATH", "config.yaml")

        config_file = Path(config_path)
        if config_file.exists():
            with open(config_file) as f:
                config_data = yaml.safe_load(f) or {}

        # Create config instance
        config = cls(**config_data)

        # Override with environment variables
        if gpx_path := os.environ.get("GPX_PATH"):
            config.position.gpx_path = gpx_path

        if webhook_url := os.environ.get("WEBHOOK_URL"):
            config.webhook.url = webhook_url

        if milestone := os.environ.get("MILESTONE_KM"):
            config.session.milestone_km = float(milestone)

        return config


# Global config instance
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Get or create the global config instance."""
    global _config
    if _config is None:
        _config = AppConfig.load()
    return _config
