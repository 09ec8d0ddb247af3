"""Configuration models and YAML loader for the happn channel."""

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

HAPPN_CLIENT_ID_ENV = "HAPPN_CLIENT_ID"
HAPPN_CLIENT_SECRET_ENV = "HAPPN_CLIENT_SECRET"


class HappnConfig(BaseModel):
    """happn API client settings and adapter page sizes."""

    base_url: str = "https://api.happn.fr"
    timeout_s: float = Field(default=30.0, ge=1.0)
    client_id: str = ""
    client_secret: str = ""
    user_agent: str = "Happn/19.1.0 AndroidSDK/19"
    recommendations_limit: int = Field(default=16, ge=1, le=100)
    updates_page_size: int = Field(default=10, ge=1, le=100)

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        if not v.strip():
            msg = "base_url must not be empty"
            raise ValueError(msg)
        return v.strip().rstrip("/")

    def resolved_client_id(self) -> str:
        """Client id from config, falling back to the environment."""
        return self.client_id or os.environ.get(HAPPN_CLIENT_ID_ENV, "")

    def resolved_client_secret(self) -> str:
        """Client secret from config, falling back to the environment."""
        return self.client_secret or os.environ.get(HAPPN_CLIENT_SECRET_ENV, "")


class FacebookOAuthConfig(BaseModel):
    """Facebook login dialog used to obtain the token happn exchanges."""

    client_id: str = "247294518656661"
    redirect_uri: str = "https://www.happn.fr"
    scope: str = "basic_info"
    response_type: str = "token"
    dialog_url: str = "https://www.facebook.com/v2.6/dialog/oauth"


class BrowserConfig(BaseModel):
    """Browser session configuration for the Facebook login flow."""

    cookies_path: str = "config/facebook_cookies.json"
    timeout_ms: int = Field(default=30000, ge=1000)
    login_timeout_ms: int = Field(default=300000, ge=1000)


class ChannelDefaults(BaseModel):
    """Values given to a channel record the first time it is created."""

    is_enabled: bool = False


class DatabaseConfig(BaseModel):
    """Database configuration."""

    path: str = "data/channels.db"


class Settings(BaseModel):
    """Top-level settings loaded from YAML."""

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    happn: HappnConfig = Field(default_factory=HappnConfig)
    oauth: FacebookOAuthConfig = Field(default_factory=FacebookOAuthConfig)
    browser: BrowserConfig = Field(default_factory=BrowserConfig)
    channel: ChannelDefaults = Field(default_factory=ChannelDefaults)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Settings":
        """Load settings from a YAML file."""
        path = Path(path)
        if not path.exists():
            msg = f"Config file not found: {path}"
            raise FileNotFoundError(msg)
        raw: dict[str, Any] = yaml.safe_load(path.read_text()) or {}
        return cls.model_validate(raw)
