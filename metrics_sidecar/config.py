"""Configuration models using Pydantic for validation."""
from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator
import os
import re

LABEL_NAME_PATTERN = re.compile(r'^[a-zA-Z_][a-zA-Z0-9_]*$')


class ServerConfig(BaseModel):
    """Scrape and control API server configuration."""
    enabled: bool = True
    port: int = 9185
    bind_address: str = "0.0.0.0"


class MetricsPushConfig(BaseModel):
    """Remote-Write push configuration."""
    enabled: bool = True
    push_url: str
    push_interval_s: float = 60.0
    timeout_s: float = 30.0
    bearer_token: str
    labels: Optional[Dict[str, str]] = None  # external labels

    @field_validator('push_url')
    @classmethod
    def validate_push_url(cls, v):
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"push_url must be an http(s) URL, got '{v}'")
        return v

    @field_validator('push_interval_s', 'timeout_s')
    @classmethod
    def validate_positive(cls, v):
        if v <= 0:
            raise ValueError("Intervals and timeouts must be positive")
        return v

    @field_validator('labels')
    @classmethod
    def validate_labels(cls, v):
        """External label names must be valid and not reserved."""
        if not v:
            return v
        for name in v:
            if not LABEL_NAME_PATTERN.match(name):
                raise ValueError(f"Invalid external label name '{name}'")
            if name.startswith("__"):
                raise ValueError(f"External label name '{name}' is reserved")
        return v


class AuthConfig(BaseModel):
    """Bearer token authorization for protected routes."""
    bearer_tokens_path: Optional[str] = None


class DemoConfig(BaseModel):
    """Demo metrics generator settings."""
    enabled: bool = False
    interval_s: float = 5.0
    seed: int = 42


class GlobalConfig(BaseModel):
    """Global configuration settings."""
    log_level: str = "INFO"
    self_metrics_prefix: str = "sidecar_"


class Config(BaseModel):
    """Root configuration model."""
    model_config = ConfigDict(populate_by_name=True)

    global_: GlobalConfig = Field(default_factory=GlobalConfig, alias="global")
    server: ServerConfig = Field(default_factory=ServerConfig)
    push: Optional[MetricsPushConfig] = None
    auth: AuthConfig = Field(default_factory=AuthConfig)
    demo: DemoConfig = Field(default_factory=DemoConfig)


class BearerTokenEntry(BaseModel):
    """A caller allowed to use protected routes."""
    name: str
    token: str

    @field_validator('token')
    @classmethod
    def validate_token(cls, v):
        if not v:
            raise ValueError("Bearer token must not be empty")
        return v


def _read_yaml(path: str):
    import yaml

    if not os.path.exists(path):
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with open(path, 'r') as f:
        return yaml.safe_load(f)


def load_config(config_path: str) -> Config:
    """Load and validate configuration from YAML file."""
    raw_config = _read_yaml(config_path) or {}

    # Apply environment variable overrides
    if env_url := os.getenv('PUSH_URL'):
        raw_config.setdefault('push', {})
        raw_config['push']['push_url'] = env_url

    if env_token := os.getenv('PUSH_BEARER_TOKEN'):
        raw_config.setdefault('push', {})
        raw_config['push']['bearer_token'] = env_token

    if env_log_level := os.getenv('LOG_LEVEL'):
        raw_config.setdefault('global', {})
        raw_config['global']['log_level'] = env_log_level

    try:
        config = Config(**raw_config)
        return config
    except Exception as e:
        raise ValueError(f"Configuration validation failed: {e}")


def load_bearer_tokens(path: str) -> List[BearerTokenEntry]:
    """Load the bearer token allow-list from a YAML list of {name, token}."""
    raw_entries = _read_yaml(path) or []

    if not isinstance(raw_entries, list):
        raise ValueError(f"Bearer token file {path} must contain a list")

    try:
        entries = [BearerTokenEntry(**item) for item in raw_entries]
    except Exception as e:
        raise ValueError(f"Bearer token file validation failed: {e}")

    tokens = [entry.token for entry in entries]
    if len(tokens) != len(set(tokens)):
        raise ValueError("Bearer tokens must be unique")

    return entries
