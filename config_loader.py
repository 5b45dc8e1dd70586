import logging
import os

import toml
from pydantic import ValidationError

from errors import ConfigurationError
from models import Config

logger = logging.getLogger(__name__)

# Environment variable -> (section, key)
ENV_OVERRIDES = {
    "CWA_API_KEY": ("cwa", "api_key"),
    "CWA_API_BASE_URL": ("cwa", "base_url"),
    "USER_AGENT": ("geocoding", "user_agent"),
    "HOST": ("server", "host"),
    "PORT": ("server", "port"),
    "NAME_POLICY": ("resolver", "name_policy"),
}


def load_config(config_path: str = "config.toml", require_api_key: bool = True) -> Config:
    """
    Load configuration from a TOML file, then apply environment overrides.

    A missing file falls back to defaults. Environment variables take
    precedence over file values; entry points load .env before calling this.
    """
    config_data = {}
    if os.path.exists(config_path):
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                config_data = toml.load(f)
        except (OSError, toml.TomlDecodeError) as e:
            raise ConfigurationError(f"Failed to load config: {e}")
    else:
        logger.info(f"No config file at {config_path}, using defaults")

    for env_name, (section, key) in ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value:
            config_data.setdefault(section, {})[key] = value

    try:
        config = Config(**config_data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid config: {e}")

    if require_api_key:
        validate_config(config)

    return config


def validate_config(config: Config) -> None:
    """Fail fast when the forecast API credentials are missing."""
    if not config.cwa.api_key:
        raise ConfigurationError("CWA_API_KEY is not set; add it to the environment or .env file")
