"""
Lap Times Configuration
Loads and validates lap_times_config.json
"""

import json
import logging
import os
from typing import Dict, Optional

CONFIG_ENV_VAR = 'LAP_TIMES_CONFIG'
DEFAULT_CONFIG_PATH = 'lap_times_config.json'

logger = logging.getLogger(__name__)


class ConfigError(ValueError):
    """Raised when the configuration file cannot be used"""


class LapTimesConfig:
    """Settings for the lap times plugin"""

    DEFAULTS = {
        'enabled': True,
        'discord_webhook_url': '',
        'max_top_times': 5,
        'broadcast_messages': True,
        'data_folder': 'LapData',
        'track': 'UnknownTrack',
        'chat_throttle_seconds': 1.0,
        'max_chat_line_length': 200,
        'webhook_timeout_seconds': 5.0,
    }

    def __init__(self, **overrides):
        unknown = set(overrides) - set(self.DEFAULTS)
        if unknown:
            raise ConfigError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")

        values = dict(self.DEFAULTS)
        values.update(overrides)

        self.enabled = values['enabled']
        self.discord_webhook_url = values['discord_webhook_url'] or ''
        self.max_top_times = values['max_top_times']
        self.broadcast_messages = values['broadcast_messages']
        self.data_folder = values['data_folder']
        self.track = values['track']
        self.chat_throttle_seconds = values['chat_throttle_seconds']
        self.max_chat_line_length = values['max_chat_line_length']
        self.webhook_timeout_seconds = values['webhook_timeout_seconds']

        self.validate()

    def validate(self):
        for key in ('enabled', 'broadcast_messages'):
            if not isinstance(getattr(self, key), bool):
                raise ConfigError(f"{key} must be true or false")

        for key in ('max_top_times', 'max_chat_line_length'):
            value = getattr(self, key)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigError(f"{key} must be an integer")

        if not 1 <= self.max_top_times <= 100:
            raise ConfigError(f"max_top_times must be between 1 and 100, got {self.max_top_times}")

        if self.max_chat_line_length < 16:
            raise ConfigError(f"max_chat_line_length must be at least 16, got {self.max_chat_line_length}")

        for key in ('chat_throttle_seconds', 'webhook_timeout_seconds'):
            value = getattr(self, key)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
                raise ConfigError(f"{key} must be a positive number")

        for key in ('discord_webhook_url', 'data_folder', 'track'):
            if not isinstance(getattr(self, key), str):
                raise ConfigError(f"{key} must be a string")

        if not self.data_folder:
            raise ConfigError("data_folder must not be empty")

    def to_dict(self) -> Dict:
        return {key: getattr(self, key) for key in self.DEFAULTS}


def load_config(path: Optional[str] = None) -> LapTimesConfig:
    """Read the JSON config file; a missing file gives the defaults"""
    path = path or os.environ.get(CONFIG_ENV_VAR, DEFAULT_CONFIG_PATH)

    if not os.path.exists(path):
        logger.info(f"No config file at {path}, using defaults")
        return LapTimesConfig()

    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Could not read config file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a JSON object")

    config = LapTimesConfig(**data)
    logger.info(f"Loaded configuration from {path}")
    return config
