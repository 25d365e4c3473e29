# Configuration management
# JSON config file selected by CONFIG_ENV, with ${ENV_VAR} substitution

import json
import os
import logging
from typing import Dict, Any
import re

REQUIRED_SECTIONS = ['app', 'server', 'database', 'auth', 'logging', 'fulfillment', 'notifications']

CONFIG_FILES = {
    'production': 'config/config-prod.json',
    'development': 'config/config-dev.json',
    'test': 'config/config-test.json'
}


def _server_dir() -> str:
    script_dir = os.path.dirname(os.path.abspath(__file__))
    return os.path.dirname(script_dir)


def _replace_env_vars(value: str) -> str:
    """
    Replace ${ENV_VAR} placeholders with the environment value, leaving unknown
    variables untouched
    """
    def replace_match(match):
        env_var = match.group(1)
        return os.getenv(env_var, match.group(0))

    return re.sub(r'\$\{([^}]+)\}', replace_match, value)


def _process_config_values(config: Any) -> Any:
    """
    Recursively substitute environment variables
    """
    if isinstance(config, dict):
        return {k: _process_config_values(v) for k, v in config.items()}
    elif isinstance(config, list):
        return [_process_config_values(item) for item in config]
    elif isinstance(config, str):
        return _replace_env_vars(config)
    else:
        return config


def load_config() -> Dict[str, Any]:
    """
    Load the config file chosen by the CONFIG_ENV environment variable

    Returns:
        config dict
    """
    config_env = os.getenv('CONFIG_ENV', 'development')
    config_file = os.getenv('CONFIG_FILE') or CONFIG_FILES.get(config_env, 'config/config.json')

    if not os.path.isabs(config_file):
        config_file = os.path.join(_server_dir(), config_file)

    try:
        with open(config_file, 'r', encoding='utf-8') as f:
            config = json.load(f)

        config = _process_config_values(config)
        config.pop('_comment', None)

        logging.info(f"Loaded config file: {config_file}")
        return config

    except FileNotFoundError:
        logging.error(f"Config file not found: {config_file}")
        raise
    except json.JSONDecodeError as e:
        logging.error(f"Config file is not valid JSON: {e}")
        raise


def get_database_path(config: Dict[str, Any]) -> str:
    """
    Resolve the database path relative to the server directory

    Args:
        config: config dict

    Returns:
        absolute database path, or ":memory:"
    """
    db_path = config.get('database', {}).get('path', 'data/catering.db')

    if db_path != ':memory:' and not os.path.isabs(db_path):
        db_path = os.path.join(_server_dir(), db_path)

    return db_path


def validate_config(config: Dict[str, Any]) -> bool:
    """
    Check that every required section and key is present

    Args:
        config: config dict

    Returns:
        validation result
    """
    for section in REQUIRED_SECTIONS:
        if section not in config:
            logging.error(f"Config is missing required section: {section}")
            return False

    auth_config = config.get('auth', {})
    if not auth_config.get('jwt_secret_key'):
        logging.error("JWT secret key is not configured")
        return False

    upfront = config.get('fulfillment', {}).get('upfront_percent', {})
    for order_type, percent in upfront.items():
        if order_type not in ('urgent', 'scheduled') or not isinstance(percent, int) or not 0 < percent <= 100:
            logging.error(f"Invalid upfront_percent entry: {order_type}={percent}")
            return False

    return True


class Config:
    """
    Configuration access
    """
    def __init__(self):
        self.env = os.getenv('CONFIG_ENV', 'development')
        self.config = load_config()

        if not validate_config(self.config):
            raise ValueError("Config validation failed")

    def get(self, key: str, default=None):
        """
        Read a config value, dotted keys allowed ('app.name')

        Args:
            key: config key
            default: value returned when the key is missing

        Returns:
            config value
        """
        keys = key.split('.')
        value = self.config

        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def get_database_config(self) -> Dict[str, Any]:
        """
        Returns:
            database section with an absolute path
        """
        db_config = self.config.get('database', {}).copy()
        db_config['path'] = get_database_path(self.config)
        return db_config

    def get_upfront_percent(self) -> Dict[str, int]:
        return dict(self.get('fulfillment.upfront_percent', {}) or {})
