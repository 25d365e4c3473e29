# Logging setup
# Console handler plus an optional rotating file handler, both configured from the logging section

import logging
import logging.handlers
import os
from typing import Dict, Any

DEFAULT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s'


def _parse_size(size_str: str) -> int:
    """Parse a size string such as '10MB' into bytes"""
    size_str = str(size_str).upper()

    if size_str.endswith('KB'):
        return int(size_str[:-2]) * 1024
    elif size_str.endswith('MB'):
        return int(size_str[:-2]) * 1024 * 1024
    elif size_str.endswith('GB'):
        return int(size_str[:-2]) * 1024 * 1024 * 1024
    else:
        return int(size_str)


def setup_logging(config: Dict[str, Any]):
    """
    Configure the root logger from config['logging']
    """
    log_config = config.get('logging', {})

    logger = logging.getLogger()

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    logger.setLevel(getattr(logging, log_config.get('level', 'INFO')))

    formatter = logging.Formatter(log_config.get('format', DEFAULT_FORMAT))

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_config.get('file_enabled', True):
        file_path = log_config.get('file_path', 'logs/app.log')
        if not os.path.isabs(file_path):
            server_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
            file_path = os.path.join(server_dir, file_path)

        log_dir = os.path.dirname(file_path)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            file_path,
            maxBytes=_parse_size(log_config.get('max_file_size', '10MB')),
            backupCount=log_config.get('backup_count', 5),
            encoding='utf-8'
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    # quiet chatty third-party loggers
    for name, level in log_config.get('library_levels', {'httpx': 'WARNING'}).items():
        logging.getLogger(name).setLevel(getattr(logging, level))

    logging.info(f"Logging initialized at level {log_config.get('level', 'INFO')}")
