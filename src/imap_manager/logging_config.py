"""
Logging Configuration Module

Centralized logging configuration for the IMAP manager. ``init_logging`` is
called once at startup (the CLI does this) and configures the ``imap_manager``
logger namespace; every module logs through ``logging.getLogger(__name__)``.

Key Features:
    - Plain text and JSON formats
    - Console, rotating file and JSONL handlers
    - Context-aware records (run_id, item_index, operation)
    - Environment variable and runtime overrides

Usage:
    >>> from imap_manager.logging_config import init_logging
    >>> init_logging()
    >>> init_logging(config_path='config/logging.yaml')
    >>> init_logging(overrides={'level': 'DEBUG', 'format': 'json'})
"""
import copy
import logging
import logging.handlers
import sys
import os
from pathlib import Path
from typing import Optional, Dict, Any, Union
import json
from datetime import datetime, timezone

import yaml

from imap_manager.logging_context import get_logging_context

ROOT_LOGGER_NAME = 'imap_manager'

DEFAULT_CONFIG = {
    'level': 'INFO',
    'format': 'plain',  # 'plain' or 'json'
    'handlers': {
        'console': {
            'enabled': True,
            'level': 'INFO'
        },
        'file': {
            'enabled': False,
            'path': 'logs/imap_manager.log',
            'level': 'INFO',
            'max_bytes': 10 * 1024 * 1024,  # 10MB
            'backup_count': 5
        },
        'json_file': {
            'enabled': False,
            'path': 'logs/imap_manager.jsonl',
            'level': 'INFO'
        }
    }
}

ENV_VAR_MAPPING = {
    'LOG_LEVEL': 'level',
    'LOG_FORMAT': 'format',
    'LOG_FILE': ('handlers', 'file', 'path'),
    'LOG_CONSOLE': ('handlers', 'console', 'enabled'),
    'LOG_JSON_FILE': ('handlers', 'json_file', 'enabled'),
    'LOG_JSON_PATH': ('handlers', 'json_file', 'path'),
}

BOOLEAN_ENV_VARS = ('LOG_CONSOLE', 'LOG_JSON_FILE')

PLAIN_FORMAT = '%(asctime)s %(levelname)-8s [%(run_id)s] [item %(item_index)s] [%(component)s] %(message)s'
CONTEXT_FIELDS = ('run_id', 'item_index', 'operation')


class JSONFormatter(logging.Formatter):
    """Formats log records as one JSON object per line, context fields included."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'message': record.getMessage(),
            'component': getattr(record, 'component', record.name),
        }

        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None and value != '-':
                log_data[field] = value

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False)


class ContextFilter(logging.Filter):
    """Adds run_id, item_index, operation and component to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        context = get_logging_context()
        record.run_id = context.get('run_id', '-')
        record.item_index = context.get('item_index', '-')
        record.operation = context.get('operation', '-')

        if not hasattr(record, 'component'):
            # Last part of the module path, e.g. 'orchestrator'
            record.component = record.name.split('.')[-1]

        return True


def _load_config_from_file(config_path: Union[str, Path]) -> Dict[str, Any]:
    """
    Load logging configuration from a YAML file.

    A top-level ``logging`` section is used if present, so the main
    configuration file can be passed directly.

    Raises:
        FileNotFoundError: If config file doesn't exist
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Logging config file not found: {config_path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        config = yaml.safe_load(f) or {}

    if 'logging' in config:
        return config['logging'] or {}
    return config


def _apply_env_overrides(config: Dict[str, Any]) -> Dict[str, Any]:
    """Apply LOG_* environment variable overrides to configuration."""
    config = copy.deepcopy(config)

    for env_var, config_path in ENV_VAR_MAPPING.items():
        env_value = os.environ.get(env_var)
        if env_value is None:
            continue

        if isinstance(config_path, tuple):
            current = config
            for key in config_path[:-1]:
                current = current.setdefault(key, {})
            key = config_path[-1]
            if env_var in BOOLEAN_ENV_VARS:
                current[key] = env_value.lower() in ('true', '1', 'yes', 'on')
            else:
                current[key] = env_value
                if env_var == 'LOG_FILE':
                    current['enabled'] = True
        elif config_path == 'level':
            config[config_path] = env_value.upper()
        else:
            config[config_path] = env_value.lower()

    return config


def _merge_config(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """Deep merge configuration dictionaries."""
    result = copy.deepcopy(base)

    for key, value in overrides.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _merge_config(result[key], value)
        else:
            result[key] = value

    return result


def _level(name: Optional[str], fallback: str) -> int:
    return getattr(logging, (name or fallback).upper(), logging.INFO)


def _formatter(log_format: str) -> logging.Formatter:
    if log_format == 'json':
        return JSONFormatter()
    return logging.Formatter(fmt=PLAIN_FORMAT, datefmt='%Y-%m-%d %H:%M:%S')


def _setup_handlers(logger: logging.Logger, config: Dict[str, Any]) -> None:
    """Set up logging handlers based on configuration."""
    handlers_config = config.get('handlers', {})
    log_format = config.get('format', 'plain')
    default_level = config.get('level', 'INFO')
    context_filter = ContextFilter()

    for handler in logger.handlers[:]:
        handler.close()
        logger.removeHandler(handler)

    console_config = handlers_config.get('console', {})
    if console_config.get('enabled', True):
        # stderr keeps stdout free for JSON results
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(_level(console_config.get('level'), default_level))
        console_handler.setFormatter(_formatter(log_format))
        console_handler.addFilter(context_filter)
        logger.addHandler(console_handler)

    file_config = handlers_config.get('file', {})
    if file_config.get('enabled', False):
        file_path = Path(file_config.get('path', 'logs/imap_manager.log'))
        file_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            str(file_path),
            maxBytes=file_config.get('max_bytes', 10 * 1024 * 1024),
            backupCount=file_config.get('backup_count', 5),
            encoding='utf-8'
        )
        file_handler.setLevel(_level(file_config.get('level'), default_level))
        file_handler.setFormatter(_formatter(log_format))
        file_handler.addFilter(context_filter)
        logger.addHandler(file_handler)

    json_config = handlers_config.get('json_file', {})
    if json_config.get('enabled', False):
        json_path = Path(json_config.get('path', 'logs/imap_manager.jsonl'))
        json_path.parent.mkdir(parents=True, exist_ok=True)

        json_handler = logging.FileHandler(str(json_path), encoding='utf-8')
        json_handler.setLevel(_level(json_config.get('level'), default_level))
        json_handler.setFormatter(JSONFormatter())
        json_handler.addFilter(context_filter)
        logger.addHandler(json_handler)

    if not logger.handlers:
        # Every output disabled; keep records away from the last-resort stderr handler
        logger.addHandler(logging.NullHandler())


def init_logging(
    config_path: Optional[Union[str, Path]] = None,
    overrides: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """
    Initialize the application's logging configuration.

    Precedence (lowest to highest): defaults, config file, LOG_* environment
    variables, runtime overrides.

    Args:
        config_path: Optional path to YAML configuration file
        overrides: Optional dictionary of runtime overrides (e.g., {'level': 'DEBUG'})

    Returns:
        The effective configuration

    Raises:
        FileNotFoundError: If config_path is specified but file doesn't exist
    """
    config = copy.deepcopy(DEFAULT_CONFIG)

    if config_path:
        config = _merge_config(config, _load_config_from_file(config_path))

    config = _apply_env_overrides(config)

    if overrides:
        config = _merge_config(config, overrides)

    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(_level(config.get('level'), 'INFO'))
    root_logger.propagate = False

    _setup_handlers(root_logger, config)

    root_logger.debug(f"Logging initialized: level={config.get('level')}, format={config.get('format')}")
    return config
