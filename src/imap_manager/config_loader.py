"""
Configuration Loader

Loads the YAML configuration file, applies environment variable overrides and
validates the result against the Pydantic schema in config_schema.py.

Environment Variable Overrides:
    Naming convention: IMAP_MANAGER_<SECTION>_<KEY> (uppercase, underscores)

    Examples:
        IMAP_MANAGER_IMAP_HOST=imap.custom.com
        IMAP_MANAGER_IMAP_PORT=143
        IMAP_MANAGER_SMTP_FROM=noreply@example.com
        IMAP_MANAGER_FEATURES_REDIRECT=true
"""
import os
import logging
from typing import Dict, Any, Optional
from pathlib import Path

from imap_manager.config import ConfigError, load_yaml_config, load_env_file
from imap_manager.config_schema import ManagerConfig

logger = logging.getLogger(__name__)

ENV_PREFIX = "IMAP_MANAGER_"

# Longest prefixes first so IMAP_SMTP_* is not read as IMAP section key SMTP_*
SECTION_MAP = [
    ('IMAP_SMTP', 'imap_smtp'),
    ('FEATURES', 'features'),
    ('IMAP', 'imap'),
    ('SMTP', 'smtp'),
]

INT_FIELDS = {
    'imap': ['port', 'timeout'],
    'smtp': ['port', 'timeout'],
    'imap_smtp': ['imap_port', 'smtp_port'],
}

BOOL_FIELDS = {
    'imap': ['secure'],
    'smtp': ['secure'],
    'imap_smtp': ['imap_secure', 'smtp_secure'],
    'features': ['error_output', 'redirect', 'list_mailboxes', 'account_guard'],
}


class ConfigLoader:
    """
    Configuration loader for IMAP manager configuration files.

    Args:
        config_path: Path to the YAML configuration file
        env_path: Optional path to a .env file with password variables

    Raises:
        ConfigError: If the config file is missing, invalid YAML, or validation fails

    Example:
        >>> loader = ConfigLoader('config/config.yaml', env_path='.env')
        >>> config = loader.load()
        >>> print(config.imap.host)
        'imap.ionos.com'
    """

    def __init__(self, config_path: str, env_path: Optional[str] = None):
        self.config_path = Path(config_path)
        self.env_path = env_path
        if not self.config_path.exists():
            raise ConfigError(f"Configuration file not found: {config_path}")

    @staticmethod
    def _apply_env_overrides(config_dict: Dict[str, Any], environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        """
        Apply IMAP_MANAGER_<SECTION>_<KEY> environment variables to the raw config.

        Args:
            config_dict: Configuration dictionary from YAML
            environ: Environment mapping (defaults to os.environ)

        Returns:
            Configuration dictionary with overrides applied
        """
        environ = os.environ if environ is None else environ
        overrides_applied = []

        for env_key, env_value in environ.items():
            if not env_key.startswith(ENV_PREFIX):
                continue

            remainder = env_key[len(ENV_PREFIX):]
            section = None
            key = None
            for section_env, section_name in SECTION_MAP:
                if remainder.startswith(section_env + '_'):
                    section = section_name
                    key = remainder[len(section_env) + 1:].lower()
                    break

            if not section or not key:
                logger.warning(f"Unknown configuration section in environment variable: {env_key}")
                continue

            if not isinstance(config_dict.get(section), dict):
                config_dict[section] = {}

            config_dict[section][key] = ConfigLoader._convert_env_value(key, env_value, section)
            overrides_applied.append(f"{section}.{key}")

        if overrides_applied:
            logger.info(f"Applied {len(overrides_applied)} environment variable overrides: {', '.join(overrides_applied)}")

        return config_dict

    @staticmethod
    def _convert_env_value(key: str, value: str, section: str) -> Any:
        """Convert an environment variable string to the type the schema expects."""
        if key in INT_FIELDS.get(section, []):
            try:
                return int(value)
            except ValueError:
                raise ConfigError(f"Environment variable value for {section}.{key} must be an integer, got: {value}")

        if key in BOOL_FIELDS.get(section, []):
            return value.strip().lower() in ('true', '1', 'yes', 'on')

        return value

    def load(self) -> ManagerConfig:
        """
        Load and validate the configuration file.

        The .env file (if given and present) is loaded first so password variables
        and overrides defined there are visible.

        Returns:
            Validated ManagerConfig instance

        Raises:
            ConfigError: If YAML parsing or schema validation fails
        """
        if self.env_path and load_env_file(self.env_path):
            logger.info(f"Loaded environment variables from {self.env_path}")

        logger.info(f"Loading configuration from {self.config_path}")
        raw_config = load_yaml_config(str(self.config_path))
        raw_config = self._apply_env_overrides(raw_config)
        return self.load_from_dict(raw_config)

    @staticmethod
    def load_from_dict(config_dict: Dict[str, Any]) -> ManagerConfig:
        """
        Validate configuration from a dictionary.

        This is useful for testing or programmatic configuration.

        Raises:
            ConfigError: If schema validation fails
        """
        try:
            validated_config = ManagerConfig.model_validate(config_dict)
        except Exception as e:
            error_msg = f"Configuration validation failed: {e}"
            logger.error(error_msg)
            raise ConfigError(error_msg) from e
        logger.info("Configuration loaded and validated successfully")
        return validated_config
