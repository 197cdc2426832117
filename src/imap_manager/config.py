import os
import yaml
from dotenv import load_dotenv
from typing import Any, Dict


class ConfigError(Exception):
    """
    Raised when configuration loading or validation fails.

    This exception is raised for:
    - Missing config files
    - Invalid YAML syntax
    - Schema violations (bad port, missing host, unknown keys)
    """
    pass


def load_yaml_config(path: str) -> Dict[str, Any]:
    """
    Load and parse a YAML configuration file.

    Args:
        path: Path to the YAML configuration file

    Returns:
        Dictionary containing the parsed configuration

    Raises:
        ConfigError: If the file doesn't exist, is empty or contains invalid YAML

    Example:
        >>> config = load_yaml_config('config/config.yaml')
        >>> print(config['imap']['host'])
        'imap.ionos.com'
    """
    if not os.path.exists(path):
        raise ConfigError(f"Config file not found: {path}")
    with open(path, 'r', encoding='utf-8') as f:
        try:
            config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"YAML parse error in {path}: {e}")
    if config is None:
        raise ConfigError(f"Configuration file {path} is empty")
    if not isinstance(config, dict):
        raise ConfigError(f"Configuration file {path} must contain a mapping at the top level")
    return config


def load_env_file(env_path: str) -> bool:
    """
    Load secrets from a .env file into os.environ if the file exists.

    Missing files are not an error: passwords may already be exported in the
    process environment.

    Returns:
        True if a file was loaded
    """
    if not os.path.exists(env_path):
        return False
    load_dotenv(env_path)
    return True
