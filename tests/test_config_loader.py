"""
Tests for the configuration loader.

These tests verify YAML loading, .env loading, IMAP_MANAGER_* environment
overrides and error reporting.
"""
import os

import pytest
import yaml

from imap_manager.config import ConfigError, load_yaml_config
from imap_manager.config_loader import ConfigLoader


@pytest.fixture
def config_file(tmp_path, config_dict):
    path = tmp_path / 'config.yaml'
    path.write_text(yaml.dump(config_dict))
    return path


def test_load(config_file):
    config = ConfigLoader(str(config_file)).load()

    assert config.imap.host == 'imap.example.com'
    assert config.smtp.from_address == 'noreply@c.com'


def test_missing_file(tmp_path):
    with pytest.raises(ConfigError, match='not found'):
        ConfigLoader(str(tmp_path / 'nope.yaml'))


def test_invalid_yaml(tmp_path):
    path = tmp_path / 'config.yaml'
    path.write_text('imap: [unclosed')

    with pytest.raises(ConfigError, match='YAML parse error'):
        load_yaml_config(str(path))


def test_empty_file(tmp_path):
    path = tmp_path / 'config.yaml'
    path.write_text('')

    with pytest.raises(ConfigError, match='empty'):
        load_yaml_config(str(path))


def test_non_mapping_file(tmp_path):
    path = tmp_path / 'config.yaml'
    path.write_text('- a\n- b\n')

    with pytest.raises(ConfigError, match='mapping'):
        load_yaml_config(str(path))


def test_schema_violation(tmp_path, config_dict):
    config_dict['imap']['port'] = 0
    path = tmp_path / 'config.yaml'
    path.write_text(yaml.dump(config_dict))

    with pytest.raises(ConfigError, match='Configuration validation failed'):
        ConfigLoader(str(path)).load()


def test_env_overrides(config_file, monkeypatch):
    """Test that IMAP_MANAGER_<SECTION>_<KEY> variables override YAML values."""
    monkeypatch.setenv('IMAP_MANAGER_IMAP_HOST', 'imap.custom.com')
    monkeypatch.setenv('IMAP_MANAGER_IMAP_PORT', '143')
    monkeypatch.setenv('IMAP_MANAGER_IMAP_SECURE', 'false')
    monkeypatch.setenv('IMAP_MANAGER_SMTP_FROM', 'override@example.com')
    monkeypatch.setenv('IMAP_MANAGER_FEATURES_REDIRECT', 'no')

    config = ConfigLoader(str(config_file)).load()

    assert config.imap.host == 'imap.custom.com'
    assert config.imap.port == 143
    assert config.imap.secure is False
    assert config.smtp.from_address == 'override@example.com'
    assert config.features.redirect is False


def test_env_override_combined_section():
    """Test that IMAP_SMTP_* is not mistaken for the IMAP section."""
    result = ConfigLoader._apply_env_overrides({}, environ={'IMAP_MANAGER_IMAP_SMTP_SMTP_PORT': '587'})
    assert result == {'imap_smtp': {'smtp_port': 587}}


def test_env_override_invalid_integer():
    with pytest.raises(ConfigError, match='must be an integer'):
        ConfigLoader._apply_env_overrides({}, environ={'IMAP_MANAGER_IMAP_PORT': 'abc'})


def test_env_override_unknown_section_ignored():
    result = ConfigLoader._apply_env_overrides({'imap': {}}, environ={'IMAP_MANAGER_OTHER_KEY': 'x', 'HOME': '/root'})
    assert result == {'imap': {}}


def test_env_file_loaded(tmp_path, config_file):
    """Test that the .env file is loaded before overrides are applied."""
    env_file = tmp_path / '.env'
    env_file.write_text('IMAP_MANAGER_IMAP_USER=dotenv@example.com\n')

    try:
        config = ConfigLoader(str(config_file), env_path=str(env_file)).load()
    finally:
        os.environ.pop('IMAP_MANAGER_IMAP_USER', None)

    assert config.imap.user == 'dotenv@example.com'


def test_load_from_dict(config_dict):
    assert ConfigLoader.load_from_dict(config_dict).imap.user == 'me@example.com'
