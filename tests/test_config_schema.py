"""
Tests for the configuration schema.
"""
import pytest
from pydantic import ValidationError as PydanticValidationError

from imap_manager.config_schema import FeaturesConfig, ImapConfig, ManagerConfig, SmtpConfig


def test_minimal_config_defaults():
    config = ManagerConfig.model_validate({'imap': {'host': 'imap.example.com', 'user': 'me@example.com'}})

    assert config.imap.port == 993
    assert config.imap.secure is True
    assert config.imap.password_env == 'IMAP_PASSWORD'
    assert config.smtp is None
    assert config.features == FeaturesConfig()
    assert config.features.error_output is True
    assert config.features.redirect is False
    assert config.parameters == {}


def test_full_config(config_dict):
    config = ManagerConfig.model_validate(config_dict)

    assert config.smtp.from_address == 'noreply@c.com'
    assert config.features.redirect is True
    assert config.parameters == {'mailbox': 'INBOX'}


@pytest.mark.parametrize('port', [0, 70000])
def test_invalid_port(port):
    with pytest.raises(PydanticValidationError, match='Port must be between'):
        ImapConfig(host='imap.example.com', user='me', port=port)


def test_empty_host_rejected():
    with pytest.raises(PydanticValidationError):
        ImapConfig(host='  ', user='me')


def test_unknown_key_rejected():
    with pytest.raises(PydanticValidationError):
        ImapConfig(host='imap.example.com', user='me', password='plain-text')


def test_smtp_from_alias_and_empty():
    assert SmtpConfig.model_validate({'host': 'smtp', 'from': 'a@b.com'}).from_address == 'a@b.com'
    assert SmtpConfig.model_validate({'host': 'smtp', 'from': '  '}).from_address is None


def test_combined_credential_splits_into_sections():
    """Test that an imap_smtp section fills both credential sections."""
    config = ManagerConfig.model_validate({
        'imap_smtp': {
            'imap_host': 'imap.example.com',
            'imap_user': 'me@example.com',
            'smtp_host': 'smtp.example.com',
            'smtp_port': 587,
            'smtp_secure': False,
            'smtp_user': 'me@example.com',
            'from': 'noreply@example.com',
        }
    })

    assert config.imap.host == 'imap.example.com'
    assert config.imap.port == 993
    assert config.smtp.port == 587
    assert config.smtp.secure is False
    assert config.smtp.from_address == 'noreply@example.com'


def test_explicit_section_wins_over_combined():
    config = ManagerConfig.model_validate({
        'imap': {'host': 'explicit.example.com', 'user': 'me'},
        'imap_smtp': {'imap_host': 'combined.example.com', 'imap_user': 'me', 'smtp_host': 'smtp.example.com'},
    })

    assert config.imap.host == 'explicit.example.com'
    assert config.smtp.host == 'smtp.example.com'


def test_missing_imap_section():
    with pytest.raises(PydanticValidationError):
        ManagerConfig.model_validate({'features': {}})
