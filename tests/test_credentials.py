"""
Tests for the credential store.
"""
import pytest

from imap_manager.config_schema import ImapConfig, ManagerConfig, SmtpConfig
from imap_manager.credentials import IMAP, SMTP, CredentialStore, ImapCredential, SmtpCredential
from imap_manager.errors import CredentialNotFoundError


def test_get_imap_credential(credentials):
    credential = credentials.get(IMAP)

    assert credential == ImapCredential(
        host='imap.example.com', port=993, secure=True,
        user='me@example.com', password='imap-secret', timeout=30
    )


def test_get_smtp_credential(credentials):
    credential = credentials.get(SMTP)

    assert isinstance(credential, SmtpCredential)
    assert credential.from_address == 'noreply@c.com'
    assert credential.password == 'smtp-secret'


def test_password_hidden_from_repr(credentials):
    assert 'imap-secret' not in repr(credentials.get(IMAP))


def test_missing_section(imap_config, test_environ):
    store = CredentialStore(imap=imap_config, environ=test_environ)

    assert store.has(IMAP) is True
    assert store.has(SMTP) is False
    with pytest.raises(CredentialNotFoundError, match="Credential 'smtp' is not configured"):
        store.get(SMTP)


def test_unset_password(imap_config):
    store = CredentialStore(imap=imap_config, environ={})

    with pytest.raises(CredentialNotFoundError, match='TEST_IMAP_PASSWORD'):
        store.get(IMAP)


def test_smtp_without_user_needs_no_password(imap_config):
    """Test that an unauthenticated relay resolves without a password."""
    smtp = SmtpConfig(host='relay.local', port=25, secure=False)
    store = CredentialStore(imap=imap_config, smtp=smtp, environ={})

    credential = store.get(SMTP)

    assert credential.user == ''
    assert credential.password == ''


def test_reads_os_environ_by_default(imap_config, monkeypatch):
    monkeypatch.setenv('TEST_IMAP_PASSWORD', 'from-env')
    store = CredentialStore(imap=imap_config)

    assert store.get(IMAP).password == 'from-env'


def test_from_config(config_dict, test_environ):
    config = ManagerConfig.model_validate(config_dict)
    store = CredentialStore.from_config(config, environ=test_environ)

    assert store.get(IMAP).host == 'imap.example.com'
    assert store.get(SMTP).host == 'smtp.example.com'


def test_credential_user_keeps_case(test_environ):
    imap = ImapConfig(host='imap.example.com', user='Me@Example.com', password_env='TEST_IMAP_PASSWORD')
    store = CredentialStore(imap=imap, environ=test_environ)

    assert store.get(IMAP).user == 'Me@Example.com'
