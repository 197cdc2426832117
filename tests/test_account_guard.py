"""
Tests for the account guard.
"""
import pytest

from imap_manager.account_guard import check_account
from imap_manager.credentials import CredentialStore
from imap_manager.errors import GuardError


@pytest.mark.parametrize('enforce,account', [
    (False, 'other@example.com'),
    (True, ''),
    (True, None),
])
def test_guard_passes_without_check(credentials, enforce, account):
    """Test that the check is skipped when not enforced or the account is empty."""
    assert check_account(enforce, account, credentials, 0) is None


def test_guard_passes_on_case_insensitive_match(credentials):
    assert check_account(True, 'Me@Example.COM', credentials, 0) is None


def test_guard_mismatch(credentials):
    """Test that a different account yields credential_mismatch."""
    error = check_account(True, 'other@example.com', credentials, 3)

    assert isinstance(error, GuardError)
    assert error.kind == 'credential_mismatch'
    assert error.to_record() == {
        'error': 'credential_mismatch',
        'account': 'other@example.com',
        'credentialUser': 'me@example.com',
        'itemIndex': 3,
    }


def test_guard_compares_without_trimming(credentials):
    """Test that surrounding whitespace counts as a difference."""
    error = check_account(True, ' me@example.com', credentials, 0)
    assert error is not None
    assert error.kind == 'credential_mismatch'


def test_guard_credential_not_configured(test_environ):
    """Test that a missing credential set yields credential_not_found."""
    store = CredentialStore(environ=test_environ)
    error = check_account(True, 'me@example.com', store, 1)

    assert error.kind == 'credential_not_found'
    assert error.to_record() == {'error': 'credential_not_found', 'account': 'me@example.com', 'itemIndex': 1}


def test_guard_password_unset(imap_config):
    """Test that an unset password variable also counts as credential_not_found."""
    store = CredentialStore(imap=imap_config, environ={})
    error = check_account(True, 'me@example.com', store, 0)

    assert error.kind == 'credential_not_found'


def test_guard_accepts_non_string_account(credentials):
    """Test that non-string upstream values are compared as text."""
    error = check_account(True, 12345, credentials, 0)
    assert error.to_record()['account'] == '12345'
