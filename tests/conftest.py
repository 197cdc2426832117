"""
Test fixtures shared by all test modules.

This module provides:
- Import path setup (project root and src/)
- Configuration and credential fixtures
- Logging reset between tests
"""
import logging
import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).parent.parent
for path in (PROJECT_ROOT / 'src', PROJECT_ROOT):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

from imap_manager.config_schema import FeaturesConfig, ImapConfig, SmtpConfig  # noqa: E402
from imap_manager.credentials import CredentialStore  # noqa: E402
from imap_manager.logging_config import ROOT_LOGGER_NAME  # noqa: E402
from imap_manager.logging_context import clear_context  # noqa: E402


@pytest.fixture(autouse=True)
def reset_logging():
    """Undo init_logging() side effects so caplog keeps working."""
    yield
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in logger.handlers[:]:
        handler.close()
        logger.removeHandler(handler)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
    clear_context()


@pytest.fixture
def config_dict():
    """Return a complete configuration dictionary."""
    return {
        'imap': {
            'host': 'imap.example.com',
            'port': 993,
            'secure': True,
            'user': 'me@example.com',
            'password_env': 'TEST_IMAP_PASSWORD',
        },
        'smtp': {
            'host': 'smtp.example.com',
            'port': 465,
            'secure': True,
            'user': 'me@example.com',
            'password_env': 'TEST_SMTP_PASSWORD',
            'from': 'noreply@c.com',
        },
        'features': {
            'error_output': True,
            'account_guard': True,
            'list_mailboxes': True,
            'redirect': True,
        },
        'parameters': {
            'mailbox': 'INBOX',
        },
    }


@pytest.fixture
def imap_config():
    return ImapConfig(host='imap.example.com', user='me@example.com', password_env='TEST_IMAP_PASSWORD')


@pytest.fixture
def smtp_config():
    return SmtpConfig(
        host='smtp.example.com',
        user='me@example.com',
        password_env='TEST_SMTP_PASSWORD',
        from_address='noreply@c.com'
    )


@pytest.fixture
def test_environ():
    """Password variables for the credential store."""
    return {'TEST_IMAP_PASSWORD': 'imap-secret', 'TEST_SMTP_PASSWORD': 'smtp-secret'}


@pytest.fixture
def credentials(imap_config, smtp_config, test_environ):
    """Credential store with IMAP and SMTP sets."""
    return CredentialStore(imap=imap_config, smtp=smtp_config, environ=test_environ)


@pytest.fixture
def all_features():
    """Every optional operation and the dual output enabled."""
    return FeaturesConfig(error_output=True, account_guard=True, list_mailboxes=True, redirect=True)
