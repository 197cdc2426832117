"""
Pytest fixtures for integration tests.

Provides an in-memory mail server pre-populated with a small folder tree and
a factory that wires an orchestrator to it.
"""
import pytest

from imap_manager.execution_context import ItemExecutionContext
from imap_manager.orchestrator import MailboxOrchestrator

from tests.integration.mock_services import RAW_MESSAGE, MockMailServer, MockMessage, MockSmtpServer


@pytest.fixture
def mail_server():
    """Mail server with INBOX (UIDs 7 and 42), Archive, Sent and Sales folders."""
    server = MockMailServer()
    server.add_mailbox('INBOX', ['\\HasNoChildren'])
    server.add_mailbox('Archive', ['\\HasNoChildren', '\\Archive'])
    server.add_mailbox('Sent', ['\\HasNoChildren', '\\Sent'])
    server.add_mailbox('Sales', ['\\HasChildren'])
    server.add_mailbox('Sales/Leads', ['\\HasNoChildren'])
    server.add_message('INBOX', MockMessage(uid=7, message_id='<orig-7@example.com>', raw=RAW_MESSAGE))
    server.add_message('INBOX', MockMessage(uid=42, message_id='<x@y>', raw=b'Message-ID: <x@y>\r\n\r\nhi\r\n'))
    return server


@pytest.fixture
def smtp_server():
    return MockSmtpServer(transport_id='queued-1')


@pytest.fixture
def make_orchestrator(mail_server, smtp_server, credentials, all_features):
    """Build an orchestrator over ``items`` with node ``parameters``."""
    def _make(items, parameters, features=None, store=None):
        context = ItemExecutionContext(items, parameters)
        return MailboxOrchestrator(
            context,
            store or credentials,
            features or all_features,
            session_factory=mail_server.open,
            transport_factory=smtp_server.open
        )
    return _make
