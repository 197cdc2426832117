"""
Exception taxonomy for the IMAP manager.

Every failure the orchestrator can surface is one of the classes below. Only
GuardError is recovered locally (routed to the error output); everything else
propagates out of ``MailboxOrchestrator.run()`` and ends the batch.

Hierarchy:
    ImapManagerError
    ├── MailConnectionError     auth/network failure (IMAP or SMTP)
    ├── ValidationError         missing/invalid required field
    ├── MailboxError            mailbox missing, not selectable, or already locked
    ├── MailOperationError      server rejected a protocol command
    ├── DependencyError         redirect prerequisites missing (SMTP credential, raw source)
    ├── CredentialNotFoundError credential set not configured
    └── GuardError              account guard rejected the record
"""
from typing import Any, Dict, Optional


class ImapManagerError(Exception):
    """
    Base exception for all IMAP manager errors.

    Args:
        message: Human readable description
        item_index: Index of the input record that triggered the error (if known)
        context: Extra structured fields describing the failure
    """

    def __init__(self, message: str, item_index: Optional[int] = None, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.item_index = item_index
        self.context = context or {}

    def __str__(self) -> str:
        if self.item_index is None:
            return self.message
        return f"{self.message} [item {self.item_index}]"


class MailConnectionError(ImapManagerError):
    """Raised when a session cannot be established (network, TLS or authentication)."""
    pass


class ValidationError(ImapManagerError):
    """Raised when a required per-operation field is missing or invalid."""
    pass


class MailboxError(ImapManagerError):
    """Raised when a mailbox does not exist, cannot be selected or is already locked."""
    pass


class MailOperationError(ImapManagerError):
    """Raised when the server answers a protocol command with NO/BAD."""
    pass


class DependencyError(ImapManagerError):
    """Raised when the redirect flow lacks its SMTP credential or the raw message source."""
    pass


class CredentialNotFoundError(ImapManagerError):
    """Raised when a named credential set is not configured or its secret is unset."""
    pass


CREDENTIAL_MISMATCH = 'credential_mismatch'
CREDENTIAL_NOT_FOUND = 'credential_not_found'


class GuardError(ImapManagerError):
    """
    Raised by the account guard when an input record must be short-circuited.

    The ``kind`` is one of ``credential_mismatch`` or ``credential_not_found`` and
    becomes the ``error`` field of the Error Record.
    """

    def __init__(self, kind: str, item_index: int, context: Optional[Dict[str, Any]] = None):
        super().__init__(f"Account guard failed: {kind}", item_index=item_index, context=context)
        self.kind = kind

    def to_record(self) -> Dict[str, Any]:
        """Build the Error Record routed to the error output."""
        record: Dict[str, Any] = {'error': self.kind}
        record.update(self.context)
        record['itemIndex'] = self.item_index
        return record
