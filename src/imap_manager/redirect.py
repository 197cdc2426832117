"""
Redirect (resend) of a stored message to a new recipient.

The raw message is fetched from the locked mailbox and handed to a separate
SMTP connection unmodified: the recipient sees the original headers. Only the
envelope is set: sender = fromOverride, else the SMTP credential's default
sender, else unset (the transport decides).
"""
import logging
from typing import Any, Callable, Dict

from imap_manager.credentials import SMTP, CredentialStore, SmtpCredential
from imap_manager.errors import CredentialNotFoundError, DependencyError, MailOperationError
from imap_manager.mail_client import ImapSession
from imap_manager.operations import Redirect
from imap_manager.smtp_transport import SmtpTransport

logger = logging.getLogger(__name__)

TransportFactory = Callable[[SmtpCredential], SmtpTransport]


def redirect_message(
    session: ImapSession,
    operation: Redirect,
    credentials: CredentialStore,
    transport_factory: TransportFactory,
    item_index: int
) -> Dict[str, Any]:
    """
    Resend message ``operation.uid`` to ``operation.redirect_to``.

    Must be called while ``operation.mailbox`` is locked in ``session``.

    Raises:
        DependencyError: SMTP credential missing, or the raw message cannot be fetched
        MailConnectionError: SMTP connection/authentication failed
        MailOperationError: SMTP server refused the message
    """
    try:
        smtp_credential = credentials.get(SMTP)
    except CredentialNotFoundError as e:
        raise DependencyError(f"Redirect requires an SMTP credential: {e.message}", item_index=item_index) from e

    try:
        raw = session.fetch_raw(operation.uid)
    except MailOperationError as e:
        raise DependencyError(
            f"Could not fetch raw source of UID {operation.uid}: {e.message}", item_index=item_index
        ) from e
    if not raw:
        raise DependencyError(
            f"Message UID {operation.uid} not found in '{operation.mailbox}'",
            item_index=item_index,
            context={'mailbox': operation.mailbox, 'uid': operation.uid}
        )

    logger.info(f"Redirecting UID {operation.uid} from '{operation.mailbox}' to {operation.redirect_to} ({len(raw)} bytes)")

    transport = transport_factory(smtp_credential)
    envelope_from = operation.from_override or transport.default_sender
    try:
        message_id = transport.send_raw(raw, envelope_from, [operation.redirect_to])
    finally:
        try:
            transport.close()
        except Exception as e:
            logger.warning(f"SMTP quit failed (ignored): {e}")

    return {
        'mailbox': operation.mailbox,
        'uid': operation.uid,
        'redirectedTo': operation.redirect_to,
        'messageId': message_id,
    }
