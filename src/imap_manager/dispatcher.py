"""
Operation dispatcher: executes one parsed operation against an open session.

Every mailbox-scoped operation runs inside ``with_mailbox_lock``; listing is
mailbox-agnostic and takes no lock. Each handler returns the result records
for its input record (listing may return several).
"""
import logging
from typing import Any, Callable, Dict, List, Type

from imap_manager.credentials import CredentialStore
from imap_manager.mail_client import ImapSession
from imap_manager.operations import (
    AddKeywords,
    Copy,
    Delete,
    ListMailboxes,
    Move,
    Operation,
    Redirect,
    RemoveKeywords,
    SearchByMessageId,
)
from imap_manager.redirect import TransportFactory, redirect_message
from imap_manager.session import with_mailbox_lock
from imap_manager.smtp_transport import SmtpTransport

logger = logging.getLogger(__name__)

Record = Dict[str, Any]


class OperationDispatcher:
    """
    Maps operation variants to handlers.

    Args:
        credentials: Credential store (the redirect handler reads the SMTP set)
        transport_factory: Opens an SMTP transport for a credential
    """

    def __init__(self, credentials: CredentialStore, transport_factory: TransportFactory = SmtpTransport.open):
        self.credentials = credentials
        self.transport_factory = transport_factory
        self._handlers: Dict[Type[Any], Callable[[ImapSession, Any, int], List[Record]]] = {
            ListMailboxes: self._list_mailboxes,
            SearchByMessageId: self._search_by_message_id,
            AddKeywords: self._change_keywords,
            RemoveKeywords: self._change_keywords,
            Move: self._move,
            Copy: self._copy,
            Delete: self._delete,
            Redirect: self._redirect,
        }

    def dispatch(self, session: ImapSession, operation: Operation, item_index: int) -> List[Record]:
        handler = self._handlers[type(operation)]
        logger.debug(f"Dispatching {operation.name} for item {item_index}")
        return handler(session, operation, item_index)

    def _list_mailboxes(self, session: ImapSession, operation: ListMailboxes, item_index: int) -> List[Record]:
        mailboxes = [box for box in session.list_mailboxes() if box.matches(operation.mailbox_filter)]
        logger.info(f"Listed {len(mailboxes)} mailboxes (filter: {operation.mailbox_filter!r})")
        # One record per mailbox so downstream steps can map over them
        if not mailboxes:
            return [{'mailboxes': []}]
        return [box.to_record() for box in mailboxes]

    def _search_by_message_id(self, session: ImapSession, operation: SearchByMessageId, item_index: int) -> List[Record]:
        uids = with_mailbox_lock(
            session, operation.mailbox,
            lambda: session.search_header('Message-ID', operation.message_id)
        )
        logger.info(f"Message-ID {operation.message_id} matched {len(uids)} UIDs in '{operation.mailbox}'")
        return [{'mailbox': operation.mailbox, 'messageId': operation.message_id, 'uids': uids}]

    def _change_keywords(self, session: ImapSession, operation, item_index: int) -> List[Record]:
        if isinstance(operation, AddKeywords):
            change = session.add_flags
        else:
            change = session.remove_flags
        with_mailbox_lock(session, operation.mailbox, lambda: change(operation.uid, operation.keywords))
        logger.info(f"{operation.name}: UID {operation.uid} in '{operation.mailbox}' {operation.keywords}")
        return [{
            'mailbox': operation.mailbox,
            'uid': operation.uid,
            'operation': operation.name,
            'keywords': list(operation.keywords),
        }]

    def _move(self, session: ImapSession, operation: Move, item_index: int) -> List[Record]:
        result = with_mailbox_lock(session, operation.mailbox, lambda: session.move(operation.uid, operation.destination))
        logger.info(f"Moved UID {operation.uid} from '{operation.mailbox}' to '{operation.destination}'")
        return [{'mailbox': operation.mailbox, 'uid': operation.uid, 'movedTo': operation.destination, 'result': result}]

    def _copy(self, session: ImapSession, operation: Copy, item_index: int) -> List[Record]:
        result = with_mailbox_lock(session, operation.mailbox, lambda: session.copy(operation.uid, operation.destination))
        logger.info(f"Copied UID {operation.uid} from '{operation.mailbox}' to '{operation.destination}'")
        return [{'mailbox': operation.mailbox, 'uid': operation.uid, 'copiedTo': operation.destination, 'result': result}]

    def _delete(self, session: ImapSession, operation: Delete, item_index: int) -> List[Record]:
        with_mailbox_lock(session, operation.mailbox, lambda: session.delete(operation.uid))
        logger.info(f"Deleted UID {operation.uid} from '{operation.mailbox}'")
        return [{'mailbox': operation.mailbox, 'uid': operation.uid, 'deleted': True}]

    def _redirect(self, session: ImapSession, operation: Redirect, item_index: int) -> List[Record]:
        record = with_mailbox_lock(
            session, operation.mailbox,
            lambda: redirect_message(session, operation, self.credentials, self.transport_factory, item_index)
        )
        return [record]
