"""
Session lifecycle and mailbox lock scope.

``open_session`` gives each input record its own authenticated session and
guarantees logout on every exit path. ``with_mailbox_lock`` runs one operation
body while holding the exclusive lock on a mailbox and always releases it.
Teardown failures (logout, lock release) are logged and swallowed so they never
mask the operation's own result or error.

Usage:
    with open_session(ImapSession.open, credential) as session:
        uids = with_mailbox_lock(session, 'INBOX', lambda: session.search_header('Message-ID', mid))
"""
import logging
from contextlib import contextmanager
from typing import Callable, Iterator, TypeVar

from imap_manager.credentials import ImapCredential
from imap_manager.mail_client import ImapSession

logger = logging.getLogger(__name__)

T = TypeVar('T')

SessionFactory = Callable[[ImapCredential], ImapSession]


def release_session(session: ImapSession) -> None:
    """Log out, swallowing any failure."""
    try:
        session.logout()
    except Exception as e:
        logger.warning(f"IMAP logout failed (ignored): {e}")


@contextmanager
def open_session(factory: SessionFactory, credential: ImapCredential) -> Iterator[ImapSession]:
    """
    Acquire a connected session for one record and release it on exit.

    Raises:
        MailConnectionError: If the factory cannot connect/authenticate
    """
    session = factory(credential)
    try:
        yield session
    finally:
        release_session(session)


def with_mailbox_lock(session: ImapSession, mailbox: str, body: Callable[[], T]) -> T:
    """
    Run ``body`` while holding the exclusive lock on ``mailbox``.

    The lock is released whether ``body`` returns or raises. Failing to acquire
    the lock (MailboxError) propagates to the caller.
    """
    lock = session.lock(mailbox)
    try:
        return body()
    finally:
        try:
            lock.release()
        except Exception as e:
            logger.warning(f"Releasing lock on '{mailbox}' failed (ignored): {e}")
