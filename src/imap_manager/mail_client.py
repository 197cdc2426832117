"""
IMAP mail client used by the orchestrator.

Wraps the standard library ``imaplib`` connection for one authenticated session
and exposes the operations the orchestrator needs, translating IMAP responses
into plain Python values and typed errors:

    - list_mailboxes: LIST "" "*" -> [MailboxInfo]
    - lock: SELECT (read-write) -> MailboxLock, released with UNSELECT
    - search_header: UID SEARCH HEADER <name> <value> -> [uid]
    - add_flags / remove_flags: UID STORE +FLAGS.SILENT / -FLAGS.SILENT
    - copy: UID COPY -> copy result (COPYUID)
    - move: UID MOVE, or COPY + \\Deleted + expunge without the MOVE capability
    - delete: UID STORE \\Deleted + UID EXPUNGE (UIDPLUS) or EXPUNGE
    - fetch_raw: UID FETCH BODY.PEEK[] -> raw RFC 822 bytes
    - logout

All UID operations require a held MailboxLock. Errors:
    MailConnectionError: connect/login failure, socket error or timeout
    MailboxError: SELECT failed or a lock is already held
    MailOperationError: the server answered NO/BAD, or an argument is not ASCII
"""
import imaplib
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from imapclient import imap_utf7

from imap_manager.credentials import ImapCredential
from imap_manager.errors import MailConnectionError, MailboxError, MailOperationError

logger = logging.getLogger(__name__)

# RFC 6154 special-use attributes
SPECIAL_USE_FLAGS = ('\\All', '\\Archive', '\\Drafts', '\\Flagged', '\\Junk', '\\Sent', '\\Trash')

LIST_RESPONSE = re.compile(
    r'^\((?P<flags>[^)]*)\)\s+(?P<delimiter>NIL|"(?:[^"\\]|\\.)*")\s+(?P<name>.*)$',
    re.IGNORECASE
)
COPYUID = re.compile(r'^(?P<validity>\d+)\s+(?P<source>[\d:,]+)\s+(?P<destination>[\d:,]+)$')


def quote(value: str) -> str:
    """Render a string as an IMAP quoted string."""
    return '"' + value.replace('\\', '\\\\').replace('"', '\\"') + '"'


def encode_mailbox_name(name: str) -> str:
    """Encode a unicode mailbox name as modified UTF-7 (RFC 3501 section 5.1.3)."""
    return imap_utf7.encode(name).decode('ascii')


def decode_mailbox_name(raw: str) -> str:
    """Decode a mailbox name from LIST; names already sent as UTF-8 are returned as-is."""
    try:
        encoded = raw.encode('ascii')
    except UnicodeEncodeError:
        return raw
    return imap_utf7.decode(encoded)


def _unquote(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == '"' and value[-1] == '"':
        return re.sub(r'\\(.)', r'\1', value[1:-1])
    return value


def _text(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode('utf-8', errors='replace')
    return '' if value is None else str(value)


def _describe(data: Any) -> str:
    if isinstance(data, (list, tuple)):
        return ' '.join(_text(d) for d in data if d is not None)
    return _text(data)


def _expand_uid_set(uid_set: str) -> List[int]:
    uids = []
    for part in uid_set.split(','):
        if ':' in part:
            start, end = part.split(':', 1)
            uids.extend(range(int(start), int(end) + 1))
        elif part:
            uids.append(int(part))
    return uids


@dataclass
class MailboxInfo:
    """One mailbox (folder) as reported by LIST."""
    path: str
    name: str
    delimiter: Optional[str]
    flags: List[str] = field(default_factory=list)
    special_use: str = ''

    def matches(self, needle: str) -> bool:
        """Case-insensitive substring match on path or name. Empty needle matches all."""
        if not needle:
            return True
        needle = needle.lower()
        return needle in self.path.lower() or needle in self.name.lower()

    def to_record(self) -> Dict[str, Any]:
        return {
            'path': self.path,
            'name': self.name,
            'flags': list(self.flags),
            'specialUse': self.special_use,
            'delimiter': self.delimiter,
            'listed': True,
        }


def _special_use(path: str, flags: Iterable[str]) -> str:
    if path.upper() == 'INBOX':
        return '\\Inbox'
    lowered = {flag.lower() for flag in flags}
    for special in SPECIAL_USE_FLAGS:
        if special.lower() in lowered:
            return special
    return ''


def parse_list_response(data: List[Any]) -> List[MailboxInfo]:
    """
    Parse the data of an imaplib LIST response.

    Lines look like ``(\\HasNoChildren \\Sent) "/" "Sent"``. Names sent as
    literals arrive as ``(line, literal)`` tuples followed by an empty trailer.
    """
    mailboxes = []
    for item in data:
        literal = None
        if isinstance(item, tuple):
            line, literal = _text(item[0]), _text(item[1])
        else:
            line = _text(item)

        line = line.strip()
        if not line:
            continue

        match = LIST_RESPONSE.match(line)
        if not match:
            logger.debug(f"Skipping unparseable LIST line: {line!r}")
            continue

        flags = match.group('flags').split()
        raw_delimiter = match.group('delimiter')
        delimiter = None if raw_delimiter.upper() == 'NIL' else _unquote(raw_delimiter)
        raw_name = literal if literal is not None else _unquote(match.group('name'))

        path = decode_mailbox_name(raw_name)
        name = path.split(delimiter)[-1] if delimiter else path
        mailboxes.append(MailboxInfo(
            path=path,
            name=name,
            delimiter=delimiter,
            flags=flags,
            special_use=_special_use(path, flags),
        ))
    return mailboxes


def _shutdown(imap: imaplib.IMAP4) -> None:
    try:
        imap.shutdown()
    except Exception as e:
        logger.debug(f"IMAP socket shutdown failed: {e}")


class MailboxLock:
    """
    Exclusive hold on one selected mailbox within a session.

    Usable as a context manager; ``release()`` is idempotent.
    """

    def __init__(self, session: 'ImapSession', mailbox: str):
        self.session = session
        self.mailbox = mailbox
        self.released = False

    def release(self) -> None:
        if self.released:
            return
        self.released = True
        self.session._release_lock(self)

    def __enter__(self) -> 'MailboxLock':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()


class ImapSession:
    """
    One authenticated IMAP connection.

    Example:
        >>> session = ImapSession.open(credential)
        >>> with session.lock('INBOX'):
        ...     session.search_header('Message-ID', '<abc@example.com>')
        [42]
        >>> session.logout()
    """

    def __init__(self, credential: ImapCredential):
        self.credential = credential
        self._imap: Optional[imaplib.IMAP4] = None
        self._lock: Optional[MailboxLock] = None
        self.capabilities: frozenset = frozenset()

    @classmethod
    def open(cls, credential: ImapCredential) -> 'ImapSession':
        """Create a session and connect it."""
        session = cls(credential)
        session.connect()
        return session

    @property
    def connected(self) -> bool:
        return self._imap is not None

    @property
    def locked_mailbox(self) -> Optional[str]:
        return self._lock.mailbox if self._lock else None

    def connect(self) -> None:
        """
        Connect and authenticate.

        ``secure`` selects implicit TLS; otherwise the plain connection is
        upgraded with STARTTLS when the server advertises it.

        Raises:
            MailConnectionError: If connection or authentication fails
        """
        cred = self.credential
        logger.info(f"Connecting to IMAP server {cred.host}:{cred.port} as {cred.user}")
        try:
            if cred.secure:
                imap = imaplib.IMAP4_SSL(cred.host, cred.port, timeout=cred.timeout)
            else:
                imap = imaplib.IMAP4(cred.host, cred.port, timeout=cred.timeout)
                if 'STARTTLS' in imap.capabilities:
                    try:
                        imap.starttls()
                    except Exception:
                        _shutdown(imap)
                        raise
        except Exception as e:
            error_msg = f"IMAP connection to {cred.host}:{cred.port} failed: {e}"
            logger.error(error_msg)
            raise MailConnectionError(error_msg) from e

        try:
            imap.login(cred.user, cred.password)
        except Exception as e:
            _shutdown(imap)
            error_msg = f"IMAP authentication failed for {cred.user}: {e}"
            logger.error(error_msg)
            raise MailConnectionError(error_msg) from e

        self._imap = imap
        self.capabilities = self._read_capabilities()
        logger.debug(f"IMAP session established (capabilities: {sorted(self.capabilities)})")

    def _read_capabilities(self) -> frozenset:
        # Servers often announce more capabilities after LOGIN
        try:
            typ, data = self._imap.capability()
            if typ == 'OK' and data and data[0]:
                return frozenset(_text(data[0]).upper().split())
        except imaplib.IMAP4.error as e:
            logger.debug(f"CAPABILITY failed, using greeting capabilities: {e}")
        return frozenset(str(cap).upper() for cap in self._imap.capabilities)

    def _ensure_connected(self) -> None:
        if not self.connected:
            raise MailConnectionError("IMAP session is not connected")

    def _ensure_locked(self) -> None:
        self._ensure_connected()
        if self._lock is None:
            raise MailboxError("No mailbox is locked in this session")

    def _call(self, what: str, method: str, *args: Any) -> List[Any]:
        """Run an imaplib command, returning its data or raising a typed error."""
        self._ensure_connected()
        try:
            typ, data = getattr(self._imap, method)(*args)
        except (imaplib.IMAP4.abort, OSError) as e:
            raise MailConnectionError(f"IMAP connection lost during {what}: {e}") from e
        except imaplib.IMAP4.error as e:
            raise MailOperationError(f"IMAP {what} failed: {e}") from e
        except UnicodeEncodeError as e:
            raise MailOperationError(f"IMAP {what} failed: arguments must be ASCII ({e})") from e
        if typ != 'OK':
            raise MailOperationError(f"IMAP {what} failed: {typ} {_describe(data)}")
        return data

    def _response(self, code: str) -> Any:
        try:
            return self._imap.response(code)
        except (imaplib.IMAP4.error, OSError) as e:
            raise MailConnectionError(f"IMAP connection lost reading {code}: {e}") from e

    def list_mailboxes(self) -> List[MailboxInfo]:
        data = self._call('LIST', 'list', '""', '"*"')
        mailboxes = parse_list_response(data)
        logger.debug(f"LIST returned {len(mailboxes)} mailboxes")
        return mailboxes

    def lock(self, mailbox: str) -> MailboxLock:
        """
        Select ``mailbox`` read-write and hold it until the lock is released.

        Raises:
            MailboxError: If the mailbox cannot be selected or a lock is already held
        """
        self._ensure_connected()
        if self._lock is not None:
            raise MailboxError(
                f"Mailbox '{self._lock.mailbox}' is already locked in this session",
                context={'mailbox': mailbox}
            )
        try:
            typ, data = self._imap.select(quote(encode_mailbox_name(mailbox)))
        except (imaplib.IMAP4.abort, OSError) as e:
            raise MailConnectionError(f"IMAP connection lost while selecting '{mailbox}': {e}") from e
        except imaplib.IMAP4.error as e:
            raise MailboxError(f"Cannot open mailbox '{mailbox}': {e}", context={'mailbox': mailbox}) from e
        if typ != 'OK':
            raise MailboxError(f"Cannot open mailbox '{mailbox}': {_describe(data)}", context={'mailbox': mailbox})

        self._lock = MailboxLock(self, mailbox)
        logger.debug(f"Locked mailbox '{mailbox}'")
        return self._lock

    def _release_lock(self, lock: MailboxLock) -> None:
        if self._lock is not lock:
            return
        self._lock = None
        if self._imap is None or 'UNSELECT' not in self.capabilities:
            # Without UNSELECT the next SELECT replaces the selection; CLOSE would expunge
            return
        try:
            self._imap.unselect()
        except Exception as e:
            logger.warning(f"UNSELECT of '{lock.mailbox}' failed: {e}")
        logger.debug(f"Released mailbox '{lock.mailbox}'")

    def search_header(self, header: str, value: str) -> List[int]:
        self._ensure_locked()
        data = self._call('UID SEARCH', 'uid', 'SEARCH', None, 'HEADER', quote(header), quote(value))
        return [int(uid) for uid in _text(data[0] if data else '').split()]

    def _store(self, uid: int, action: str, flags: List[str]) -> None:
        self._ensure_locked()
        flag_list = '(' + ' '.join(flags) + ')'
        self._call('UID STORE', 'uid', 'STORE', str(uid), action, flag_list)

    def add_flags(self, uid: int, flags: List[str]) -> None:
        self._store(uid, '+FLAGS.SILENT', flags)

    def remove_flags(self, uid: int, flags: List[str]) -> None:
        self._store(uid, '-FLAGS.SILENT', flags)

    def _copy_result(self, destination: str) -> Dict[str, Any]:
        result: Dict[str, Any] = {'path': self.locked_mailbox, 'destination': destination}
        _, data = self._response('COPYUID')
        raw = _text(data[-1]) if data and data[-1] is not None else ''
        match = COPYUID.match(raw.strip())
        if match:
            sources = _expand_uid_set(match.group('source'))
            targets = _expand_uid_set(match.group('destination'))
            result['uidValidity'] = int(match.group('validity'))
            result['uidMap'] = dict(zip(sources, targets))
        return result

    def copy(self, uid: int, destination: str) -> Dict[str, Any]:
        self._ensure_locked()
        self._response('COPYUID')  # drop stale response codes
        self._call('UID COPY', 'uid', 'COPY', str(uid), quote(encode_mailbox_name(destination)))
        return self._copy_result(destination)

    def move(self, uid: int, destination: str) -> Dict[str, Any]:
        self._ensure_locked()
        if 'MOVE' not in self.capabilities:
            result = self.copy(uid, destination)
            self._store(uid, '+FLAGS.SILENT', ['\\Deleted'])
            self._expunge(uid)
            return result
        self._response('COPYUID')
        self._call('UID MOVE', 'uid', 'MOVE', str(uid), quote(encode_mailbox_name(destination)))
        return self._copy_result(destination)

    def _expunge(self, uid: int) -> None:
        if 'UIDPLUS' in self.capabilities:
            self._call('UID EXPUNGE', 'uid', 'EXPUNGE', str(uid))
        else:
            self._call('EXPUNGE', 'expunge')

    def delete(self, uid: int) -> None:
        self._store(uid, '+FLAGS.SILENT', ['\\Deleted'])
        self._expunge(uid)

    def fetch_raw(self, uid: int) -> Optional[bytes]:
        """Return the unparsed message source, or None if the UID does not exist."""
        self._ensure_locked()
        data = self._call('UID FETCH', 'uid', 'FETCH', str(uid), '(BODY.PEEK[])')
        for item in data:
            if isinstance(item, tuple) and len(item) >= 2 and isinstance(item[1], bytes):
                return item[1]
        return None

    def logout(self) -> None:
        """Log out and drop the connection. Errors from the server propagate."""
        imap, self._imap = self._imap, None
        self._lock = None
        if imap is not None:
            imap.logout()
            logger.debug("IMAP session logged out")
