"""
Operation variants and the parse step that builds them.

Each input record selects exactly one operation. ``parse_operation`` reads only
the parameters the selected operation needs and fails fast with
ValidationError when a required one is missing, so no connection or lock is
ever taken for an invalid record.

Operation names (as used in parameters):
    listMailboxes, searchByMessageId, addKeywords, removeKeywords,
    move, copy, delete, redirect
"""
from dataclasses import dataclass, field
from typing import Any, ClassVar, List, Optional, Union

from imap_manager.config_schema import FeaturesConfig
from imap_manager.execution_context import ExecutionContext

LIST_MAILBOXES = 'listMailboxes'
SEARCH_BY_MESSAGE_ID = 'searchByMessageId'
ADD_KEYWORDS = 'addKeywords'
REMOVE_KEYWORDS = 'removeKeywords'
MOVE = 'move'
COPY = 'copy'
DELETE = 'delete'
REDIRECT = 'redirect'

ALL_OPERATIONS = (
    LIST_MAILBOXES, SEARCH_BY_MESSAGE_ID, ADD_KEYWORDS, REMOVE_KEYWORDS, MOVE, COPY, DELETE, REDIRECT
)

DEFAULT_OPERATION = SEARCH_BY_MESSAGE_ID
DEFAULT_MAILBOX = 'INBOX'
DEFAULT_DEST_MAILBOX = 'Archive'


@dataclass(frozen=True)
class ListMailboxes:
    name: ClassVar[str] = LIST_MAILBOXES
    mailbox_filter: str = ''


@dataclass(frozen=True)
class SearchByMessageId:
    name: ClassVar[str] = SEARCH_BY_MESSAGE_ID
    mailbox: str
    message_id: str


@dataclass(frozen=True)
class AddKeywords:
    name: ClassVar[str] = ADD_KEYWORDS
    mailbox: str
    uid: int
    keywords: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class RemoveKeywords:
    name: ClassVar[str] = REMOVE_KEYWORDS
    mailbox: str
    uid: int
    keywords: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class Move:
    name: ClassVar[str] = MOVE
    mailbox: str
    uid: int
    destination: str


@dataclass(frozen=True)
class Copy:
    name: ClassVar[str] = COPY
    mailbox: str
    uid: int
    destination: str


@dataclass(frozen=True)
class Delete:
    name: ClassVar[str] = DELETE
    mailbox: str
    uid: int


@dataclass(frozen=True)
class Redirect:
    name: ClassVar[str] = REDIRECT
    mailbox: str
    uid: int
    redirect_to: str
    from_override: Optional[str] = None


Operation = Union[
    ListMailboxes, SearchByMessageId, AddKeywords, RemoveKeywords, Move, Copy, Delete, Redirect
]


def enabled_operations(features: FeaturesConfig) -> List[str]:
    operations = list(ALL_OPERATIONS)
    if not features.list_mailboxes:
        operations.remove(LIST_MAILBOXES)
    if not features.redirect:
        operations.remove(REDIRECT)
    return operations


def parse_keywords(raw: Any) -> List[str]:
    """
    Split a comma separated keyword string.

    Segments are trimmed and empty ones dropped; order and duplicates are kept.

        >>> parse_keywords(' a ,, b,a')
        ['a', 'b', 'a']
    """
    if raw is None:
        return []
    if isinstance(raw, (list, tuple)):
        raw = ','.join(str(part) for part in raw)
    return [part.strip() for part in str(raw).split(',') if part.strip()]


def _text(value: Any) -> str:
    return '' if value is None else str(value).strip()


def _uid(context: ExecutionContext, item_index: int) -> int:
    raw = context.get_parameter('uid', item_index, 0)
    if isinstance(raw, bool):
        context.fail('uid must be a number', item_index)
    if isinstance(raw, float) and not raw.is_integer():
        context.fail(f"uid must be a whole number, got {raw!r}", item_index)
    try:
        uid = int(raw or 0)
    except (TypeError, ValueError):
        context.fail(f"uid must be a number, got {raw!r}", item_index)
    if not uid:
        context.fail('uid is required', item_index)
    if uid < 0:
        context.fail(f"uid must be positive, got {uid}", item_index)
    return uid


def _mailbox(context: ExecutionContext, item_index: int) -> str:
    mailbox = _text(context.get_parameter('mailbox', item_index, DEFAULT_MAILBOX))
    if not mailbox:
        context.fail('mailbox is required', item_index)
    return mailbox


def parse_operation(context: ExecutionContext, item_index: int, features: FeaturesConfig) -> Operation:
    """
    Build the operation variant for record ``item_index``.

    Raises:
        ValidationError: Unknown/disabled operation or a missing required field
    """
    name = _text(context.get_parameter('operation', item_index, DEFAULT_OPERATION)) or DEFAULT_OPERATION
    if name not in ALL_OPERATIONS:
        context.fail(f"Unknown operation '{name}'", item_index)
    if name not in enabled_operations(features):
        context.fail(f"Operation '{name}' is not enabled", item_index)

    if name == LIST_MAILBOXES:
        return ListMailboxes(mailbox_filter=_text(context.get_parameter('mailboxFilter', item_index, '')))

    mailbox = _mailbox(context, item_index)

    if name == SEARCH_BY_MESSAGE_ID:
        message_id = _text(context.get_parameter('messageId', item_index, ''))
        if not message_id:
            context.fail('messageId is required', item_index)
        return SearchByMessageId(mailbox=mailbox, message_id=message_id)

    uid = _uid(context, item_index)

    if name in (ADD_KEYWORDS, REMOVE_KEYWORDS):
        keywords = parse_keywords(context.get_parameter('keywords', item_index, ''))
        if not keywords:
            context.fail('keywords are required', item_index)
        for keyword in keywords:
            if not keyword.isascii():
                context.fail(f"keyword {keyword!r} must be ASCII", item_index)
        variant = AddKeywords if name == ADD_KEYWORDS else RemoveKeywords
        return variant(mailbox=mailbox, uid=uid, keywords=keywords)

    if name in (MOVE, COPY):
        destination = _text(context.get_parameter('destMailbox', item_index, DEFAULT_DEST_MAILBOX))
        if not destination:
            context.fail('destMailbox is required', item_index)
        variant = Move if name == MOVE else Copy
        return variant(mailbox=mailbox, uid=uid, destination=destination)

    if name == DELETE:
        return Delete(mailbox=mailbox, uid=uid)

    redirect_to = _text(context.get_parameter('redirectTo', item_index, ''))
    if not redirect_to:
        context.fail('redirectTo is required', item_index)
    from_override = _text(context.get_parameter('fromOverride', item_index, '')) or None
    return Redirect(mailbox=mailbox, uid=uid, redirect_to=redirect_to, from_override=from_override)
