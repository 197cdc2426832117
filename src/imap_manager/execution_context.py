"""
Execution context: the narrow interface between the orchestrator and its host.

The orchestrator needs exactly two things from whoever runs it: the value of a
named parameter for record ``i``, and a way to fail with a structured error.
``ItemExecutionContext`` is the standalone implementation used by the CLI and
the tests; parameter values may reference fields of the current record with
``{{ $json.field }}`` (or ``{{ field }}``) expressions.
"""
import re
import logging
from typing import Any, Dict, List, Mapping, NoReturn, Optional, Protocol, Type

from imap_manager.errors import ImapManagerError, ValidationError

logger = logging.getLogger(__name__)

EXPRESSION = re.compile(r'\{\{\s*(?:\$json\.)?(?P<path>[A-Za-z_][\w.-]*)\s*\}\}')

_MISSING = object()


class ExecutionContext(Protocol):
    """What the orchestrator requires from its host runtime."""

    def get_parameter(self, name: str, item_index: int, default: Any = None) -> Any:
        ...

    def fail(self, message: str, item_index: int, error_class: Type[ImapManagerError] = ValidationError) -> NoReturn:
        ...


def _lookup(item: Mapping[str, Any], path: str) -> Any:
    current: Any = item
    for part in path.split('.'):
        if not isinstance(current, Mapping) or part not in current:
            return _MISSING
        current = current[part]
    return current


def resolve_expression(value: Any, item: Mapping[str, Any]) -> Any:
    """
    Resolve ``{{ ... }}`` references in ``value`` against ``item``.

    A value that is exactly one expression keeps the referenced field's type
    (so a numeric ``uid`` stays an int). Embedded expressions are rendered as
    text; unknown fields render as empty.
    """
    if not isinstance(value, str) or '{{' not in value:
        return value

    whole = EXPRESSION.fullmatch(value.strip())
    if whole:
        resolved = _lookup(item, whole.group('path'))
        return None if resolved is _MISSING else resolved

    def render(match: 're.Match[str]') -> str:
        resolved = _lookup(item, match.group('path'))
        return '' if resolved is _MISSING or resolved is None else str(resolved)

    return EXPRESSION.sub(render, value)


class ItemExecutionContext:
    """
    Execution context over an in-memory list of input records.

    Args:
        items: Input records (never mutated)
        parameters: Node parameters; values may be literals or expressions

    Example:
        >>> ctx = ItemExecutionContext([{'uid': 7}], {'operation': 'delete', 'uid': '{{ $json.uid }}'})
        >>> ctx.get_parameter('uid', 0)
        7
    """

    def __init__(self, items: List[Mapping[str, Any]], parameters: Optional[Dict[str, Any]] = None):
        self.items = items
        self.parameters = dict(parameters or {})

    def get_parameter(self, name: str, item_index: int, default: Any = None) -> Any:
        if name not in self.parameters:
            return default
        value = resolve_expression(self.parameters[name], self.items[item_index])
        return default if value is None else value

    def fail(self, message: str, item_index: int, error_class: Type[ImapManagerError] = ValidationError) -> NoReturn:
        logger.error(f"Item {item_index}: {message}")
        raise error_class(message, item_index=item_index)
