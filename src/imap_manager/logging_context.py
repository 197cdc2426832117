"""
Logging Context Module

Stores contextual information (run_id, item_index, operation) that the
ContextFilter in logging_config.py stamps onto every log record, so log lines of
one batch can be correlated with the input record that produced them.

Usage:
    >>> from imap_manager.logging_context import with_run_id, with_item_context
    >>>
    >>> with with_run_id('a1b2c3'):
    ...     with with_item_context(item_index=0, operation='move'):
    ...         logger.info("Moving message")
"""
import contextvars
from typing import Dict, Any, Optional
from contextlib import contextmanager

_run_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar('run_id', default=None)
_item_index: contextvars.ContextVar[Optional[int]] = contextvars.ContextVar('item_index', default=None)
_operation: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar('operation', default=None)


def get_logging_context() -> Dict[str, Any]:
    """
    Get the current logging context.

    Returns:
        Dictionary containing the fields that are currently set:
        - run_id: Identifier of the batch run
        - item_index: Index of the input record being processed
        - operation: Operation selected for that record
    """
    context = {}
    run_id = _run_id.get()
    item_index = _item_index.get()
    operation = _operation.get()

    if run_id is not None:
        context['run_id'] = run_id
    if item_index is not None:
        context['item_index'] = item_index
    if operation is not None:
        context['operation'] = operation
    return context


def set_operation(operation: Optional[str]) -> None:
    """Set the operation name once it has been resolved for the current record."""
    _operation.set(operation)


def clear_context() -> None:
    """Clear all context fields."""
    _run_id.set(None)
    _item_index.set(None)
    _operation.set(None)


@contextmanager
def with_run_id(run_id: str):
    """
    Context manager for setting the run ID of one batch.

    Example:
        >>> with with_run_id('abc-123'):
        ...     logger.info("This log will include run_id")
    """
    token = _run_id.set(run_id)
    try:
        yield
    finally:
        _run_id.reset(token)


@contextmanager
def with_item_context(item_index: int, operation: Optional[str] = None):
    """
    Context manager for the processing of a single input record.

    Both fields are restored to their previous values on exit.
    """
    index_token = _item_index.set(item_index)
    operation_token = _operation.set(operation)
    try:
        yield
    finally:
        _operation.reset(operation_token)
        _item_index.reset(index_token)
