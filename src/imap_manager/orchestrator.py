"""
Mailbox orchestrator: runs one mail operation per input record.

Per record, in order:
    1. Account guard (when the feature is on and ``enforceAccountMatch`` is set).
       A rejected record is routed to the error output and no session is opened.
    2. Parse/validate the selected operation.
    3. Open a fresh IMAP session, dispatch the operation, log out.
    4. Append the result records to the main output.

Records are processed strictly sequentially and in input order. Any failure
other than a guard rejection ends the run: it is logged with the record index
and re-raised, and records after it are not attempted.

Usage:
    >>> context = ItemExecutionContext(items, {'operation': 'move', 'uid': '{{ $json.uid }}'})
    >>> orchestrator = MailboxOrchestrator(context, CredentialStore.from_config(config), config.features)
    >>> result = orchestrator.run(items)
    >>> result.outputs()
"""
import logging
import time
import uuid
from typing import Any, Optional, Sequence

from imap_manager.account_guard import check_account
from imap_manager.config_schema import FeaturesConfig
from imap_manager.credentials import IMAP, CredentialStore
from imap_manager.dispatcher import OperationDispatcher
from imap_manager.errors import ImapManagerError
from imap_manager.execution_context import ExecutionContext
from imap_manager.logging_context import set_operation, with_item_context, with_run_id
from imap_manager.mail_client import ImapSession
from imap_manager.operations import parse_operation
from imap_manager.redirect import TransportFactory
from imap_manager.router import OutputRouter, RunResult
from imap_manager.session import SessionFactory, open_session
from imap_manager.smtp_transport import SmtpTransport

logger = logging.getLogger(__name__)

TRUE_VALUES = ('true', '1', 'yes', 'on')


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in TRUE_VALUES
    return bool(value)


class MailboxOrchestrator:
    """
    Executes the configured operation for every input record.

    Args:
        context: Host execution context (parameter lookup and failure reporting)
        credentials: Credential store holding the ``imap`` (and optional ``smtp``) set
        features: Feature flags (error output, account guard, optional operations)
        session_factory: Opens a connected IMAP session for a credential
        transport_factory: Opens a connected SMTP transport for a credential
    """

    def __init__(
        self,
        context: ExecutionContext,
        credentials: CredentialStore,
        features: Optional[FeaturesConfig] = None,
        session_factory: SessionFactory = ImapSession.open,
        transport_factory: TransportFactory = SmtpTransport.open
    ):
        self.context = context
        self.credentials = credentials
        self.features = features or FeaturesConfig()
        self.session_factory = session_factory
        self.dispatcher = OperationDispatcher(credentials, transport_factory)

    def run(self, items: Sequence[Any]) -> RunResult:
        """
        Process ``items`` in order and return the collected outputs.

        Raises:
            GuardError: Guard rejection while the error output is disabled
            ImapManagerError: Any other failure, with ``item_index`` set
        """
        router = OutputRouter(has_error_output=self.features.error_output)
        run_id = uuid.uuid4().hex[:12]
        start_time = time.time()

        with with_run_id(run_id):
            logger.info(f"Starting run {run_id} over {len(items)} records")
            for item_index in range(len(items)):
                with with_item_context(item_index):
                    try:
                        self._process_item(item_index, router)
                    except ImapManagerError as e:
                        if e.item_index is None:
                            e.item_index = item_index
                        logger.error(f"Run aborted at item {item_index}: {e.__class__.__name__}: {e.message}")
                        raise

            elapsed = time.time() - start_time
            logger.info(f"{router.result} in {elapsed:.2f}s")
        return router.result

    def _process_item(self, item_index: int, router: OutputRouter) -> None:
        if self.features.account_guard:
            enforce = _as_bool(self.context.get_parameter('enforceAccountMatch', item_index, False))
            account = self.context.get_parameter('accountField', item_index, '')
            guard_error = check_account(enforce, account, self.credentials, item_index)
            if guard_error is not None:
                router.route_guard_failure(guard_error)
                return

        operation = parse_operation(self.context, item_index, self.features)
        set_operation(operation.name)

        credential = self.credentials.get(IMAP)
        with open_session(self.session_factory, credential) as session:
            records = self.dispatcher.dispatch(session, operation, item_index)

        logger.debug(f"Item {item_index} produced {len(records)} records")
        router.emit(records)
