"""
Account guard: optional check that the upstream account matches the credential.

Runs before any session is opened for a record, so records already known to
target the wrong mailbox account cost no connection.
"""
import logging
from typing import Any, Optional

from imap_manager.credentials import IMAP, CredentialStore
from imap_manager.errors import CREDENTIAL_MISMATCH, CREDENTIAL_NOT_FOUND, CredentialNotFoundError, GuardError

logger = logging.getLogger(__name__)


def check_account(
    enforce: bool,
    account_field: Any,
    credentials: CredentialStore,
    item_index: int,
    credential_name: str = IMAP
) -> Optional[GuardError]:
    """
    Compare the upstream account identifier with the credential's user.

    Args:
        enforce: Whether the check is enabled for this record
        account_field: Upstream-resolved account/email (may be empty)
        credentials: Credential store to resolve the active credential from
        item_index: Index of the record being checked

    Returns:
        None if the record may proceed, otherwise the GuardError to route
    """
    account = '' if account_field is None else str(account_field)
    if not enforce or not account:
        return None

    try:
        credential_user = credentials.get(credential_name).user or ''
    except CredentialNotFoundError as e:
        logger.warning(f"Account guard: credential '{credential_name}' not found for item {item_index}: {e}")
        return GuardError(CREDENTIAL_NOT_FOUND, item_index, context={'account': account or None})

    upstream = account.lower()
    expected = credential_user.lower()
    if upstream and expected and upstream != expected:
        logger.warning(f"Account guard: item {item_index} targets '{account}' but credential user is '{credential_user}'")
        return GuardError(
            CREDENTIAL_MISMATCH,
            item_index,
            context={'account': account, 'credentialUser': credential_user}
        )

    return None
