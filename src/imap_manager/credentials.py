"""
Resolved credentials and the read-only credential store.

Credential sets are immutable for the duration of a run. The store resolves the
password from the environment variable named in the configuration at lookup
time, so an unset variable surfaces as CredentialNotFoundError for the record
that needs it rather than at startup.
"""
import os
import logging
from dataclasses import dataclass, field
from typing import Mapping, Optional, Union

from imap_manager.config_schema import ImapConfig, ManagerConfig, SmtpConfig
from imap_manager.errors import CredentialNotFoundError

logger = logging.getLogger(__name__)

IMAP = 'imap'
SMTP = 'smtp'


@dataclass(frozen=True)
class ImapCredential:
    host: str
    port: int
    secure: bool
    user: str
    password: str = field(repr=False)
    timeout: int = 30


@dataclass(frozen=True)
class SmtpCredential:
    host: str
    port: int
    secure: bool
    user: str
    password: str = field(repr=False)
    from_address: Optional[str] = None
    timeout: int = 30


Credential = Union[ImapCredential, SmtpCredential]


class CredentialStore:
    """
    Read-only lookup of credential sets by name (``imap`` or ``smtp``).

    Example:
        >>> store = CredentialStore.from_config(config)
        >>> store.get('imap').user
        'me@example.com'
    """

    def __init__(
        self,
        imap: Optional[ImapConfig] = None,
        smtp: Optional[SmtpConfig] = None,
        environ: Optional[Mapping[str, str]] = None
    ):
        self._sections = {IMAP: imap, SMTP: smtp}
        self._environ = environ

    @classmethod
    def from_config(cls, config: ManagerConfig, environ: Optional[Mapping[str, str]] = None) -> 'CredentialStore':
        return cls(imap=config.imap, smtp=config.smtp, environ=environ)

    def has(self, name: str) -> bool:
        return self._sections.get(name) is not None

    def _password(self, name: str, password_env: str, required: bool) -> str:
        environ = os.environ if self._environ is None else self._environ
        password = environ.get(password_env, '')
        if required and not password:
            raise CredentialNotFoundError(
                f"Password environment variable '{password_env}' for credential '{name}' is not set",
                context={'credential': name}
            )
        return password

    def get(self, name: str) -> Credential:
        """
        Resolve a credential set.

        Raises:
            CredentialNotFoundError: If the set is not configured or its password is unset
        """
        section = self._sections.get(name)
        if section is None:
            raise CredentialNotFoundError(f"Credential '{name}' is not configured", context={'credential': name})

        if isinstance(section, ImapConfig):
            return ImapCredential(
                host=section.host,
                port=section.port,
                secure=section.secure,
                user=section.user,
                password=self._password(name, section.password_env, required=True),
                timeout=section.timeout,
            )

        # SMTP without a user sends unauthenticated; the password is then optional
        return SmtpCredential(
            host=section.host,
            port=section.port,
            secure=section.secure,
            user=section.user,
            password=self._password(name, section.password_env, required=bool(section.user)),
            from_address=section.from_address,
            timeout=section.timeout,
        )
