"""
Configuration schema for the IMAP manager.

Pydantic models for the YAML configuration file. Credentials only name the
environment variables that hold passwords; the secrets themselves are read by
``CredentialStore`` when a record needs them.

A combined ``imap_smtp`` section (one credential carrying both servers) is split
into independent ``imap`` and ``smtp`` sections before validation. Explicit
``imap``/``smtp`` sections win over the combined one.
"""
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field, field_validator, model_validator, ConfigDict


def _validate_port(v: int) -> int:
    if not (1 <= v <= 65535):
        raise ValueError(f"Port must be between 1 and 65535, got {v}")
    return v


class ImapConfig(BaseModel):
    """IMAP credential section."""
    host: str = Field(..., description="IMAP server hostname")
    port: int = Field(default=993, description="IMAP port (993 for TLS, 143 for STARTTLS)")
    secure: bool = Field(default=True, description="Connect with implicit TLS")
    user: str = Field(..., description="Login user, usually the mailbox address")
    password_env: str = Field(default="IMAP_PASSWORD", description="Environment variable holding the IMAP password")
    timeout: int = Field(default=30, description="Socket timeout in seconds")

    model_config = ConfigDict(extra="forbid")

    @field_validator('port')
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate port is in valid range."""
        return _validate_port(v)

    @field_validator('host', 'user')
    @classmethod
    def validate_not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("must not be empty")
        return v.strip()

    @field_validator('password_env')
    @classmethod
    def validate_password_env(cls, v: str) -> str:
        """Validate password environment variable name is provided."""
        if not v or not v.strip():
            raise ValueError("password_env must be specified (passwords are never stored in YAML)")
        return v

    @field_validator('timeout')
    @classmethod
    def validate_timeout(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"Timeout must be at least 1 second, got {v}")
        return v


class SmtpConfig(BaseModel):
    """SMTP credential section used by the redirect operation."""
    host: str = Field(..., description="SMTP server hostname")
    port: int = Field(default=465, description="SMTP port (465 for TLS, 587 for STARTTLS)")
    secure: bool = Field(default=True, description="Connect with implicit TLS")
    user: str = Field(default="", description="Login user (empty disables AUTH)")
    password_env: str = Field(default="SMTP_PASSWORD", description="Environment variable holding the SMTP password")
    from_address: Optional[str] = Field(default=None, alias="from", description="Default envelope sender")
    timeout: int = Field(default=30, description="Socket timeout in seconds")

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    @field_validator('port')
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate port is in valid range."""
        return _validate_port(v)

    @field_validator('host')
    @classmethod
    def validate_host(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("must not be empty")
        return v.strip()

    @field_validator('from_address')
    @classmethod
    def empty_from_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        return v.strip()


class ImapSmtpConfig(BaseModel):
    """Combined IMAP+SMTP credential (one secret entry configuring both servers)."""
    imap_host: str
    imap_port: int = 993
    imap_secure: bool = True
    imap_user: str
    imap_password_env: str = "IMAP_PASSWORD"
    smtp_host: str
    smtp_port: int = 465
    smtp_secure: bool = True
    smtp_user: str = ""
    smtp_password_env: str = "SMTP_PASSWORD"
    from_address: Optional[str] = Field(default=None, alias="from")

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    def imap_section(self) -> Dict[str, Any]:
        return {
            'host': self.imap_host,
            'port': self.imap_port,
            'secure': self.imap_secure,
            'user': self.imap_user,
            'password_env': self.imap_password_env,
        }

    def smtp_section(self) -> Dict[str, Any]:
        return {
            'host': self.smtp_host,
            'port': self.smtp_port,
            'secure': self.smtp_secure,
            'user': self.smtp_user,
            'password_env': self.smtp_password_env,
            'from': self.from_address,
        }


class FeaturesConfig(BaseModel):
    """
    Feature flags selecting the node variant.

    The defaults describe the dual-output IMAP manager: error output and account
    guard on, listing on, redirect off.
    """
    error_output: bool = Field(default=True, description="Route guard failures to a separate error output")
    redirect: bool = Field(default=False, description="Enable the redirect (SMTP resend) operation")
    list_mailboxes: bool = Field(default=True, description="Enable the listMailboxes operation")
    account_guard: bool = Field(default=True, description="Enable the account/credential consistency check")

    model_config = ConfigDict(extra="forbid")


class ManagerConfig(BaseModel):
    """Top-level configuration schema."""
    imap: ImapConfig
    smtp: Optional[SmtpConfig] = None
    imap_smtp: Optional[ImapSmtpConfig] = None
    features: FeaturesConfig = Field(default_factory=FeaturesConfig)
    parameters: Dict[str, Any] = Field(default_factory=dict, description="Default node parameters")
    logging: Dict[str, Any] = Field(default_factory=dict, description="Logging overrides passed to init_logging")

    model_config = ConfigDict(extra="forbid")

    @model_validator(mode='before')
    @classmethod
    def split_combined_credential(cls, data: Any) -> Any:
        """Derive imap/smtp sections from a combined imap_smtp section."""
        if not isinstance(data, dict) or not data.get('imap_smtp'):
            return data
        combined = ImapSmtpConfig.model_validate(data['imap_smtp'])
        data = dict(data)
        if not data.get('imap'):
            data['imap'] = combined.imap_section()
        if not data.get('smtp'):
            data['smtp'] = combined.smtp_section()
        return data
