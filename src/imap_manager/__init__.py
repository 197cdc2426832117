"""IMAP manager: per-record mailbox operations over IMAP (and SMTP for redirect)."""

__version__ = '1.0.0'
