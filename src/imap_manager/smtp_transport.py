"""
SMTP transport for resending raw messages.

The message bytes are handed to the server exactly as fetched; only the
envelope (MAIL FROM / RCPT TO) is set by the caller.
"""
import re
import smtplib
import logging
from email.parser import BytesHeaderParser
from typing import List, Optional

from imap_manager.credentials import SmtpCredential
from imap_manager.errors import MailConnectionError, MailOperationError

logger = logging.getLogger(__name__)

QUEUED_AS = re.compile(r'queued as\s+<?(?P<id>[^\s>]+)>?', re.IGNORECASE)


def message_id_of(raw: bytes) -> Optional[str]:
    """Return the Message-ID header of a raw message, if any."""
    headers = BytesHeaderParser().parsebytes(raw)
    value = headers.get('Message-ID')
    return str(value).strip() if value else None


def _close_quietly(smtp: smtplib.SMTP) -> None:
    try:
        smtp.close()
    except Exception as e:
        logger.debug(f"SMTP socket close failed: {e}")


class SmtpTransport:
    """
    One SMTP connection.

    ``secure`` selects implicit TLS (SMTP_SSL); otherwise STARTTLS is used when
    the server offers it. AUTH is skipped when the credential has no user.
    """

    def __init__(self, credential: SmtpCredential):
        self.credential = credential
        self._smtp: Optional[smtplib.SMTP] = None

    @classmethod
    def open(cls, credential: SmtpCredential) -> 'SmtpTransport':
        transport = cls(credential)
        transport.connect()
        return transport

    @property
    def default_sender(self) -> Optional[str]:
        return self.credential.from_address

    def connect(self) -> None:
        cred = self.credential
        logger.info(f"Connecting to SMTP server {cred.host}:{cred.port}")
        try:
            if cred.secure:
                smtp = smtplib.SMTP_SSL(cred.host, cred.port, timeout=cred.timeout)
            else:
                smtp = smtplib.SMTP(cred.host, cred.port, timeout=cred.timeout)
                try:
                    smtp.ehlo()
                    if smtp.has_extn('starttls'):
                        smtp.starttls()
                        smtp.ehlo()
                except Exception:
                    _close_quietly(smtp)
                    raise
        except Exception as e:
            error_msg = f"SMTP connection to {cred.host}:{cred.port} failed: {e}"
            logger.error(error_msg)
            raise MailConnectionError(error_msg) from e

        if cred.user:
            try:
                smtp.login(cred.user, cred.password)
            except Exception as e:
                _close_quietly(smtp)
                error_msg = f"SMTP authentication failed for {cred.user}: {e}"
                logger.error(error_msg)
                raise MailConnectionError(error_msg) from e

        self._smtp = smtp

    def send_raw(self, raw: bytes, envelope_from: Optional[str], recipients: List[str]) -> Optional[str]:
        """
        Send ``raw`` unmodified with the given envelope.

        A missing sender is sent as the null reverse-path.

        Returns:
            The id the server assigned ("queued as ..."), else the message's own
            Message-ID header, else None
        """
        if self._smtp is None:
            raise MailConnectionError("SMTP transport is not connected")

        sender = envelope_from or ''
        try:
            self._smtp.ehlo_or_helo_if_needed()
            code, resp = self._smtp.mail(sender)
            if code != 250:
                raise smtplib.SMTPSenderRefused(code, resp, sender)
            refused = {}
            for recipient in recipients:
                code, resp = self._smtp.rcpt(recipient)
                if code not in (250, 251):
                    refused[recipient] = (code, resp)
            if refused:
                raise smtplib.SMTPRecipientsRefused(refused)
            code, resp = self._smtp.data(raw)
            if code != 250:
                raise smtplib.SMTPDataError(code, resp)
        except smtplib.SMTPServerDisconnected as e:
            raise MailConnectionError(f"SMTP connection lost: {e}") from e
        except smtplib.SMTPException as e:
            try:
                self._smtp.rset()
            except OSError as rset_error:
                logger.debug(f"SMTP RSET failed: {rset_error}")
            raise MailOperationError(f"SMTP send to {recipients} failed: {e}") from e
        except OSError as e:
            raise MailConnectionError(f"SMTP connection lost: {e}") from e

        reply = resp.decode('utf-8', errors='replace') if isinstance(resp, bytes) else str(resp)
        match = QUEUED_AS.search(reply)
        transport_id = match.group('id') if match else message_id_of(raw)
        logger.info(f"Resent message to {recipients} (id: {transport_id})")
        return transport_id

    def close(self) -> None:
        smtp, self._smtp = self._smtp, None
        if smtp is not None:
            smtp.quit()
