"""Outbound mail gateway.

The gateway contract is a single call, ``send(to, subject, html_body) -> bool``.
Delivery problems never escape it: they are logged and reported as ``False``.
"""
from __future__ import annotations
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any, Mapping, Optional
import logging
import smtplib
from repairdesk.errors import GatewayError

logger = logging.getLogger(__name__)


class MailGateway:
    def send(self, to: str, subject: str, html_body: str) -> bool:  # pragma: no cover - interface
        raise NotImplementedError


class SmtpMailGateway(MailGateway):
    def __init__(self, host: str, port: int = 587, username: Optional[str] = None, password: Optional[str] = None,
                 use_tls: bool = True, sender: str = 'noreply@localhost', timeout: int = 30):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.sender = sender
        self.timeout = timeout

    def _build_message(self, to: str, subject: str, html_body: str) -> MIMEMultipart:
        msg = MIMEMultipart('alternative')
        msg['From'] = self.sender
        msg['To'] = to
        msg['Subject'] = subject
        msg.attach(MIMEText(html_body, 'html', 'utf-8'))
        return msg

    def _deliver(self, msg: MIMEMultipart):
        try:
            if self.port == 465 and not self.use_tls:
                server = smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout)
            else:
                server = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
                if self.use_tls:
                    server.starttls()
            try:
                if self.username and self.password:
                    server.login(self.username, self.password)
                server.send_message(msg)
            finally:
                server.quit()
        except (smtplib.SMTPException, OSError) as e:
            raise GatewayError(str(e), message_key='errors.gateway') from e

    def send(self, to: str, subject: str, html_body: str) -> bool:
        if not to:
            logger.warning('Mail not sent: empty recipient (subject=%r)', subject)
            return False
        try:
            self._deliver(self._build_message(to, subject, html_body))
        except GatewayError as e:
            logger.error('Error sending email to %s: %s', to, e)
            return False
        logger.info('Email sent to %s: %s', to, subject)
        return True


class NullMailGateway(MailGateway):
    """Used when no SMTP host is configured: every send is logged and reported as not delivered."""

    def send(self, to: str, subject: str, html_body: str) -> bool:
        logger.warning('SMTP not configured; dropping email to %s: %s', to, subject)
        return False


def build_mail_gateway(config: Mapping[str, Any]) -> MailGateway:
    host = config.get('SMTP_HOST')
    if not host:
        return NullMailGateway()
    return SmtpMailGateway(
        host=host,
        port=int(config.get('SMTP_PORT') or 587),
        username=config.get('SMTP_USERNAME') or None,
        password=config.get('SMTP_PASSWORD') or None,
        use_tls=bool(config.get('SMTP_USE_TLS', True)),
        sender=config.get('MAIL_SENDER') or 'noreply@localhost',
        timeout=int(config.get('SMTP_TIMEOUT') or 30),
    )

__all__ = ['MailGateway', 'SmtpMailGateway', 'NullMailGateway', 'build_mail_gateway']
