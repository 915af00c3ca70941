"""Email notifications for the ticket lifecycle.

Every public method returns ``True`` when at least one message was handed to
the gateway successfully and ``False`` otherwise. A disabled toggle or a
missing admin address short-circuits before the gateway is touched. Nothing
raised inside a notification reaches the caller: ticket creation and status
updates must succeed whether or not mail goes out.
"""
from __future__ import annotations
from datetime import timedelta
from functools import partial
from typing import Optional
import logging
from jinja2 import Environment, PackageLoader, select_autoescape
from repairdesk.i18n import translate, status_label
from repairdesk.models.ticket import Ticket
from repairdesk.services.mail import MailGateway
from repairdesk.services.settings_store import AppSettings, SettingsStore
from repairdesk.utils.clock import utcnow

logger = logging.getLogger(__name__)

_templates = Environment(
    loader=PackageLoader('repairdesk', 'templates'),
    autoescape=select_autoescape(['html']),
)


class NotificationService:
    def __init__(self, settings: SettingsStore, gateway: MailGateway, base_url: str = '', locale: str = 'it'):
        self.settings = settings
        self.gateway = gateway
        self.base_url = (base_url or '').rstrip('/')
        self.locale = locale

    # ---------- helpers ---------- #

    def staff_link(self, ticket: Ticket) -> str:
        return f"{self.base_url}/tickets/{ticket.id}"

    def public_link(self, ticket: Ticket) -> str:
        return f"{self.base_url}/public/tickets/{ticket.id}"

    def _t(self, key: str, **params) -> str:
        return translate(key, self.locale, **params)

    def render(self, template: str, subject: str, **context) -> str:
        return _templates.get_template(template).render(
            subject=subject,
            locale=self.locale,
            t=partial(translate, locale=self.locale),
            status_label=partial(status_label, locale=self.locale),
            **context,
        )

    def _load(self) -> AppSettings:
        return AppSettings.load(self.settings)

    # ---------- notifications ---------- #

    def send_new_ticket_notification(self, ticket: Ticket) -> bool:
        try:
            cfg = self._load()
            if not cfg.notify_new_ticket:
                logger.info('New ticket notifications are disabled')
                return False
            if not cfg.admin_email:
                logger.info('Admin email not configured')
                return False
            subject = self._t('email.new_ticket.subject', number=ticket.ticket_number)
            body = self.render('email/new_ticket.html', subject, ticket=ticket, link=self.staff_link(ticket))
            return self.gateway.send(cfg.admin_email, subject, body)
        except Exception:
            logger.exception('Failed to send new ticket notification for %s', getattr(ticket, 'ticket_number', '?'))
            return False

    def send_status_change_notification(self, ticket: Ticket, old_status: str) -> bool:
        try:
            cfg = self._load()
            if not cfg.notify_status_change:
                logger.info('Status change notifications are disabled')
                return False
            if not cfg.admin_email:
                logger.info('Admin email not configured')
                return False
            subject = self._t('email.status_change.subject', number=ticket.ticket_number)
            body = self.render('email/status_change_admin.html', subject, ticket=ticket, old_status=old_status,
                               link=self.staff_link(ticket))
            admin_sent = self._safe_send(cfg.admin_email, subject, body)

            customer_subject = self._t('email.customer_status.subject', number=ticket.ticket_number)
            customer_body = self.render('email/status_change_customer.html', customer_subject, ticket=ticket,
                                        link=self.public_link(ticket))
            customer_sent = self._safe_send(ticket.customer_email, customer_subject, customer_body)
            return admin_sent or customer_sent
        except Exception:
            logger.exception('Failed to send status change notification for %s', getattr(ticket, 'ticket_number', '?'))
            return False

    def send_old_tickets_notification(self, repository, now=None) -> bool:
        """Digest of tickets still open after the configured number of days."""
        try:
            cfg = self._load()
            if not cfg.notify_old_tickets:
                logger.info('Old tickets notifications are disabled')
                return False
            if not cfg.admin_email:
                logger.info('Admin email not configured')
                return False
            days = cfg.old_tickets_days
            cutoff = (now or utcnow()) - timedelta(days=days)
            tickets = repository.list_open_older_than(cutoff)
            if not tickets:
                logger.info('No old tickets found')
                return False
            subject = self._t('email.old_tickets.subject', count=len(tickets), days=days)
            rows = [{'ticket': t, 'link': self.staff_link(t)} for t in tickets]
            body = self.render('email/old_tickets.html', subject, rows=rows, days=days)
            return self.gateway.send(cfg.admin_email, subject, body)
        except Exception:
            logger.exception('Failed to send old tickets notification')
            return False

    def send_test_email(self, to: Optional[str] = None) -> bool:
        try:
            recipient = to or self._load().admin_email
            if not recipient:
                logger.info('Admin email not configured')
                return False
            subject = self._t('email.test.subject')
            return self.gateway.send(recipient, subject, self.render('email/test.html', subject))
        except Exception:
            logger.exception('Failed to send test email')
            return False

    def _safe_send(self, to: str, subject: str, body: str) -> bool:
        # Admin and customer messages are independent; one failing must not skip the other.
        try:
            return bool(self.gateway.send(to, subject, body))
        except Exception:
            logger.exception('Mail gateway raised while sending to %s', to)
            return False

__all__ = ['NotificationService']
