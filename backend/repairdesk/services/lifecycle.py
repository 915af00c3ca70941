"""Ticket lifecycle orchestration: creation with attachments, status changes, digests.

The primary write (insert, update, delete) either succeeds or raises. Uploads,
attachment bookkeeping and notifications run afterwards as best-effort steps:
their failures are logged and reported in the result, never raised.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Mapping, Optional, Tuple
import logging
from flask import current_app
from repairdesk import get_db
from repairdesk.errors import AuthRequired, GatewayError, NotFound, RepairDeskError
from repairdesk.models.ticket import Ticket, TicketAttachment
from repairdesk.services.notifications import NotificationService
from repairdesk.services.settings_store import SettingsStore
from repairdesk.services.storage import ObjectStorage, UploadedFile, build_storage_key, detect_file_kind, validate_upload
from repairdesk.services.ticket_repository import TicketRepository
from repairdesk.utils.validation import validate_status

logger = logging.getLogger(__name__)


@dataclass
class CreateResult:
    ticket_id: str
    ticket_number: str
    attachments: List[TicketAttachment] = field(default_factory=list)
    upload_error: Optional[str] = None
    notified: bool = False


class TicketLifecycleService:
    def __init__(self, repository: TicketRepository, notifications: NotificationService, storage: ObjectStorage,
                 sniff_content: bool = False):
        self.repository = repository
        self.notifications = notifications
        self.storage = storage
        self.sniff_content = sniff_content

    # ---------- creation ---------- #

    def create_ticket(self, draft: Mapping[str, Any], user_id: Optional[str], files: Iterable[UploadedFile] = ()) -> str:
        return self.create_ticket_detailed(draft, user_id, files).ticket_id

    def create_ticket_detailed(self, draft: Mapping[str, Any], user_id: Optional[str],
                               files: Iterable[UploadedFile] = ()) -> CreateResult:
        if not user_id:
            raise AuthRequired()
        # Every file is checked (policy and, when enabled, content) before the ticket exists
        checked = [(validate_upload(f), detect_file_kind(f, sniff=self.sniff_content)) for f in files]
        data = dict(draft)
        data['user_id'] = str(user_id)
        ticket_id = self.repository.create(data)
        ticket = self.repository.get_by_id(ticket_id)
        result = CreateResult(ticket_id=ticket_id, ticket_number=ticket.ticket_number)
        if checked:
            result.attachments, result.upload_error = self.upload_attachments(ticket, checked)
        result.notified = self.notifications.send_new_ticket_notification(ticket)
        return result

    def upload_attachments(self, ticket: Ticket, files: List[Tuple[UploadedFile, str]]):
        """Upload (file, kind) pairs one at a time, stopping at the first failure. Returns (attachments, error)."""
        stored: List[TicketAttachment] = []
        for f, kind in files:
            try:
                key = build_storage_key(ticket.id, f.filename)
                url = self.storage.upload(key, f.data, f.content_type)
                stored.append(self.repository.add_attachment(ticket.id, url, kind, storage_key=key))
            except RepairDeskError as e:
                logger.error('Error uploading %s for ticket %s: %s', f.filename, ticket.ticket_number, e)
                return stored, f.filename
            except Exception:
                logger.exception('Unexpected error uploading %s for ticket %s', f.filename, ticket.ticket_number)
                return stored, f.filename
        return stored, None

    # ---------- updates ---------- #

    def update_ticket(self, ticket_id: str, changes: Mapping[str, Any]) -> Ticket:
        current = self.repository.get_by_id(ticket_id)
        if current is None:
            raise NotFound(message_key='errors.ticket_not_found')
        old_status = current.status
        ticket = self.repository.update(ticket_id, changes)
        if ticket.status != old_status:
            self.notifications.send_status_change_notification(ticket, old_status)
        return ticket

    def update_ticket_status(self, ticket_id: str, new_status: str) -> bool:
        """Write `new_status` (any label may follow any other) and notify. Returns the notification result."""
        validate_status(new_status, Ticket.ALL_STATUSES)
        current = self.repository.get_by_id(ticket_id)
        if current is None:
            raise NotFound(message_key='errors.ticket_not_found')
        old_status = current.status
        ticket = self.repository.update(ticket_id, {'status': new_status})
        if old_status == new_status:
            return False
        return self.notifications.send_status_change_notification(ticket, old_status)

    def delete_ticket(self, ticket_id: str) -> int:
        keys = self.repository.delete(ticket_id)
        for key in keys:
            try:
                self.storage.delete(key)
            except GatewayError as e:
                logger.warning('Could not remove stored object %s: %s', key, e)
        return len(keys)

    # ---------- periodic ---------- #

    def run_old_tickets_check(self, now=None) -> bool:
        return self.notifications.send_old_tickets_notification(self.repository, now=now)


def get_lifecycle(session=None, locale: Optional[str] = None) -> TicketLifecycleService:
    """Build the service graph from the current Flask app's configuration."""
    session = session or get_db()
    app = current_app
    notifications = NotificationService(
        SettingsStore(session),
        app.extensions['repairdesk.mail'],
        base_url=app.config.get('PUBLIC_BASE_URL', ''),
        locale=locale or app.config.get('DEFAULT_LOCALE', 'it'),
    )
    return TicketLifecycleService(
        TicketRepository(session),
        notifications,
        app.extensions['repairdesk.storage'],
        sniff_content=bool(app.config.get('ATTACHMENT_SNIFF_CONTENT', False)),
    )

__all__ = ['TicketLifecycleService', 'CreateResult', 'get_lifecycle']
