"""Customer-facing endpoints used by the public intake form.

Submitting requires a JWT identity (an anonymous session from `/auth/anonymous`
is enough); the identity is stored as the ticket's owner. Public submissions
always enter the system as low priority at the intake status.
"""
from __future__ import annotations
from flask import Blueprint, request
from repairdesk import get_db
from repairdesk.decorators.audit import audit_log
from repairdesk.errors import NotFound
from repairdesk.i18n import request_locale, status_label
from repairdesk.models.ticket import Ticket
from repairdesk.services.lifecycle import get_lifecycle
from repairdesk.services.policy import current_identity
from repairdesk.services.settings_store import AppSettings, SettingsStore
from repairdesk.services.storage import ALLOWED_CONTENT_TYPES, MAX_UPLOAD_BYTES, UploadedFile
from repairdesk.services.ticket_repository import TicketRepository

public_bp = Blueprint('public', __name__)

PUBLIC_FIELDS = (
    'customer_name', 'customer_email', 'customer_phone', 'device_type', 'description',
    'purchase_date', 'order_id', 'password',
)


@public_bp.get('/config')
def public_config():
    settings = AppSettings.load(SettingsStore(get_db()))
    return {
        'logo_url': settings.logo_url,
        'max_upload_bytes': MAX_UPLOAD_BYTES,
        'accepted_types': sorted(ALLOWED_CONTENT_TYPES),
    }


@public_bp.post('/tickets')
@audit_log('TICKET.CREATE', entity='Ticket', entity_id_key='id', meta_keys=['ticket_number', 'upload_error'])
def submit_ticket():
    if request.mimetype == 'multipart/form-data':
        data = request.form.to_dict()
        files = [
            UploadedFile(filename=f.filename or '', content_type=f.mimetype or '', data=f.read())
            for f in request.files.getlist('files')
            if f and f.filename
        ]
    else:
        data = request.get_json(silent=True) or {}
        files = []
    draft = {k: data.get(k) for k in PUBLIC_FIELDS if k in data}
    draft['priority'] = Ticket.PRIORITY_LOW
    draft['status'] = Ticket.STATUS_INTAKE
    result = get_lifecycle().create_ticket_detailed(draft, current_identity(), files)
    return {
        'id': result.ticket_id,
        'ticket_number': result.ticket_number,
        'attachments': [{'id': a.id, 'file_url': a.file_url, 'file_type': a.file_type} for a in result.attachments],
        'upload_error': result.upload_error,
    }, 201


@public_bp.get('/tickets/<ticket_id>')
def ticket_summary(ticket_id: str):
    ticket = TicketRepository(get_db()).get_by_id(ticket_id)
    if ticket is None:
        raise NotFound(message_key='errors.ticket_not_found')
    locale = request_locale()
    return {
        'id': ticket.id,
        'ticket_number': ticket.ticket_number,
        'status': ticket.status,
        'status_label': status_label(ticket.status, locale),
        'device_type': ticket.device_type,
        'created_at': ticket.created_at.isoformat(),
        'updated_at': ticket.updated_at.isoformat() if ticket.updated_at else None,
    }
