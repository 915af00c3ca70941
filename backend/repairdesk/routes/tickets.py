from __future__ import annotations
from flask import Blueprint, request, render_template, make_response
from repairdesk import get_db
from repairdesk.decorators.auth import require_permissions
from repairdesk.decorators.audit import audit_log
from repairdesk.errors import NotFound, ValidationError
from repairdesk.i18n import request_locale, status_label, translate
from repairdesk.models.ticket import Ticket
from repairdesk.services.lifecycle import get_lifecycle
from repairdesk.services.settings_store import AppSettings, SettingsStore
from repairdesk.services.ticket_repository import TicketRepository
from repairdesk.utils.clock import utcnow
from repairdesk.utils.listing import apply_pagination, ticket_list_response
from repairdesk.utils.sorting import apply_multi_sort
from repairdesk.utils.validation import validate_status

tickets_bp = Blueprint('tickets', __name__)

SORTABLE = {
    'ticket_number': Ticket.ticket_number,
    'created_at': Ticket.created_at,
    'updated_at': Ticket.updated_at,
    'status': Ticket.status,
    'priority': Ticket.priority,
    'customer_name': Ticket.customer_name,
}
DIFF_KEYS = ['status', 'priority', 'assigned_to', 'assigned_to_email', 'price']


@tickets_bp.get('')
@require_permissions('TICKET.READ')
def list_tickets():
    status = request.args.get('status')
    priority = request.args.get('priority')
    if status:
        validate_status(status, Ticket.ALL_STATUSES)
    if priority:
        validate_status(priority, Ticket.ALL_PRIORITIES, field_name='priority')
    q = TicketRepository(get_db()).query(status=status, priority=priority, search=request.args.get('q'))
    q = apply_multi_sort(q, request.args.get('sort') or '-created_at', SORTABLE, Ticket.id)
    paged_q, total, limit, offset = apply_pagination(q)
    rows = paged_q.all()
    return ticket_list_response(rows, [ticket_json(t) for t in rows], total, limit, offset)


@tickets_bp.get('/<ticket_id>')
@require_permissions('TICKET.READ')
def get_ticket(ticket_id: str):
    ticket = _get_or_404(ticket_id)
    data = ticket_json(ticket)
    data['attachments'] = [attachment_json(a) for a in TicketRepository(get_db()).list_attachments(ticket_id)]
    return data


@tickets_bp.patch('/<ticket_id>')
@require_permissions('TICKET.MANAGE')
@audit_log('TICKET.UPDATE', entity='Ticket', entity_id_key='id', diff_keys=DIFF_KEYS,
           pre_fetch=lambda a, kw: _prefetch_ticket(kw.get('ticket_id')))
def update_ticket(ticket_id: str):
    changes = request.get_json(silent=True)
    if not isinstance(changes, dict) or not changes:
        raise ValidationError()
    ticket = get_lifecycle().update_ticket(ticket_id, changes)
    return ticket_json(ticket)


@tickets_bp.post('/<ticket_id>/status')
@require_permissions('TICKET.MANAGE')
@audit_log('TICKET.STATUS', entity='Ticket', entity_id_key='id', diff_keys=['status'],
           pre_fetch=lambda a, kw: _prefetch_ticket(kw.get('ticket_id')), meta_keys=['notified'])
def change_status(ticket_id: str):
    data = request.get_json(silent=True) or {}
    new_status = data.get('status')
    if not new_status:
        raise ValidationError(message_key='errors.required_field', field='status')
    notified = get_lifecycle().update_ticket_status(ticket_id, new_status)
    body = ticket_json(_get_or_404(ticket_id))
    body['notified'] = notified
    return body


@tickets_bp.delete('/<ticket_id>')
@require_permissions('TICKET.DELETE')
@audit_log('TICKET.DELETE', entity='Ticket', entity_id_arg='ticket_id', meta_keys=['deleted_attachments'])
def delete_ticket(ticket_id: str):
    removed = get_lifecycle().delete_ticket(ticket_id)
    return {'id': ticket_id, 'deleted': True, 'deleted_attachments': removed}


@tickets_bp.get('/<ticket_id>/print')
@require_permissions('TICKET.READ')
def print_ticket(ticket_id: str):
    """Printable intake receipt: shop logo, ticket details, terms and a signature block."""
    ticket = _get_or_404(ticket_id)
    settings = AppSettings.load(SettingsStore(get_db()))
    locale = request_locale()
    html = render_template(
        'print/ticket.html',
        ticket=ticket,
        settings=settings,
        locale=locale,
        printed_at=utcnow(),
        t=lambda key, **params: translate(key, locale, **params),
        status_label=lambda status: status_label(status, locale),
    )
    resp = make_response(html)
    resp.headers['Content-Type'] = 'text/html; charset=utf-8'
    return resp


@tickets_bp.post('/old-check')
@require_permissions('TICKET.MANAGE')
def old_tickets_check():
    return {'sent': get_lifecycle().run_old_tickets_check()}


def _get_or_404(ticket_id: str) -> Ticket:
    ticket = TicketRepository(get_db()).get_by_id(ticket_id)
    if ticket is None:
        raise NotFound(message_key='errors.ticket_not_found')
    return ticket


def _prefetch_ticket(ticket_id):
    if not ticket_id:
        return None
    ticket = TicketRepository(get_db()).get_by_id(ticket_id)
    return ticket_json(ticket) if ticket else None


def ticket_json(t: Ticket):
    return {
        'id': t.id,
        'ticket_number': t.ticket_number,
        'status': t.status,
        'priority': t.priority,
        'customer_name': t.customer_name,
        'customer_email': t.customer_email,
        'customer_phone': t.customer_phone,
        'device_type': t.device_type,
        'description': t.description,
        'price': float(t.price) if t.price is not None else None,
        'purchase_date': t.purchase_date.isoformat() if t.purchase_date else None,
        'order_id': t.order_id,
        'password': t.password,
        'assigned_to': t.assigned_to,
        'assigned_to_email': t.assigned_to_email,
        'user_id': t.user_id,
        'created_at': t.created_at.isoformat() if t.created_at else None,
        'updated_at': t.updated_at.isoformat() if t.updated_at else None,
    }


def attachment_json(a):
    return {
        'id': a.id,
        'file_url': a.file_url,
        'file_type': a.file_type,
        'uploaded_at': a.uploaded_at.isoformat() if a.uploaded_at else None,
    }
