"""Persistence for tickets and their attachments.

Ticket numbers have the form ``FM-YYYY-MM-NNNN`` with a sequence that restarts
every calendar month. `generate_ticket_number` only reads the latest number in
the bucket, so two writers can compute the same value; `create` relies on the
unique constraint on ``tickets.ticket_number`` and retries with a fresh number
when its insert loses that race.
"""
from __future__ import annotations
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping, Optional
import logging
import re
from sqlalchemy import select, delete, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from repairdesk import get_db
from repairdesk.errors import NotFound, StoreError, ValidationError
from repairdesk.models.ticket import Ticket, TicketAttachment
from repairdesk.utils.clock import utcnow, to_naive_utc
from repairdesk.utils.validation import validate_status

logger = logging.getLogger(__name__)

TICKET_PREFIX = 'FM'
MAX_NUMBER_ATTEMPTS = 5
_NUMBER_RE = re.compile(r'^FM-\d{4}-\d{2}-(\d+)$')

# Columns a caller may set through create/update. Everything else is owned by the repository.
WRITABLE_FIELDS = (
    'status', 'priority', 'customer_name', 'customer_email', 'customer_phone', 'device_type',
    'description', 'price', 'purchase_date', 'order_id', 'password', 'assigned_to', 'assigned_to_email',
)


def bucket_prefix(now: datetime) -> str:
    return f"{TICKET_PREFIX}-{now.year:04d}-{now.month:02d}-"


def format_ticket_number(now: datetime, sequence: int) -> str:
    return f"{bucket_prefix(now)}{sequence:04d}"


def parse_sequence(ticket_number: Optional[str]) -> Optional[int]:
    if not ticket_number:
        return None
    m = _NUMBER_RE.match(ticket_number)
    return int(m.group(1)) if m else None


class TicketRepository:
    def __init__(self, session=None):
        self.session = session or get_db()

    # ---------- numbering ---------- #

    def generate_ticket_number(self, now: Optional[datetime] = None) -> str:
        now = now or utcnow()
        prefix = bucket_prefix(now)
        try:
            latest = self.session.execute(
                select(Ticket.ticket_number)
                .where(Ticket.ticket_number.like(f'{prefix}%'))
                .order_by(Ticket.ticket_number.desc())
                .limit(1)
            ).scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error('Error reading latest ticket number for %s: %s', prefix, e)
            raise StoreError(message_key='errors.ticket_number') from e
        parsed = parse_sequence(latest)
        sequence = parsed + 1 if parsed is not None else 1
        return format_ticket_number(now, sequence)

    # ---------- CRUD ---------- #

    def create(self, draft: Mapping[str, Any], now: Optional[datetime] = None) -> str:
        """Validate `draft`, assign a ticket number when absent, insert and commit. Returns the new id."""
        fields = self._clean_draft(draft)
        explicit_number = draft.get('ticket_number')
        now = to_naive_utc(now) if now else utcnow()
        for attempt in range(1, MAX_NUMBER_ATTEMPTS + 1):
            number = explicit_number or self.generate_ticket_number(now)
            ticket = Ticket(ticket_number=number, created_at=now, updated_at=now, **fields)
            self.session.add(ticket)
            try:
                self.session.commit()
            except IntegrityError as e:
                self.session.rollback()
                if explicit_number:
                    logger.error('Ticket number %s already exists', number)
                    raise ValidationError(message_key='errors.invalid_field', field='ticket_number') from e
                logger.warning('Ticket number %s taken by a concurrent insert (attempt %d/%d)', number, attempt, MAX_NUMBER_ATTEMPTS)
                continue
            except SQLAlchemyError as e:
                self.session.rollback()
                logger.error('Error creating ticket: %s', e)
                raise StoreError(message_key='errors.ticket_create') from e
            logger.info('Created ticket %s (%s)', ticket.ticket_number, ticket.id)
            return ticket.id
        raise StoreError(message_key='errors.ticket_number')

    def get_by_id(self, ticket_id: str) -> Optional[Ticket]:
        try:
            return self.session.execute(select(Ticket).where(Ticket.id == ticket_id)).scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error('Error getting ticket %s: %s', ticket_id, e)
            raise StoreError(message_key='errors.generic') from e

    def update(self, ticket_id: str, changes: Mapping[str, Any]) -> Ticket:
        ticket = self.get_by_id(ticket_id)
        if ticket is None:
            raise NotFound(message_key='errors.ticket_not_found')
        for key, value in self._clean_changes(changes).items():
            setattr(ticket, key, value)
        ticket.updated_at = utcnow()
        try:
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error('Error updating ticket %s: %s', ticket_id, e)
            raise StoreError(message_key='errors.ticket_update') from e
        return ticket

    def delete(self, ticket_id: str) -> List[str]:
        """Delete a ticket and its attachment rows. Returns the storage keys of the removed attachments.

        Raises NotFound when the ticket does not exist.
        """
        ticket = self.get_by_id(ticket_id)
        if ticket is None:
            raise NotFound(message_key='errors.ticket_not_found')
        keys = [a.storage_key for a in self.list_attachments(ticket_id) if a.storage_key]
        try:
            self.session.execute(delete(TicketAttachment).where(TicketAttachment.ticket_id == ticket_id))
            self.session.expire(ticket, ['attachments'])
            self.session.delete(ticket)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error('Error deleting ticket %s: %s', ticket_id, e)
            raise StoreError(message_key='errors.ticket_delete') from e
        logger.info('Deleted ticket %s with %d attachment(s)', ticket.ticket_number, len(keys))
        return keys

    # ---------- attachments ---------- #

    def add_attachment(self, ticket_id: str, file_url: str, file_type: str, storage_key: Optional[str] = None) -> TicketAttachment:
        if file_type not in TicketAttachment.ALL_TYPES:
            raise ValidationError(message_key='errors.invalid_field', field='file_type')
        att = TicketAttachment(ticket_id=ticket_id, file_url=file_url, file_type=file_type, storage_key=storage_key, uploaded_at=utcnow())
        self.session.add(att)
        try:
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error('Error recording attachment for ticket %s: %s', ticket_id, e)
            raise StoreError(message_key='errors.ticket_update') from e
        return att

    def list_attachments(self, ticket_id: str) -> List[TicketAttachment]:
        return list(self.session.execute(
            select(TicketAttachment)
            .where(TicketAttachment.ticket_id == ticket_id)
            .order_by(TicketAttachment.uploaded_at.asc(), TicketAttachment.id.asc())
        ).scalars())

    # ---------- queries ---------- #

    def list_open_older_than(self, cutoff: datetime) -> List[Ticket]:
        """Tickets created before `cutoff` whose status is not closed, oldest first."""
        try:
            return list(self.session.execute(
                select(Ticket)
                .where(Ticket.created_at < to_naive_utc(cutoff))
                .where(Ticket.status != Ticket.STATUS_CLOSED)
                .order_by(Ticket.created_at.asc())
            ).scalars())
        except SQLAlchemyError as e:
            logger.error('Error fetching old tickets: %s', e)
            raise StoreError(message_key='errors.generic') from e

    def query(self, status: Optional[str] = None, priority: Optional[str] = None, search: Optional[str] = None):
        """Base query for the staff list view."""
        q = self.session.query(Ticket)
        if status:
            q = q.filter(Ticket.status == status)
        if priority:
            q = q.filter(Ticket.priority == priority)
        if search:
            like = f"%{search.strip()}%"
            q = q.filter(or_(
                Ticket.ticket_number.ilike(like),
                Ticket.customer_name.ilike(like),
                Ticket.customer_email.ilike(like),
                Ticket.device_type.ilike(like),
            ))
        return q

    # ---------- validation ---------- #

    def _clean_draft(self, draft: Mapping[str, Any]) -> Dict[str, Any]:
        for name in Ticket.REQUIRED_FIELDS:
            value = draft.get(name)
            if value is None or (isinstance(value, str) and not value.strip()):
                raise ValidationError(message_key='errors.required_field', field=name)
        user_id = draft.get('user_id')
        if not user_id:
            raise ValidationError(message_key='errors.required_field', field='user_id')
        fields = self._clean_changes({k: v for k, v in draft.items() if k in WRITABLE_FIELDS})
        fields.setdefault('status', Ticket.STATUS_INTAKE)
        fields.setdefault('priority', Ticket.PRIORITY_LOW)
        fields['user_id'] = str(user_id)
        return fields

    def _clean_changes(self, changes: Mapping[str, Any]) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for key, value in changes.items():
            if key in Ticket.IMMUTABLE_FIELDS:
                continue
            if key not in WRITABLE_FIELDS:
                raise ValidationError(message_key='errors.invalid_field', field=key)
            if key == 'status':
                value = validate_status(value, Ticket.ALL_STATUSES)
            elif key == 'priority':
                value = validate_status(value, Ticket.ALL_PRIORITIES, field_name='priority')
            elif key in Ticket.REQUIRED_FIELDS:
                if value is None or not str(value).strip():
                    raise ValidationError(message_key='errors.required_field', field=key)
                value = str(value).strip()
            elif key == 'price':
                value = _coerce_price(value)
            elif key == 'purchase_date':
                value = _coerce_date(value)
            elif key == 'password':
                # Device unlock code, kept exactly as typed
                value = None if value is None or value == '' else str(value)
            elif isinstance(value, str):
                value = value.strip() or None
            out[key] = value
        return out


def _coerce_price(value) -> Optional[Decimal]:
    if value is None or value == '':
        return None
    try:
        return Decimal(str(value)).quantize(Decimal('0.01'))
    except (InvalidOperation, ValueError) as e:
        raise ValidationError(message_key='errors.invalid_field', field='price') from e


def _coerce_date(value) -> Optional[date]:
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError as e:
        raise ValidationError(message_key='errors.invalid_field', field='purchase_date') from e

__all__ = [
    'TicketRepository', 'bucket_prefix', 'format_ticket_number',
    'parse_sequence', 'MAX_NUMBER_ATTEMPTS', 'WRITABLE_FIELDS',
]
