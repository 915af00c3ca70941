from __future__ import annotations
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
import uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import String, Text, DateTime, Date, Numeric, ForeignKey
from repairdesk.models.authz import Base
from repairdesk.utils.clock import utcnow


def _uuid() -> str:
    return str(uuid.uuid4())


class Ticket(Base):
    __tablename__ = 'tickets'
    # Status constants (stored values; display labels live in i18n)
    STATUS_INTAKE = 'intake'
    STATUS_ASSIGNMENT = 'assignment'
    STATUS_IN_PROGRESS = 'in-progress'
    STATUS_PARTS_ORDERED = 'parts-ordered'
    STATUS_READY_FOR_PICKUP = 'ready-for-pickup'
    STATUS_CLOSED = 'closed'
    STATUS_QUOTE_SENT = 'quote-sent'
    STATUS_QUOTE_ACCEPTED = 'quote-accepted'
    STATUS_REJECTED = 'rejected'
    ALL_STATUSES = (
        STATUS_INTAKE, STATUS_ASSIGNMENT, STATUS_IN_PROGRESS, STATUS_PARTS_ORDERED,
        STATUS_READY_FOR_PICKUP, STATUS_CLOSED, STATUS_QUOTE_SENT, STATUS_QUOTE_ACCEPTED,
        STATUS_REJECTED,
    )
    PRIORITY_LOW = 'low'
    PRIORITY_MEDIUM = 'medium'
    PRIORITY_HIGH = 'high'
    ALL_PRIORITIES = (PRIORITY_LOW, PRIORITY_MEDIUM, PRIORITY_HIGH)
    REQUIRED_FIELDS = ('customer_name', 'customer_email', 'device_type', 'description')
    IMMUTABLE_FIELDS = ('id', 'ticket_number', 'created_at', 'user_id')

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    ticket_number: Mapped[str] = mapped_column(String(20), unique=True, nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default=STATUS_INTAKE, index=True)
    priority: Mapped[str] = mapped_column(String(8), nullable=False, default=PRIORITY_LOW)
    customer_name: Mapped[str] = mapped_column(String(200), nullable=False)
    customer_email: Mapped[str] = mapped_column(String(200), nullable=False)
    customer_phone: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    device_type: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text(), nullable=False)
    price: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    purchase_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    order_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    password: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    assigned_to: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    assigned_to_email: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    attachments: Mapped[List['TicketAttachment']] = relationship(
        back_populates='ticket', order_by='TicketAttachment.uploaded_at', passive_deletes=True
    )


class TicketAttachment(Base):
    __tablename__ = 'ticket_attachments'
    TYPE_IMAGE = 'image'
    TYPE_VIDEO = 'video'
    ALL_TYPES = (TYPE_IMAGE, TYPE_VIDEO)
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    ticket_id: Mapped[str] = mapped_column(ForeignKey('tickets.id', ondelete='CASCADE'), nullable=False, index=True)
    file_url: Mapped[str] = mapped_column(Text(), nullable=False)
    file_type: Mapped[str] = mapped_column(String(8), nullable=False)
    storage_key: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    uploaded_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    ticket: Mapped[Ticket] = relationship(back_populates='attachments')

# No transition graph: any status may follow any other. Membership in
# ALL_STATUSES is the only check applied on write.
