"""Test seeding utilities to reduce duplication.

These helpers centralize creation of staff users, settings and tickets so
individual tests stay focused on the behaviour under test.
"""
from datetime import datetime
from typing import Dict, List, Optional
from flask_jwt_extended import create_access_token
from repairdesk import get_db
from repairdesk.constants.permissions import permissions_for_role
from repairdesk.models.authz import User
from repairdesk.models.ticket import Ticket
from repairdesk.services.settings_store import SettingsStore
from repairdesk.services.ticket_repository import TicketRepository


def ensure_user(email: str, role: str = User.ROLE_STAFF, name: Optional[str] = None, password: str = 'pw') -> User:
    session = get_db()
    u = session.query(User).filter_by(email=email).one_or_none()
    if not u:
        u = User(name=name or email.split('@')[0], email=email, role=role, password_hash='')
        u.set_password(password)
        session.add(u); session.commit(); session.refresh(u)
    return u


def jwt_headers(identity: str, perms: List[str], **claims):
    token = create_access_token(identity=str(identity), additional_claims={'perms': perms, **claims})
    return {'Authorization': f'Bearer {token}'}


def staff_headers(identity: str = '1'):
    return jwt_headers(identity, permissions_for_role('Staff'), roles=['Staff'])


def admin_headers(identity: str = '1'):
    return jwt_headers(identity, permissions_for_role('Admin'), roles=['Admin'])


def configure_settings(**values: str):
    """Write raw setting rows, e.g. configure_settings(email_admin_address='a@b.it', email_new_ticket='true')."""
    SettingsStore(get_db()).set_many(values)


def enable_all_notifications(admin: str = 'admin@shop.it', days: str = '7'):
    configure_settings(
        email_admin_address=admin,
        email_new_ticket='true',
        email_status_change='true',
        email_admin_old_tickets='true',
        email_admin_old_tickets_days=days,
    )


def make_draft(**overrides) -> Dict[str, object]:
    draft = {
        'customer_name': 'Mario Rossi',
        'customer_email': 'mario@example.com',
        'customer_phone': '+39 333 1234567',
        'device_type': 'iPhone 12',
        'description': 'Schermo rotto',
    }
    draft.update(overrides)
    return draft


def seed_ticket(created_at: Optional[datetime] = None, status: str = Ticket.STATUS_INTAKE, **overrides) -> Ticket:
    repo = TicketRepository(get_db())
    draft = make_draft(status=status, user_id=overrides.pop('user_id', 'seed-user'), **overrides)
    ticket_id = repo.create(draft, now=created_at)
    return repo.get_by_id(ticket_id)
