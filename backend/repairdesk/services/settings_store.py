"""Key/value settings persisted in the `settings` table plus a typed view over them.

Rows are plain strings. `AppSettings` is the only place that parses them:
booleans are true only for the literal ``"true"`` and the old-ticket threshold
falls back to 7 days when absent or not a positive integer.
"""
from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Mapping, Optional
import logging
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.dialects import postgresql, sqlite
from repairdesk import get_db
from repairdesk.errors import StoreError
from repairdesk.models.setting import Setting
from repairdesk.utils.clock import utcnow

logger = logging.getLogger(__name__)

DEFAULT_OLD_TICKETS_DAYS = 7


class SettingKey(str, Enum):
    ADMIN_EMAIL = 'email_admin_address'
    NOTIFY_NEW_TICKET = 'email_new_ticket'
    NOTIFY_STATUS_CHANGE = 'email_status_change'
    NOTIFY_OLD_TICKETS = 'email_admin_old_tickets'
    OLD_TICKETS_DAYS = 'email_admin_old_tickets_days'
    LOGO_URL = 'logo_url'
    TERMS_TEXT = 'terms_and_conditions'

    @classmethod
    def values(cls):
        return [k.value for k in cls]


_UPSERT_DIALECTS = {
    'sqlite': sqlite.insert,
    'postgresql': postgresql.insert,
}


class SettingsStore:
    def __init__(self, session=None):
        self.session = session or get_db()

    def get(self, key: str) -> Optional[str]:
        key = _key(key)
        try:
            row = self.session.execute(select(Setting.value).where(Setting.key == key)).first()
        except SQLAlchemyError as e:
            logger.error('Error getting setting %s: %s', key, e)
            raise StoreError(message_key='errors.setting_get', key=key) from e
        return row[0] if row else None

    def get_many(self, keys: Iterable[str]) -> Dict[str, Optional[str]]:
        wanted = [_key(k) for k in keys]
        try:
            rows = self.session.execute(select(Setting.key, Setting.value).where(Setting.key.in_(wanted))).all()
        except SQLAlchemyError as e:
            logger.error('Error getting settings %s: %s', wanted, e)
            raise StoreError(message_key='errors.setting_get', key=','.join(wanted)) from e
        found = {k: v for k, v in rows}
        return {k: found.get(k) for k in wanted}

    def set(self, key: str, value: str) -> bool:
        """Insert or update `key` in one statement and commit."""
        key = _key(key)
        try:
            self._upsert(key, '' if value is None else str(value))
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error('Error setting %s: %s', key, e)
            raise StoreError(message_key='errors.setting_save', key=key) from e
        return True

    def set_many(self, values: Mapping[str, str]) -> bool:
        try:
            for key, value in values.items():
                self._upsert(_key(key), '' if value is None else str(value))
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error('Error saving settings %s: %s', list(values), e)
            raise StoreError(message_key='errors.setting_save', key=','.join(values)) from e
        return True

    def _upsert(self, key: str, value: str):
        now = utcnow()
        dialect = self.session.get_bind().dialect.name
        insert_fn = _UPSERT_DIALECTS.get(dialect)
        if insert_fn is not None:
            stmt = insert_fn(Setting).values(key=key, value=value, updated_at=now)
            stmt = stmt.on_conflict_do_update(
                index_elements=[Setting.key],
                set_={'value': stmt.excluded['value'], 'updated_at': stmt.excluded['updated_at']},
            )
            self.session.execute(stmt)
            return
        # Other dialects: the unique constraint on key arbitrates concurrent inserts.
        try:
            with self.session.begin_nested():
                self.session.add(Setting(key=key, value=value, updated_at=now))
        except IntegrityError:
            self.session.execute(update(Setting).where(Setting.key == key).values(value=value, updated_at=now))


def _key(key) -> str:
    return key.value if isinstance(key, SettingKey) else str(key)


def _parse_flag(raw: Optional[str]) -> bool:
    return raw == 'true'


def _parse_days(raw: Optional[str]) -> int:
    try:
        days = int(str(raw).strip())
    except (TypeError, ValueError):
        return DEFAULT_OLD_TICKETS_DAYS
    return days if days > 0 else DEFAULT_OLD_TICKETS_DAYS


@dataclass
class AppSettings:
    admin_email: Optional[str] = None
    notify_new_ticket: bool = False
    notify_status_change: bool = False
    notify_old_tickets: bool = False
    old_tickets_days: int = DEFAULT_OLD_TICKETS_DAYS
    logo_url: Optional[str] = None
    terms_text: Optional[str] = None

    @classmethod
    def from_values(cls, values: Mapping[str, Optional[str]]) -> 'AppSettings':
        admin = (values.get(SettingKey.ADMIN_EMAIL.value) or '').strip()
        return cls(
            admin_email=admin or None,
            notify_new_ticket=_parse_flag(values.get(SettingKey.NOTIFY_NEW_TICKET.value)),
            notify_status_change=_parse_flag(values.get(SettingKey.NOTIFY_STATUS_CHANGE.value)),
            notify_old_tickets=_parse_flag(values.get(SettingKey.NOTIFY_OLD_TICKETS.value)),
            old_tickets_days=_parse_days(values.get(SettingKey.OLD_TICKETS_DAYS.value)),
            logo_url=values.get(SettingKey.LOGO_URL.value) or None,
            terms_text=values.get(SettingKey.TERMS_TEXT.value) or None,
        )

    @classmethod
    def load(cls, store: SettingsStore) -> 'AppSettings':
        return cls.from_values(store.get_many(SettingKey.values()))

    def to_values(self) -> Dict[str, str]:
        return {
            SettingKey.ADMIN_EMAIL.value: self.admin_email or '',
            SettingKey.NOTIFY_NEW_TICKET.value: 'true' if self.notify_new_ticket else 'false',
            SettingKey.NOTIFY_STATUS_CHANGE.value: 'true' if self.notify_status_change else 'false',
            SettingKey.NOTIFY_OLD_TICKETS.value: 'true' if self.notify_old_tickets else 'false',
            SettingKey.OLD_TICKETS_DAYS.value: str(self.old_tickets_days),
            SettingKey.LOGO_URL.value: self.logo_url or '',
            SettingKey.TERMS_TEXT.value: self.terms_text or '',
        }

    def to_json(self):
        return {
            'admin_email': self.admin_email,
            'notify_new_ticket': self.notify_new_ticket,
            'notify_status_change': self.notify_status_change,
            'notify_old_tickets': self.notify_old_tickets,
            'old_tickets_days': self.old_tickets_days,
            'logo_url': self.logo_url,
            'terms_text': self.terms_text,
        }

__all__ = ['SettingsStore', 'SettingKey', 'AppSettings', 'DEFAULT_OLD_TICKETS_DAYS']
