from __future__ import annotations
from typing import Any, Dict
from flask import Blueprint, request
from repairdesk import get_db
from repairdesk.decorators.auth import require_permissions
from repairdesk.decorators.audit import audit_log
from repairdesk.errors import ValidationError
from repairdesk.services.lifecycle import get_lifecycle
from repairdesk.services.settings_store import AppSettings, SettingKey, SettingsStore

settings_bp = Blueprint('settings', __name__)

BOOL_FIELDS = ('notify_new_ticket', 'notify_status_change', 'notify_old_tickets')
TEXT_FIELDS = ('logo_url', 'terms_text')


@settings_bp.get('')
@require_permissions('SETTINGS.READ')
def get_settings():
    return AppSettings.load(SettingsStore(get_db())).to_json()


@settings_bp.put('')
@require_permissions('SETTINGS.MANAGE')
@audit_log('SETTINGS.UPDATE', entity='Setting',
           meta_builder=lambda data, rv, args, kwargs: {'keys': sorted((request.get_json(silent=True) or {}).keys())})
def update_settings():
    """Partial update: only the keys present in the body are validated and written."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict) or not data:
        raise ValidationError()
    store = SettingsStore(get_db())
    current = AppSettings.load(store)
    for key, value in data.items():
        setattr(current, key, _clean_value(key, value))
    values = current.to_values()
    changed = {k: v for k, v in values.items() if k in _setting_keys(data)}
    store.set_many(changed)
    return AppSettings.load(store).to_json()


@settings_bp.post('/test-email')
@require_permissions('SETTINGS.MANAGE')
def send_test_email():
    data = request.get_json(silent=True) or {}
    to = (data.get('to') or '').strip() or None
    if to and '@' not in to:
        raise ValidationError(message_key='errors.invalid_setting', field='to', key='to')
    return {'sent': get_lifecycle().notifications.send_test_email(to)}


def _clean_value(key: str, value: Any):
    if key == 'admin_email':
        text = (value or '').strip() if isinstance(value, str) or value is None else None
        if text is None or (text and '@' not in text):
            raise ValidationError(message_key='errors.invalid_setting', field=key, key=key)
        return text or None
    if key in BOOL_FIELDS:
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.lower() in ('true', 'false'):
            return value.lower() == 'true'
        raise ValidationError(message_key='errors.invalid_setting', field=key, key=key)
    if key == 'old_tickets_days':
        try:
            days = int(value)
        except (TypeError, ValueError):
            raise ValidationError(message_key='errors.invalid_setting', field=key, key=key)
        if isinstance(value, bool) or days < 1:
            raise ValidationError(message_key='errors.invalid_setting', field=key, key=key)
        return days
    if key in TEXT_FIELDS:
        if value is not None and not isinstance(value, str):
            raise ValidationError(message_key='errors.invalid_setting', field=key, key=key)
        return (value or '').strip() or None
    raise ValidationError(message_key='errors.unknown_setting', field=key, key=key)


# JSON field name -> stored setting key
_FIELD_KEYS: Dict[str, str] = {
    'admin_email': SettingKey.ADMIN_EMAIL.value,
    'notify_new_ticket': SettingKey.NOTIFY_NEW_TICKET.value,
    'notify_status_change': SettingKey.NOTIFY_STATUS_CHANGE.value,
    'notify_old_tickets': SettingKey.NOTIFY_OLD_TICKETS.value,
    'old_tickets_days': SettingKey.OLD_TICKETS_DAYS.value,
    'logo_url': SettingKey.LOGO_URL.value,
    'terms_text': SettingKey.TERMS_TEXT.value,
}


def _setting_keys(data: Dict[str, Any]):
    return {_FIELD_KEYS[k] for k in data}
