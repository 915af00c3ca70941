from __future__ import annotations
"""Audit logging decorator so route handlers don't repeat add_audit() calls.

Usage examples:

@audit_log('TICKET.STATUS', entity='Ticket', entity_id_arg='ticket_id', meta_keys=['status'])
def change_status(ticket_id): ...

@audit_log('SETTINGS.UPDATE', entity='Setting',
           meta_builder=lambda data, rv, args, kwargs: {'keys': sorted(request.json or {})})
def update_settings(): ...

Parameters:
  action: required audit action code (e.g. TICKET.DELETE)
  entity: optional entity label (Ticket, Setting)
  entity_id_key: key in the returned JSON object whose value becomes entity_id.
  entity_id_arg: name of the path parameter to use for entity_id (fallback if entity_id_key absent).
  meta_keys: keys projected from the returned JSON into the meta dict.
  meta_builder: callable returning a meta dict; receives (data, original_return_value, args, kwargs).
  diff_keys / pre_fetch: snapshot the entity before the call and record changed keys under meta['changes'].

Only successful responses (status < 400) are audited; an exception raised by the
view propagates untouched.
"""

from functools import wraps
from typing import Any, Callable, Iterable, Optional, Dict
import logging

from repairdesk.services.audit import add_audit
from repairdesk import get_db

logger = logging.getLogger(__name__)


def _extract_payload(rv: Any):
    """Return (data, status) where data is the JSON-able dict for inspection."""
    if isinstance(rv, tuple) and rv:
        status = rv[1] if len(rv) > 1 and isinstance(rv[1], int) else 200
        return rv[0], status
    return rv, getattr(rv, 'status_code', 200)


def audit_log(
    action: str,
    *,
    entity: Optional[str] = None,
    entity_id_key: Optional[str] = None,
    entity_id_arg: Optional[str] = None,
    meta_keys: Optional[Iterable[str]] = None,
    meta_builder: Optional[Callable[[dict, Any, tuple, dict], dict]] = None,
    commit: bool = True,
    # Diff support
    diff_keys: Optional[Iterable[str]] = None,
    pre_fetch: Optional[Callable[[tuple, dict], Optional[Dict[str, Any]]]] = None,
):
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            before_snapshot = pre_fetch(args, kwargs) if diff_keys and pre_fetch else None
            rv = fn(*args, **kwargs)
            data, status = _extract_payload(rv)
            if status >= 400:
                return rv
            try:
                if not isinstance(data, dict):
                    data = {}
                entity_id = None
                if entity_id_key and entity_id_key in data:
                    entity_id = data.get(entity_id_key)
                elif entity_id_arg and entity_id_arg in kwargs:
                    entity_id = kwargs.get(entity_id_arg)
                meta = None
                if meta_builder:
                    meta = meta_builder(data, rv, args, kwargs)
                elif meta_keys:
                    meta = {k: data.get(k) for k in meta_keys if k in data}
                if diff_keys and isinstance(before_snapshot, dict):
                    changes = {
                        k: {'before': before_snapshot.get(k), 'after': data.get(k)}
                        for k in diff_keys
                        if k in before_snapshot and k in data and before_snapshot.get(k) != data.get(k)
                    }
                    if changes:
                        meta = dict(meta or {})
                        meta['changes'] = changes
                add_audit(action, entity, entity_id, meta)
                if commit:
                    get_db().commit()
            except Exception:
                # The primary write already committed; a failed audit row must not turn it into an error.
                logger.exception('Could not record audit entry %s', action)
                get_db().rollback()
            return rv
        return wrapper
    return outer
