from __future__ import annotations
from typing import Any, Dict, Optional
from flask import has_request_context
from repairdesk import get_db
from repairdesk.models.audit import AuditLog
from repairdesk.services.policy import current_actor


def add_audit(action: str, entity: Optional[str] = None, entity_id: Optional[str] = None, meta: Optional[Dict[str, Any]] = None):
    """Persist an audit log entry within the current DB session.

    Parameters:
      action: short action code e.g. TICKET.CREATE, TICKET.STATUS, SETTINGS.UPDATE
      entity: optional entity name (Ticket, Setting)
      entity_id: optional primary key string
      meta: additional JSON-safe dictionary (will be shallow copied)
    """
    session = get_db()
    actor = current_actor() if has_request_context() else 'system'
    log = AuditLog(
        actor=actor,
        action=action,
        entity=entity,
        entity_id=str(entity_id) if entity_id is not None else None,
        meta=dict(meta or {}),
    )
    session.add(log)
    # No commit here; caller's transaction boundary controls durability.
    return log
