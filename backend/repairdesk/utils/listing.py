"""Paged, conditional JSON listing for the staff ticket board.

The ETag is seeded with the ticket ids on the page, the paging window and the
newest ``updated_at`` among them, so an insert, edit, status change or delete
that reaches the page changes it. ``Last-Modified`` carries that newest
``updated_at``; conditional headers are parsed by Werkzeug.
"""
from __future__ import annotations
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple
import hashlib
from flask import make_response, request
from sqlalchemy.orm import Query
from repairdesk.config.pagination import normalize_pagination
from repairdesk.models.ticket import Ticket
from repairdesk.utils.clock import to_naive_utc


def apply_pagination(q: Query) -> Tuple[Query, int, int, int]:
    limit, offset = normalize_pagination(request.args.get('limit'), request.args.get('offset'))
    total = q.count()
    return q.offset(offset).limit(limit), total, limit, offset


def latest_update(tickets: Sequence[Ticket]) -> Optional[datetime]:
    """Newest ``updated_at`` on the page, UTC-aware and truncated to HTTP-date precision."""
    stamps = [to_naive_utc(t.updated_at) for t in tickets if t.updated_at]
    if not stamps:
        return None
    return max(stamps).replace(microsecond=0, tzinfo=timezone.utc)


def compute_etag(ticket_ids: Sequence[str], total: int, limit: int, offset: int,
                 latest: Optional[datetime]) -> str:
    seed = '|'.join([
        ','.join(ticket_ids), str(total), str(limit), str(offset), latest.isoformat() if latest else '',
    ])
    return hashlib.sha256(seed.encode()).hexdigest()[:32]


def build_list_payload(rows: List[Dict[str, Any]], total: int, limit: int, offset: int) -> Dict[str, Any]:
    return {
        'data': rows,
        'pagination': {
            'total': total,
            'limit': limit,
            'offset': offset,
            'returned': len(rows),
        },
    }


def _not_modified(etag: str, latest: Optional[datetime]) -> bool:
    # If-None-Match takes precedence; If-Modified-Since is only consulted without it
    if request.if_none_match:
        return request.if_none_match.contains(etag)
    since = request.if_modified_since
    if since is None or latest is None:
        return False
    if since.tzinfo is None:
        since = since.replace(tzinfo=timezone.utc)
    return latest <= since


def ticket_list_response(tickets: Sequence[Ticket], rows: List[Dict[str, Any]], total: int, limit: int, offset: int):
    """Build the list response for a page of `tickets` serialized as `rows`, or a bare 304."""
    latest = latest_update(tickets)
    etag = compute_etag([t.id for t in tickets], total, limit, offset, latest)
    if _not_modified(etag, latest):
        resp = make_response('', 304)
    else:
        resp = make_response(build_list_payload(rows, total, limit, offset))
    resp.set_etag(etag)
    if latest is not None:
        resp.last_modified = latest
    return resp

__all__ = ['apply_pagination', 'latest_update', 'compute_etag', 'build_list_payload', 'ticket_list_response']
