from __future__ import annotations
from typing import List, Mapping, Optional, Tuple
from repairdesk.errors import ValidationError


def parse_sort(sort_expr: Optional[str], allowed: Mapping[str, object]) -> List[Tuple[str, bool]]:
    """Parse ``?sort=priority,-created_at`` into ``[(key, descending)]``.

    Unknown keys raise ValidationError on `sort`; a key repeated later in the
    expression is ignored.
    """
    parsed: List[Tuple[str, bool]] = []
    seen = set()
    for raw in (sort_expr or '').split(','):
        token = raw.strip()
        if not token:
            continue
        desc = token.startswith('-')
        key = token.lstrip('-')
        if key not in allowed:
            raise ValidationError(message_key='errors.invalid_sort', field='sort', value=key)
        if key in seen:
            continue
        seen.add(key)
        parsed.append((key, desc))
    return parsed


def apply_multi_sort(query, sort_expr: Optional[str], allowed: Mapping[str, object], tie_breaker):
    """Order `query` by the parsed sort keys, then by `tie_breaker` so pages are stable."""
    clauses = [allowed[key].desc() if desc else allowed[key].asc() for key, desc in parse_sort(sort_expr, allowed)]
    clauses.append(tie_breaker.asc())
    return query.order_by(*clauses)

__all__ = ['parse_sort', 'apply_multi_sort']
