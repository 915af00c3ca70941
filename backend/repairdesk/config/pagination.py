from __future__ import annotations
from typing import Optional, Tuple
from repairdesk.errors import ValidationError

# Staff ticket board page sizes
DEFAULT_LIMIT = 50
MAX_LIMIT = 200


def _parse_int(raw: Optional[str], default: int, field: str) -> int:
    if raw is None or raw == '':
        return default
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise ValidationError(message_key='errors.invalid_field', field=field)


def normalize_pagination(limit_raw: Optional[str], offset_raw: Optional[str]) -> Tuple[int, int]:
    """Clamp `limit` to 1..MAX_LIMIT and `offset` to >= 0; non-integers raise ValidationError."""
    limit = _parse_int(limit_raw, DEFAULT_LIMIT, 'limit')
    offset = _parse_int(offset_raw, 0, 'offset')
    return max(1, min(limit, MAX_LIMIT)), max(0, offset)

__all__ = ['DEFAULT_LIMIT', 'MAX_LIMIT', 'normalize_pagination']
