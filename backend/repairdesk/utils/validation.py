from __future__ import annotations
"""Reusable validation helpers for domain models.

Currently focuses on status-like enum validation to reduce scattered string comparisons
and provide consistent 400 error semantics.
"""
from typing import Iterable
from repairdesk.errors import ValidationError


def validate_status(new_status: str, allowed: Iterable[str], field_name: str = 'status') -> str:
    """Validate that new_status is inside allowed.

    Returns the status (to enable inline usage) or raises ValidationError.
    """
    if new_status not in tuple(allowed):
        raise ValidationError(message_key=f'errors.invalid_{field_name}', field=field_name, value=new_status)
    return new_status

__all__ = ['validate_status']
