"""Domain error taxonomy.

Each error carries the HTTP status the unified handler in `create_app` maps it
to, plus a message key resolved through `repairdesk.i18n` so the client gets a
localized detail string.
"""
from __future__ import annotations
from typing import Any, Optional


class RepairDeskError(Exception):
    status_code = 500
    title = 'Internal Server Error'
    message_key = 'errors.generic'

    def __init__(self, message: Optional[str] = None, *, message_key: Optional[str] = None, field: Optional[str] = None, **params: Any):
        super().__init__(message or message_key or self.message_key)
        if message_key:
            self.message_key = message_key
        self.field = field
        self.params = params


class NotFound(RepairDeskError):
    status_code = 404
    title = 'Not Found'
    message_key = 'errors.not_found'


class ValidationError(RepairDeskError):
    status_code = 400
    title = 'Bad Request'
    message_key = 'errors.validation'


class AuthRequired(RepairDeskError):
    status_code = 401
    title = 'Unauthorized'
    message_key = 'errors.auth_required'


class PermissionDenied(RepairDeskError):
    status_code = 403
    title = 'Forbidden'
    message_key = 'errors.forbidden'


class StoreError(RepairDeskError):
    status_code = 500
    title = 'Internal Server Error'
    message_key = 'errors.store'


class GatewayError(RepairDeskError):
    status_code = 502
    title = 'Bad Gateway'
    message_key = 'errors.gateway'


__all__ = ['RepairDeskError', 'NotFound', 'ValidationError', 'AuthRequired', 'PermissionDenied', 'StoreError', 'GatewayError']
