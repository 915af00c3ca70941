from __future__ import annotations
from typing import Optional, Set
from flask_jwt_extended import get_jwt, get_jwt_identity, verify_jwt_in_request
from flask_jwt_extended.exceptions import JWTExtendedException
from jwt.exceptions import PyJWTError


def current_permissions() -> Set[str]:
    claims = get_jwt()
    return set(claims.get('perms', []))


def current_identity() -> Optional[str]:
    """Caller identity from an optional JWT; None when the request carries no valid token."""
    try:
        verify_jwt_in_request(optional=True)
    except (JWTExtendedException, PyJWTError):
        return None
    ident = get_jwt_identity()
    return str(ident) if ident else None


def current_actor() -> str:
    return current_identity() or 'system'
