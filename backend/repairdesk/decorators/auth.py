from functools import wraps
from flask_jwt_extended import verify_jwt_in_request
from repairdesk.errors import PermissionDenied
from repairdesk.services.policy import current_permissions


def require_permissions(*codes: str):
    """Require a valid JWT whose `perms` claim holds every code in `codes`.

    A missing or invalid token is answered by Flask-JWT-Extended (401); an
    anonymous intake session reaching a staff endpoint gets PermissionDenied (403).
    """
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            verify_jwt_in_request()
            missing = [c for c in codes if c not in current_permissions()]
            if missing:
                raise PermissionDenied(permission=', '.join(missing))
            return fn(*args, **kwargs)
        return wrapper
    return outer
