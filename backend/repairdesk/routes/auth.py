from __future__ import annotations
import uuid
from flask import Blueprint, request
from flask_jwt_extended import create_access_token, jwt_required, get_jwt, get_jwt_identity
from sqlalchemy import select
from repairdesk import get_db
from repairdesk.constants.permissions import ROLE_PUBLIC, permissions_for_role
from repairdesk.errors import AuthRequired, NotFound, ValidationError
from repairdesk.models.authz import User

auth_bp = Blueprint('auth', __name__)

ANONYMOUS_PREFIX = 'anon-'


@auth_bp.post('/login')
def login():
    data = request.get_json(silent=True) or {}
    email = (data.get('email') or '').strip().lower()
    password = data.get('password')
    if not email:
        raise ValidationError(message_key='errors.required_field', field='email')
    if not password:
        raise ValidationError(message_key='errors.required_field', field='password')
    session = get_db()
    user = session.execute(select(User).where(User.email == email)).scalar_one_or_none()
    if not user or not user.is_active or not user.verify_password(password):
        raise AuthRequired(message_key='errors.invalid_credentials')
    claims = {
        'roles': [user.role],
        'perms': permissions_for_role(user.role),
        'locale': user.locale,
    }
    # JWT identity must be a string (flask-jwt-extended v4 requirement)
    token = create_access_token(identity=str(user.id), additional_claims=claims)
    return {'access_token': token}


@auth_bp.post('/anonymous')
def anonymous():
    """Session token for the public intake form; the identity becomes the ticket's user_id."""
    identity = f"{ANONYMOUS_PREFIX}{uuid.uuid4()}"
    claims = {'roles': [ROLE_PUBLIC], 'perms': permissions_for_role(ROLE_PUBLIC), 'anonymous': True}
    token = create_access_token(identity=identity, additional_claims=claims)
    return {'access_token': token, 'identity': identity}


@auth_bp.get('/me')
@jwt_required()
def me():
    identity = get_jwt_identity()
    claims = get_jwt()
    if claims.get('anonymous'):
        return {'id': identity, 'anonymous': True, 'perms': claims.get('perms', [])}
    session = get_db()
    user = session.execute(select(User).where(User.id == int(identity))).scalar_one_or_none()
    if not user:
        raise NotFound()
    return {
        'id': user.id,
        'name': user.name,
        'email': user.email,
        'role': user.role,
        'locale': user.locale,
        'anonymous': False,
        'perms': claims.get('perms', []),
    }
