"""Shared authentication utilities.

JWT decorators used by every route module. Tokens carry the user id and
role; the role is re-read from the database on each request so a demoted
or disabled account loses access immediately.
"""

from datetime import datetime, timedelta
from functools import wraps
from flask import request, jsonify, current_app
import jwt


def _secret_key():
    """Get JWT secret from Flask app config (single source of truth)."""
    return current_app.config['JWT_SECRET_KEY']


def issue_token(user):
    """Sign a token for the given user."""
    payload = {
        'user_id': user.id,
        'role': user.role,
        'exp': datetime.utcnow() + timedelta(seconds=current_app.config['JWT_ACCESS_TOKEN_EXPIRES'])
    }
    return jwt.encode(payload, _secret_key(), algorithm='HS256')


def _token_from_header():
    auth_header = request.headers.get('Authorization')
    if not auth_header:
        return None
    # Support both "Bearer <token>" and raw token formats
    return auth_header.split(' ')[1] if ' ' in auth_header else auth_header


def _load_user(user_id):
    from academy.models import User
    from academy import db
    return db.session.get(User, user_id)


def token_required(f):
    """
    Decorator to require valid JWT token.

    Passes the authenticated user's id as the first argument:

        @bp.route('/protected')
        @token_required
        def protected_route(current_user_id):
            return jsonify({'user_id': current_user_id})
    """
    @wraps(f)
    def decorated(*args, **kwargs):
        token = _token_from_header()
        if not token:
            return jsonify({'error': 'Token is missing'}), 401

        try:
            payload = jwt.decode(token, _secret_key(), algorithms=['HS256'])
            current_user_id = payload['user_id']
        except jwt.ExpiredSignatureError:
            return jsonify({'error': 'Token has expired'}), 401
        except (jwt.InvalidTokenError, KeyError):
            return jsonify({'error': 'Token is invalid'}), 401

        user = _load_user(current_user_id)
        if not user or not user.is_active:
            return jsonify({'error': 'Account is not active'}), 401

        return f(current_user_id, *args, **kwargs)
    return decorated


def token_optional(f):
    """
    Decorator that optionally validates JWT token.

    Passes the user id, or None for anonymous callers or bad tokens.
    """
    @wraps(f)
    def decorated(*args, **kwargs):
        current_user_id = None
        token = _token_from_header()

        if token:
            try:
                payload = jwt.decode(token, _secret_key(), algorithms=['HS256'])
                current_user_id = payload.get('user_id')
            except jwt.InvalidTokenError:
                current_user_id = None

        return f(current_user_id, *args, **kwargs)
    return decorated


def has_role(user, roles):
    if user is None:
        return False
    if user.role in roles:
        return True
    # Whitelisted admin emails count as admins everywhere
    if 'admin' in roles and user.email.lower() in current_app.config.get('ADMIN_EMAILS', []):
        return True
    return False


def role_required(*roles):
    """Decorator that combines token_required with a role check.

    Admins pass every role check.
    """
    allowed = set(roles) | {'admin'}

    def wrapper(f):
        @wraps(f)
        @token_required
        def decorated(current_user_id, *args, **kwargs):
            if not has_role(_load_user(current_user_id), allowed):
                return jsonify({'error': 'Insufficient permissions'}), 403
            return f(current_user_id, *args, **kwargs)
        return decorated
    return wrapper


admin_required = role_required('admin')
