"""
JWT authentication decorators for the REST API.
"""
from functools import wraps
from datetime import datetime, timedelta, timezone

import jwt
from flask import request, jsonify, current_app

from docvault.extensions import db
from docvault.models.user import User


def _secret():
    return current_app.config.get('JWT_SECRET_KEY') or current_app.config['SECRET_KEY']


def create_access_token(user_id, expires_minutes=None):
    """Create a JWT access token."""
    if expires_minutes is None:
        expires_minutes = current_app.config.get('JWT_ACCESS_MINUTES', 60)
    payload = {
        'sub': str(user_id),
        'type': 'access',
        'iat': datetime.now(timezone.utc),
        'exp': datetime.now(timezone.utc) + timedelta(minutes=expires_minutes),
    }
    return jwt.encode(payload, _secret(), algorithm='HS256')


def create_refresh_token(user_id, expires_days=None):
    """Create a JWT refresh token (longer-lived)."""
    if expires_days is None:
        expires_days = current_app.config.get('JWT_REFRESH_DAYS', 30)
    payload = {
        'sub': str(user_id),
        'type': 'refresh',
        'iat': datetime.now(timezone.utc),
        'exp': datetime.now(timezone.utc) + timedelta(days=expires_days),
    }
    return jwt.encode(payload, _secret(), algorithm='HS256')


def decode_token(token):
    """Decode and validate a JWT token. Returns payload or None."""
    try:
        return jwt.decode(token, _secret(), algorithms=['HS256'])
    except jwt.InvalidTokenError:
        return None


def _auth_error(code, message):
    return None, (jsonify({'error': {'code': code, 'message': message}}), 401)


def get_current_api_user():
    """Extract user from Authorization header. Returns (user, error_response)."""
    auth_header = request.headers.get('Authorization', '')
    if not auth_header.startswith('Bearer '):
        return _auth_error('missing_token', 'Authorization header with Bearer token required.')

    payload = decode_token(auth_header[7:])  # Strip "Bearer "
    if payload is None:
        return _auth_error('invalid_token', 'Token is invalid or expired.')

    if payload.get('type') != 'access':
        return _auth_error('wrong_token_type', 'Access token required (not refresh token).')

    try:
        user_id = int(payload['sub'])
    except (KeyError, ValueError, TypeError):
        return _auth_error('invalid_token', 'Token contains invalid user ID.')

    user = db.session.get(User, user_id)
    if user is None or not user.is_active:
        return _auth_error('user_not_found', 'User not found or deactivated.')

    return user, None


def jwt_required(f):
    """Decorator: require valid JWT access token."""
    @wraps(f)
    def decorated(*args, **kwargs):
        user, error = get_current_api_user()
        if error:
            return error
        request.api_user = user
        return f(*args, **kwargs)
    return decorated


def jwt_optional(f):
    """Decorator: attach the user if an access token is sent, else None.

    Only a request without an Authorization header is anonymous; a sent
    token that is malformed or expired gets the same 401 as ``jwt_required``.
    """
    @wraps(f)
    def decorated(*args, **kwargs):
        user = None
        if request.headers.get('Authorization'):
            user, error = get_current_api_user()
            if error:
                return error
        request.api_user = user
        return f(*args, **kwargs)
    return decorated
