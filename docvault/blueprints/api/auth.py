"""
API Authentication endpoints: JWT login, refresh, and user info.
"""
from flask import request, jsonify, current_app

from docvault.blueprints.api import api_bp
from docvault.blueprints.api.decorators import (
    create_access_token,
    create_refresh_token,
    decode_token,
    jwt_required,
)
from docvault.blueprints.api.helpers import api_error
from docvault.blueprints.api.schemas import LoginSchema, RefreshSchema, UserSchema
from docvault.extensions import db, limiter
from docvault.models.user import User


def _token_response(user, include_refresh=True):
    data = {
        'access_token': create_access_token(user.id),
        'token_type': 'Bearer',
        'expires_in': current_app.config.get('JWT_ACCESS_MINUTES', 60) * 60,
    }
    if include_refresh:
        data['refresh_token'] = create_refresh_token(user.id)
        data['user'] = UserSchema().dump(user)
    return jsonify({'data': data}), 200


@api_bp.route('/auth/login', methods=['POST'])
@limiter.limit('10 per minute')
def api_login():
    """Authenticate user and return JWT tokens.

    Request body:
        {"email": "...", "password": "..."}

    Returns:
        {"data": {"access_token": "...", "refresh_token": "...", "user": {...}}}
    """
    data = request.get_json(silent=True)
    if not data:
        return api_error('invalid_json', 'Request body must be valid JSON.', 400)

    credentials = LoginSchema().load(data)
    user = User.find_by_email(credentials['email'])

    if user and user.is_locked:
        return api_error(
            'account_locked',
            'Account temporarily locked due to too many failed attempts. Try again later.',
            429,
        )

    if user is None or not user.check_password(credentials['password']):
        if user:
            user.record_failed_login()
            db.session.commit()
        return api_error('invalid_credentials', 'Invalid email or password.', 401)

    if not user.is_active:
        return api_error('account_inactive', 'Account is deactivated. Contact an administrator.', 403)

    user.reset_failed_logins()
    db.session.commit()

    return _token_response(user)


@api_bp.route('/auth/refresh', methods=['POST'])
@limiter.limit('20 per minute')
def api_refresh():
    """Refresh an expired access token using a refresh token.

    Request body:
        {"refresh_token": "..."}
    """
    data = RefreshSchema().load(request.get_json(silent=True) or {})

    payload = decode_token(data['refresh_token'])
    if payload is None:
        return api_error('invalid_token', 'Refresh token is invalid or expired.', 401)

    if payload.get('type') != 'refresh':
        return api_error('wrong_token_type', 'Refresh token required.', 401)

    user = db.session.get(User, int(payload['sub']))
    if user is None or not user.is_active:
        return api_error('user_not_found', 'User not found or deactivated.', 401)

    return _token_response(user, include_refresh=False)


@api_bp.route('/auth/me', methods=['GET'])
@jwt_required
def api_me():
    """Get current authenticated user profile."""
    return jsonify({
        'data': UserSchema().dump(request.api_user),
    }), 200
