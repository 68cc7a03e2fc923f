"""
Error translation for the API blueprint.
Service exceptions and validation errors become the standard JSON envelope.
"""
from flask import current_app
from marshmallow import ValidationError
from werkzeug.exceptions import RequestEntityTooLarge

from docvault.blueprints.api import api_bp
from docvault.blueprints.api.helpers import api_error
from docvault.extensions import db
from docvault.services.exceptions import AccessDenied, DocVaultError


@api_bp.errorhandler(AccessDenied)
def handle_access_denied(error):
    # Same body for every reason; the reason only goes to the log
    return api_error(AccessDenied.code, AccessDenied.message, 403)


@api_bp.errorhandler(DocVaultError)
def handle_service_error(error):
    db.session.rollback()
    if error.status >= 500:
        current_app.logger.error('%s: %s', type(error).__name__, error.message, exc_info=error)
    return api_error(error.code, error.message, error.status)


@api_bp.errorhandler(ValidationError)
def handle_validation_error(error):
    details = []
    messages = error.messages if isinstance(error.messages, dict) else {'_schema': error.messages}
    for field, field_messages in messages.items():
        if isinstance(field_messages, dict):
            field_messages = [str(m) for m in field_messages.values()]
        for message in field_messages:
            details.append({'field': field, 'message': message, 'code': 'invalid'})
    return api_error('validation_error', 'Request validation failed.', 422, details)


@api_bp.errorhandler(RequestEntityTooLarge)
def handle_too_large(error):
    return api_error('file_too_large', 'Uploaded file is too large.', 413)
