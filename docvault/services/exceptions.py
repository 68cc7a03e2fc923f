"""
Exceptions raised by the document and sharing services.

Every error carries a machine-readable ``code`` and the HTTP ``status`` the API
answers with, so the blueprint can translate them in one place.
"""
import enum


class DocVaultError(Exception):
    """Base class for service-level errors."""

    code = 'error'
    status = 400
    message = 'Request failed.'

    def __init__(self, message=None):
        self.message = message or self.message
        super().__init__(self.message)


class DocumentNotFound(DocVaultError):
    """Raised when a document does not exist."""
    code = 'not_found'
    status = 404
    message = 'Document not found.'


class UserNotFound(DocVaultError):
    """Raised when a share recipient does not exist."""
    code = 'user_not_found'
    status = 404
    message = 'User not found.'


class Forbidden(DocVaultError):
    """Raised when the requester does not own the document."""
    code = 'forbidden'
    status = 403
    message = 'Access denied.'


class Conflict(DocVaultError):
    """Raised when a concurrent update won the race. Re-read and retry."""
    code = 'conflict'
    status = 409
    message = 'Document was modified concurrently. Reload and try again.'

    def __init__(self, message=None, current_version=None):
        self.current_version = current_version
        super().__init__(message)


class UpstreamFailure(DocVaultError):
    """Raised when the blob store or the mail transport fails."""
    code = 'upstream_failure'
    status = 502
    message = 'An external service failed. Nothing was changed.'


class InvalidUpload(DocVaultError):
    """Raised when an uploaded file is rejected."""
    code = 'invalid_upload'
    status = 422
    message = 'Invalid file upload.'


class DenyReason(enum.Enum):
    """Why a share link was refused. Logged, never shown to the visitor."""
    NOT_FOUND = 'not_found'
    KIND_MISMATCH = 'kind_mismatch'
    EXPIRED = 'expired'
    IDENTITY_MISMATCH = 'identity_mismatch'
    BAD_SIGNATURE = 'bad_signature'


class AccessDenied(DocVaultError):
    """Raised when a share link does not authorize access.

    The message is identical for every reason so that responses cannot be
    used to tell a wrong token from an expired one.
    """
    code = 'access_denied'
    status = 403
    message = 'Invalid or expired link.'

    def __init__(self, reason):
        self.reason = reason
        super().__init__()


class Expired(AccessDenied):
    """Time-based denial, kept distinct for logging."""

    def __init__(self):
        super().__init__(DenyReason.EXPIRED)
