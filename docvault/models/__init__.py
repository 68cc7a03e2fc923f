"""
SQLAlchemy models for DocVault.
All models are imported here for easy access.
"""
from docvault.models.user import User
from docvault.models.document import Document
from docvault.models.revision import Revision
from docvault.models.access_grant import AccessGrant, GrantKind

__all__ = [
    'User',
    'Document',
    'Revision',
    'AccessGrant',
    'GrantKind',
]
