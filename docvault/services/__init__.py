"""
Services package for DocVault.
Contains the document and sharing logic separated from routes.
"""

from docvault.services.grants import GrantIssuer, GrantValidator, IssuedGrant
from docvault.services.revisions import DocumentPatch, RevisionChainManager
from docvault.services.tokens import TokenCodec

__all__ = [
    'GrantIssuer',
    'GrantValidator',
    'IssuedGrant',
    'DocumentPatch',
    'RevisionChainManager',
    'TokenCodec',
]
