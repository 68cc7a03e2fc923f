"""
Access grant issuer and validator.

All three kinds of share link (public, private, emailed) are rows of the same
``access_grants`` table and go through the same pair of services:

- ``GrantIssuer`` creates grants for a document's owner and builds the URL.
- ``GrantValidator`` turns (document id, token, kind, optional identity) into
  the document, or raises ``AccessDenied``.
"""
import logging
from datetime import timedelta
from urllib.parse import urlencode

from docvault.extensions import db
from docvault.models.access_grant import AccessGrant, GrantKind
from docvault.models.document import Document
from docvault.models.user import User
from docvault.services.exceptions import (
    AccessDenied,
    DenyReason,
    DocumentNotFound,
    Expired,
    Forbidden,
    UpstreamFailure,
    UserNotFound,
)
from docvault.services.tokens import InvalidShareToken, generate_token, to_timestamp
from docvault.utils.timezone import utcnow

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 60

# URL segment of the visitor endpoint for each kind
URL_SEGMENTS = {
    GrantKind.PUBLIC: 'public',
    GrantKind.PRIVATE: 'private',
    GrantKind.EMAILED: 'access',
}


class IssuedGrant:
    """Result of issuing a grant: the share URL and when it stops working."""

    def __init__(self, url, expires_at, grant):
        self.url = url
        self.expires_at = expires_at
        self.grant = grant

    def __repr__(self):
        return f'<IssuedGrant {self.grant.kind.value} expires={self.expires_at}>'


def build_share_url(base_url, document_id, kind, token):
    """Compose the visitor URL for a grant."""
    query = urlencode({'token': token})
    return f'{base_url.rstrip("/")}/api/v1/documents/{document_id}/{URL_SEGMENTS[kind]}?{query}'


class GrantIssuer:
    """Creates share grants on behalf of a document owner."""

    def __init__(self, codec, mailer, ttl_seconds=DEFAULT_TTL_SECONDS, base_url='http://localhost'):
        self.codec = codec
        self.mailer = mailer
        self.ttl = timedelta(seconds=ttl_seconds)
        self.base_url = base_url

    def _owned_document(self, document_id, requester_id):
        document = db.session.get(Document, document_id)
        if document is None:
            raise DocumentNotFound()
        if not document.is_owned_by(requester_id):
            raise Forbidden()
        return document

    def issue_public(self, document_id, requester_id, now=None, base_url=None):
        """Issue an anonymous link that expires after the TTL."""
        document = self._owned_document(document_id, requester_id)
        now = now or utcnow()

        grant = AccessGrant.add(AccessGrant(
            document_id=document.id,
            token=generate_token(),
            kind=GrantKind.PUBLIC,
            issued_by_id=requester_id,
            issued_at=now,
            expires_at=now + self.ttl,
        ))
        db.session.commit()

        logger.info('Public link issued for document %s (grant %s)', document.id, grant.id)
        url = build_share_url(base_url or self.base_url, document.id, GrantKind.PUBLIC, grant.token)
        return IssuedGrant(url, grant.expires_at, grant)

    def issue_private(self, document_id, requester_id, recipient_user_id, now=None, base_url=None):
        """Issue a link bound to one recipient user.

        Private grants do not expire.
        """
        document = self._owned_document(document_id, requester_id)
        recipient = db.session.get(User, recipient_user_id) if recipient_user_id is not None else None
        if recipient is None:
            raise UserNotFound()
        now = now or utcnow()

        grant = AccessGrant.add(AccessGrant(
            document_id=document.id,
            token=generate_token(),
            kind=GrantKind.PRIVATE,
            bound_user_id=recipient.id,
            issued_by_id=requester_id,
            issued_at=now,
            expires_at=None,
        ))
        db.session.commit()

        logger.info('Private link issued for document %s to user %s (grant %s)',
                    document.id, recipient.id, grant.id)
        url = build_share_url(base_url or self.base_url, document.id, GrantKind.PRIVATE, grant.token)
        return IssuedGrant(url, None, grant)

    def issue_emailed(self, document_id, requester_id, recipient_email, now=None, base_url=None):
        """Issue a signed, short-lived link and mail it to ``recipient_email``.

        The grant is flushed first, then the mail is sent, then the
        transaction commits. If sending fails the grant is rolled back and
        ``UpstreamFailure`` propagates.
        """
        document = self._owned_document(document_id, requester_id)
        recipient_email = recipient_email.strip().lower()
        # JWT times are whole seconds; keep the record in step with the claims
        now = (now or utcnow()).replace(microsecond=0)
        expires_at = now + self.ttl

        nonce = generate_token()
        token = self.codec.sign_share_token(document.id, nonce, recipient_email, now, expires_at)
        recipient = User.find_by_email(recipient_email)

        grant = AccessGrant.add(AccessGrant(
            document_id=document.id,
            token=token,
            nonce=nonce,
            kind=GrantKind.EMAILED,
            bound_user_id=recipient.id if recipient else None,
            recipient_email=recipient_email,
            issued_by_id=requester_id,
            issued_at=now,
            expires_at=expires_at,
        ))
        url = build_share_url(base_url or self.base_url, document.id, GrantKind.EMAILED, token)

        try:
            self.mailer.send(recipient_email, url, expires_at, document_title=document.title)
        except UpstreamFailure:
            db.session.rollback()
            logger.error('Emailed link for document %s rolled back: mail to %s failed',
                         document.id, recipient_email)
            raise
        db.session.commit()

        logger.info('Emailed link issued for document %s (grant %s)', document.id, grant.id)
        return IssuedGrant(url, expires_at, grant)

    def list_grants(self, document_id, requester_id):
        """Return every grant of a document, newest first."""
        self._owned_document(document_id, requester_id)
        return AccessGrant.for_document(document_id).all()

    def revoke(self, document_id, grant_id, requester_id):
        """Delete a grant so its link stops working immediately."""
        self._owned_document(document_id, requester_id)
        grant = AccessGrant.get_for_document(document_id, grant_id)
        if grant is None:
            raise DocumentNotFound('Grant not found.')
        db.session.delete(grant)
        db.session.commit()
        logger.info('Grant %s on document %s revoked by user %s', grant_id, document_id, requester_id)


class GrantValidator:
    """Checks share links presented by visitors."""

    def __init__(self, codec):
        self.codec = codec

    def _deny(self, document_id, kind, reason):
        logger.info('Share link denied: document=%s kind=%s reason=%s',
                    document_id, kind.value if kind else None, reason.value)
        if reason is DenyReason.EXPIRED:
            raise Expired()
        raise AccessDenied(reason)

    def validate(self, document_id, token, kind, requester_id=None, now=None):
        """Return the shared document if ``token`` grants access to it.

        Args:
            document_id: Document id taken from the URL
            token: Token taken from the URL
            kind: GrantKind of the endpoint the link was presented to
            requester_id: Authenticated visitor, or None when anonymous
            now: Evaluation time (defaults to the current UTC time)

        Raises:
            AccessDenied: with the internal reason; ``Expired`` for time-based denials
        """
        now = now or utcnow()
        grant = AccessGrant.find(document_id, token)
        if grant is None:
            self._deny(document_id, kind, DenyReason.NOT_FOUND)
        if grant.kind is not kind:
            self._deny(document_id, kind, DenyReason.KIND_MISMATCH)

        if grant.is_expired(now):
            self._deny(document_id, kind, DenyReason.EXPIRED)

        if kind is GrantKind.PRIVATE:
            # Anonymous use is allowed; a logged-in visitor must be the recipient
            if requester_id is not None and requester_id != grant.bound_user_id:
                self._deny(document_id, kind, DenyReason.IDENTITY_MISMATCH)
        elif kind is GrantKind.EMAILED:
            self._verify_signature(grant, token, now)

        document = grant.document
        if document is None:
            self._deny(document_id, kind, DenyReason.NOT_FOUND)

        # Links stay reusable until they expire; only the first use is recorded
        if kind in (GrantKind.PUBLIC, GrantKind.EMAILED) and grant.consumed_at is None:
            grant.mark_used(now)
            db.session.commit()

        return document

    def _verify_signature(self, grant, token, now):
        """The signed claims must agree with the stored record."""
        try:
            claims = self.codec.verify_share_token(token, now)
        except InvalidShareToken as e:
            logger.debug('Share token rejected: %s', e)
            self._deny(grant.document_id, grant.kind, DenyReason.BAD_SIGNATURE)

        if (claims.get('sub') != str(grant.document_id)
                or claims.get('jti') != grant.nonce
                or grant.expires_at is None
                or claims.get('exp') != to_timestamp(grant.expires_at)):
            self._deny(grant.document_id, grant.kind, DenyReason.BAD_SIGNATURE)

    def verify_emailed_token(self, token, now=None):
        """Validate an emailed token on its own, without a document id.

        The document id is read from the signed claims, then the token goes
        through the regular emailed check.
        """
        try:
            document_id = self.codec.peek_document_id(token)
        except InvalidShareToken:
            self._deny(None, GrantKind.EMAILED, DenyReason.BAD_SIGNATURE)
        return self.validate(document_id, token, GrantKind.EMAILED, now=now)
