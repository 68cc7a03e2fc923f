"""
AccessGrant model - one table for public, private and emailed share links.
"""
import enum

from docvault.extensions import db
from docvault.utils.timezone import utcnow


class GrantKind(enum.Enum):
    """How a share link was issued, and therefore how it is checked."""
    PUBLIC = 'public'      # Anyone holding the link, short TTL
    PRIVATE = 'private'    # Bound to one recipient user, no TTL
    EMAILED = 'emailed'    # Signed token mailed to a recipient, short TTL


class AccessGrant(db.Model):
    """
    A capability to read one document.

    The token is the credential embedded in the share URL. Emailed grants store
    the signed token itself plus the random nonce it was signed over, so the
    record and the signature can be checked against each other.
    """

    __tablename__ = 'access_grants'

    id = db.Column(db.Integer, primary_key=True)
    document_id = db.Column(
        db.Integer, db.ForeignKey('documents.id', ondelete='CASCADE'), nullable=False, index=True
    )
    token = db.Column(db.String(512), unique=True, index=True, nullable=False)
    nonce = db.Column(db.String(64), nullable=True)  # jti of the signed token (emailed only)

    kind = db.Column(
        db.Enum(GrantKind, values_callable=lambda x: [e.value for e in x], name='grantkind'),
        nullable=False,
        index=True,
    )

    # Recipient
    bound_user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=True, index=True)
    recipient_email = db.Column(db.String(120), nullable=True)

    issued_by_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)

    # Timestamps
    issued_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    expires_at = db.Column(db.DateTime, nullable=True, index=True)  # NULL = never (private only)
    consumed_at = db.Column(db.DateTime, nullable=True)  # first successful use

    # Relations
    document = db.relationship('Document', back_populates='grants')
    bound_user = db.relationship('User', foreign_keys=[bound_user_id])
    issued_by = db.relationship('User', foreign_keys=[issued_by_id])

    def __repr__(self):
        return f'<AccessGrant {self.id} doc={self.document_id} kind={self.kind.value}>'

    def is_expired(self, now=None):
        """A grant with an expiry is dead once ``expires_at <= now``."""
        if self.expires_at is None:
            return False
        return self.expires_at <= (now or utcnow())

    def mark_used(self, now=None):
        """Stamp the first successful use. Later uses leave it untouched."""
        if self.consumed_at is None:
            self.consumed_at = now or utcnow()

    # -- queries ---------------------------------------------------------

    @classmethod
    def find(cls, document_id, token):
        """Look up a grant by the (document, token) pair from a share URL."""
        if not token:
            return None
        return cls.query.filter_by(document_id=document_id, token=token).first()

    @classmethod
    def for_document(cls, document_id):
        """Query all grants of a document, newest first."""
        return cls.query.filter_by(document_id=document_id).order_by(cls.issued_at.desc(), cls.id.desc())

    @classmethod
    def get_for_document(cls, document_id, grant_id):
        return cls.query.filter_by(document_id=document_id, id=grant_id).first()

    @classmethod
    def add(cls, grant):
        """Stage a new grant; the caller owns the transaction."""
        db.session.add(grant)
        db.session.flush()
        return grant

    @classmethod
    def expired(cls, now=None):
        """Query grants whose expiry has passed."""
        return cls.query.filter(
            cls.expires_at.isnot(None),
            cls.expires_at <= (now or utcnow()),
        )

    @classmethod
    def delete_expired(cls, now=None):
        """Delete expired grant rows. Returns the number of rows removed."""
        count = cls.expired(now).delete(synchronize_session=False)
        db.session.commit()
        return count
