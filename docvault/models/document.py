"""
Document model for uploaded files and their editable metadata.
"""
from docvault.extensions import db
from docvault.utils.timezone import utcnow


class Document(db.Model):
    """
    A stored document owned by exactly one user.

    ``current_version`` counts the revisions taken so far: it starts at 0 and
    moves by exactly one each time an update snapshots the previous state.
    """

    __tablename__ = 'documents'

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)

    title = db.Column(db.String(255), nullable=False)
    content = db.Column(db.Text, nullable=True)
    description = db.Column(db.Text, nullable=True)

    # File storage
    blob_locator = db.Column(db.String(500), nullable=True)
    original_filename = db.Column(db.String(255), nullable=True)
    mime_type = db.Column(db.String(100))
    file_size = db.Column(db.Integer)  # Size in bytes

    current_version = db.Column(db.Integer, nullable=False, default=0)
    # Bumped by every write; guards read-modify-write against concurrent updates
    row_version = db.Column(db.Integer, nullable=False, default=0)

    # Audit fields
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    owner = db.relationship(
        'User',
        foreign_keys=[owner_id],
        backref=db.backref('documents', lazy='dynamic')
    )
    revisions = db.relationship(
        'Revision',
        back_populates='document',
        cascade='all, delete-orphan',
        order_by='Revision.version',
        lazy='dynamic',
    )
    grants = db.relationship(
        'AccessGrant',
        back_populates='document',
        cascade='all, delete-orphan',
        lazy='dynamic',
    )

    # Fields captured by a revision snapshot
    VERSIONED_FIELDS = ('title', 'content', 'description', 'blob_locator')

    def __repr__(self):
        return f'<Document {self.id} {self.title!r} v{self.current_version}>'

    def is_owned_by(self, user_id):
        """Check whether ``user_id`` owns this document."""
        return user_id is not None and self.owner_id == user_id

    def snapshot(self):
        """Return the versioned fields as a dict."""
        return {field: getattr(self, field) for field in self.VERSIONED_FIELDS}

    @property
    def file_size_formatted(self):
        """Return human-readable file size."""
        if not self.file_size:
            return 'Unknown'
        return format_bytes(self.file_size)

    @classmethod
    def for_owner(cls, owner_id):
        """Query the documents of one owner, most recently updated first."""
        return cls.query.filter_by(owner_id=owner_id).order_by(cls.updated_at.desc(), cls.id.desc())


def format_bytes(size):
    """Format a byte count as a human-readable string."""
    size = float(size)
    for unit in ['B', 'KB', 'MB', 'GB']:
        if size < 1024:
            return f'{size:.1f} {unit}'
        size /= 1024
    return f'{size:.1f} TB'
