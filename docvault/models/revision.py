"""
Revision model - immutable snapshots of a document's previous state.
"""
from docvault.extensions import db
from docvault.utils.timezone import utcnow


class Revision(db.Model):
    """Historical copy of a document taken just before a versioning update."""

    __tablename__ = 'revisions'

    # Versions are dense per document: 1, 2, ..., document.current_version
    __table_args__ = (
        db.UniqueConstraint('document_id', 'version', name='uq_revision_document_version'),
    )

    id = db.Column(db.Integer, primary_key=True)
    document_id = db.Column(
        db.Integer, db.ForeignKey('documents.id', ondelete='CASCADE'), nullable=False, index=True
    )
    version = db.Column(db.Integer, nullable=False)

    # Snapshot of the document fields
    title = db.Column(db.String(255), nullable=False)
    content = db.Column(db.Text, nullable=True)
    description = db.Column(db.Text, nullable=True)
    blob_locator = db.Column(db.String(500), nullable=True)  # the prior blob, not the new one

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    document = db.relationship('Document', back_populates='revisions')

    def __repr__(self):
        return f'<Revision doc={self.document_id} v{self.version}>'

    @classmethod
    def from_document(cls, document, version):
        """Build a snapshot of ``document`` as it is right now."""
        return cls(document_id=document.id, version=version, **document.snapshot())

    @classmethod
    def for_document(cls, document_id):
        """Query the revisions of one document, newest first."""
        return cls.query.filter_by(document_id=document_id).order_by(cls.version.desc())

    @classmethod
    def get_version(cls, document_id, version):
        return cls.query.filter_by(document_id=document_id, version=version).first()
