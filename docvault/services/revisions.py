"""
Revision chain manager.
Owns the document write path: every update that changes the description
snapshots the previous state into the revision chain in the same transaction.
"""
import logging
import threading
from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from docvault.extensions import db
from docvault.models.access_grant import AccessGrant
from docvault.models.document import Document
from docvault.models.revision import Revision
from docvault.services.exceptions import Conflict, DocumentNotFound, Forbidden
from docvault.utils.timezone import utcnow

logger = logging.getLogger(__name__)


class DocumentPatch:
    """Requested changes to a document. ``None`` means "leave as is"."""

    FIELDS = ('title', 'content', 'description', 'blob_locator',
              'original_filename', 'mime_type', 'file_size')

    def __init__(self, title=None, content=None, description=None, blob_locator=None,
                 original_filename=None, mime_type=None, file_size=None,
                 expected_version: Optional[int] = None):
        self.title = title
        self.content = content
        self.description = description
        self.blob_locator = blob_locator
        self.original_filename = original_filename
        self.mime_type = mime_type
        self.file_size = file_size
        self.expected_version = expected_version

    def __repr__(self):
        return f'<DocumentPatch {sorted(self.changes())}>'

    def changes(self):
        """Return the fields this patch sets."""
        return {
            field: getattr(self, field)
            for field in self.FIELDS
            if getattr(self, field) is not None
        }

    def triggers_revision(self, document):
        """Only a changed description versions the document."""
        return self.description is not None and self.description != document.description


class RevisionChainManager:
    """Applies owner updates and maintains the per-document revision chain."""

    def __init__(self, blob_store, async_blob_delete=True):
        self.blob_store = blob_store
        self.async_blob_delete = async_blob_delete

    # -- reads -----------------------------------------------------------

    def _load_document(self, document_id):
        document = db.session.get(Document, document_id)
        if document is None:
            raise DocumentNotFound()
        return document

    def get_owned_document(self, document_id, requester_id):
        """Load a document, checking that ``requester_id`` owns it."""
        document = self._load_document(document_id)
        if not document.is_owned_by(requester_id):
            raise Forbidden()
        return document

    def list_revisions(self, document_id, requester_id):
        """Return the revision chain of a document, newest first."""
        self.get_owned_document(document_id, requester_id)
        return Revision.for_document(document_id).all()

    def get_revision(self, document_id, version, requester_id):
        self.get_owned_document(document_id, requester_id)
        revision = Revision.get_version(document_id, version)
        if revision is None:
            raise DocumentNotFound('Revision not found.')
        return revision

    # -- writes ----------------------------------------------------------

    def create_document(self, owner_id, title, content=None, description=None, blob_locator=None,
                        original_filename=None, mime_type=None, file_size=None):
        """Persist a freshly uploaded document at version 0."""
        document = Document(
            owner_id=owner_id,
            title=title,
            content=content,
            description=description,
            blob_locator=blob_locator,
            original_filename=original_filename,
            mime_type=mime_type,
            file_size=file_size,
            current_version=0,
        )
        db.session.add(document)
        db.session.commit()
        logger.info('Document %s created by user %s', document.id, owner_id)
        return document

    def apply_update(self, document_id, requester_id, patch):
        """Apply ``patch`` to a document on behalf of its owner.

        When the description changes, the pre-update state is stored as
        revision ``current_version + 1`` and the document moves to that
        version. Revision insert and document update commit together.

        The document row is written with ``WHERE row_version = <read
        row_version>`` and every write bumps ``row_version``, versioned or
        not: if another update committed in between, nothing matches, the
        transaction rolls back and ``Conflict`` is raised.

        Raises:
            DocumentNotFound, Forbidden, Conflict
        """
        document = self._load_document(document_id)
        if not document.is_owned_by(requester_id):
            raise Forbidden()

        expected = document.current_version
        read_row_version = document.row_version
        if patch.expected_version is not None and patch.expected_version != expected:
            raise Conflict(current_version=expected)

        old_locator = document.blob_locator
        values = patch.changes()
        values['updated_at'] = utcnow()
        values['row_version'] = read_row_version + 1

        versioned = patch.triggers_revision(document)
        try:
            if versioned:
                db.session.add(Revision.from_document(document, expected + 1))
                values['current_version'] = expected + 1

            result = db.session.execute(
                update(Document)
                .where(
                    Document.id == document_id,
                    Document.row_version == read_row_version,
                    Document.current_version == expected,
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise Conflict(current_version=None)
            db.session.commit()
        except IntegrityError as e:
            db.session.rollback()
            logger.warning('Revision clash on document %s at version %s', document_id, expected + 1)
            raise Conflict() from e
        except Conflict:
            db.session.rollback()
            logger.warning('Stale update rejected on document %s (read version %s)', document_id, expected)
            raise

        if versioned:
            logger.info('Document %s snapshotted as revision %s', document_id, expected + 1)

        new_locator = patch.blob_locator
        if new_locator and old_locator and new_locator != old_locator:
            self.release_blob(old_locator)

        db.session.refresh(document)
        return document

    def delete_document(self, document_id, requester_id):
        """Delete a document with its revisions and grants, then its blobs."""
        document = self.get_owned_document(document_id, requester_id)
        locators = {document.blob_locator}
        locators.update(r.blob_locator for r in document.revisions)
        locators.discard(None)

        AccessGrant.query.filter_by(document_id=document_id).delete(synchronize_session=False)
        Revision.query.filter_by(document_id=document_id).delete(synchronize_session=False)
        db.session.delete(document)
        db.session.commit()
        logger.info('Document %s deleted by user %s', document_id, requester_id)

        for locator in sorted(locators):
            self.release_blob(locator)

    # -- blobs -----------------------------------------------------------

    def release_blob(self, locator):
        """Delete a blob that is no longer the live file.

        Only ever called after the owning transaction committed.
        """
        if self.async_blob_delete:
            thread = threading.Thread(target=self._delete_blob, args=(locator,), daemon=True)
            thread.start()
        else:
            self._delete_blob(locator)

    def _delete_blob(self, locator):
        try:
            self.blob_store.delete(locator)
        except Exception:
            logger.exception('Failed to delete blob %s', locator)
