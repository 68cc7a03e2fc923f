"""
Local filesystem blob store for document files.
Files are stored under a flat directory with unique generated names;
the generated name is the locator saved on documents and revisions.
"""
import os
import uuid
import logging
import mimetypes

from werkzeug.utils import secure_filename

from docvault.models.document import format_bytes
from docvault.services.exceptions import InvalidUpload

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


class BlobNotFound(Exception):
    """Raised when a locator does not resolve to a stored file."""


class LocalBlobStore:
    """Blob store backed by a directory on the local filesystem."""

    def __init__(self, root, max_size=10 * 1024 * 1024, allowed_mime_types=None):
        self.root = root
        self.max_size = max_size
        self.allowed_mime_types = set(allowed_mime_types or [])
        os.makedirs(self.root, exist_ok=True)

    def _path(self, locator):
        # Locators are bare generated names; anything else cannot be ours
        if not locator or os.path.basename(locator) != locator or locator.startswith('.'):
            raise BlobNotFound(locator)
        return os.path.join(self.root, locator)

    @staticmethod
    def guess_mime_type(filename):
        """Guess a MIME type from a filename."""
        mime_type, _ = mimetypes.guess_type(filename or '')
        return mime_type

    def save(self, data, hint):
        """Validate and store ``data``.

        Args:
            data: File contents as bytes
            hint: Original filename, used for the extension and MIME check

        Returns:
            str: locator of the stored blob
        """
        if data is None or not hint:
            raise InvalidUpload('Invalid file upload.')
        if len(data) > self.max_size:
            raise InvalidUpload(f'File size exceeds limit of {self.max_size} bytes.')

        filename = secure_filename(os.path.basename(hint))
        mime_type = self.guess_mime_type(filename)
        if self.allowed_mime_types and mime_type not in self.allowed_mime_types:
            raise InvalidUpload('Unsupported file type.')

        ext = filename.rsplit('.', 1)[1].lower() if '.' in filename else ''
        locator = f'{uuid.uuid4().hex}.{ext}' if ext else uuid.uuid4().hex

        with open(os.path.join(self.root, locator), 'wb') as f:
            f.write(data)

        logger.info('Stored blob %s (%d bytes)', locator, len(data))
        return locator

    def exists(self, locator):
        try:
            return os.path.isfile(self._path(locator))
        except BlobNotFound:
            return False

    def size(self, locator):
        if not self.exists(locator):
            raise BlobNotFound(locator)
        return os.path.getsize(self._path(locator))

    def open_read_stream(self, locator, chunk_size=CHUNK_SIZE):
        """Return a lazy, single-pass iterator over the blob's bytes.

        The file is opened here so that a missing blob fails before any
        response has started; it is closed when the iterator is exhausted
        or garbage-collected.
        """
        if not self.exists(locator):
            raise BlobNotFound(locator)
        handle = open(self._path(locator), 'rb')

        def _chunks():
            with handle:
                while True:
                    chunk = handle.read(chunk_size)
                    if not chunk:
                        break
                    yield chunk

        return _chunks()

    def delete(self, locator):
        """Delete a blob. Deleting a missing blob is not an error.

        Returns:
            bool: True if a file was removed
        """
        try:
            path = self._path(locator)
        except BlobNotFound:
            return False
        try:
            os.remove(path)
        except FileNotFoundError:
            return False
        logger.info('Deleted blob %s', locator)
        return True

    def list_locators(self):
        return sorted(
            name for name in os.listdir(self.root)
            if os.path.isfile(os.path.join(self.root, name))
        )

    def usage(self):
        """Return file count and total size of the store."""
        locators = self.list_locators()
        total_size = sum(os.path.getsize(os.path.join(self.root, name)) for name in locators)
        return {
            'file_count': len(locators),
            'total_size': total_size,
            'human_readable_size': format_bytes(total_size),
        }

    def cleanup_orphans(self, referenced):
        """Delete every stored blob whose locator is not in ``referenced``.

        Returns:
            list: locators that were removed
        """
        referenced = set(referenced)
        removed = []
        for locator in self.list_locators():
            if locator not in referenced and self.delete(locator):
                removed.append(locator)
        logger.info('Cleaned up %d orphaned blob(s)', len(removed))
        return removed
