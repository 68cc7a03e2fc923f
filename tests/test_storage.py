"""
Tests for the local filesystem blob store.
"""
import os
import pytest

from docvault.services.exceptions import InvalidUpload
from docvault.utils.storage import BlobNotFound, LocalBlobStore


@pytest.fixture
def store(tmp_path):
    return LocalBlobStore(
        str(tmp_path / 'store'),
        max_size=1024,
        allowed_mime_types=['text/plain', 'application/pdf'],
    )


class TestSave:

    def test_save_returns_generated_locator(self, store):
        locator = store.save(b'hello', 'My Notes.txt')
        assert locator.endswith('.txt')
        assert locator != 'My Notes.txt'
        assert store.exists(locator)
        assert store.size(locator) == 5

    def test_locators_are_unique(self, store):
        assert store.save(b'a', 'a.txt') != store.save(b'a', 'a.txt')

    def test_path_components_in_hint_are_dropped(self, store):
        locator = store.save(b'x', '../../etc/passwd.txt')
        assert os.path.dirname(locator) == ''
        assert store.exists(locator)

    def test_rejects_oversized(self, store):
        with pytest.raises(InvalidUpload):
            store.save(b'x' * 1025, 'big.txt')

    def test_rejects_disallowed_type(self, store):
        with pytest.raises(InvalidUpload):
            store.save(b'MZ', 'tool.exe')

    def test_rejects_missing_data(self, store):
        with pytest.raises(InvalidUpload):
            store.save(None, 'a.txt')
        with pytest.raises(InvalidUpload):
            store.save(b'a', '')


class TestReadStream:

    def test_streams_in_chunks(self, store):
        locator = store.save(b'0123456789', 'digits.txt')
        chunks = list(store.open_read_stream(locator, chunk_size=4))
        assert chunks == [b'0123', b'4567', b'89']

    def test_stream_is_single_pass(self, store):
        stream = store.open_read_stream(store.save(b'abc', 'a.txt'))
        assert b''.join(stream) == b'abc'
        assert list(stream) == []

    def test_missing_blob_fails_up_front(self, store):
        with pytest.raises(BlobNotFound):
            store.open_read_stream('does-not-exist.txt')

    @pytest.mark.parametrize('locator', ['', None, '../secret', 'a/b.txt', '.hidden'])
    def test_foreign_locators_are_not_found(self, store, locator):
        assert not store.exists(locator)
        with pytest.raises(BlobNotFound):
            store.open_read_stream(locator)


class TestDelete:

    def test_delete(self, store):
        locator = store.save(b'abc', 'a.txt')
        assert store.delete(locator) is True
        assert not store.exists(locator)

    def test_delete_is_idempotent(self, store):
        locator = store.save(b'abc', 'a.txt')
        store.delete(locator)
        assert store.delete(locator) is False
        assert store.delete('never-existed.txt') is False


class TestMaintenance:

    def test_usage(self, store):
        store.save(b'a' * 100, 'a.txt')
        store.save(b'b' * 50, 'b.txt')
        usage = store.usage()
        assert usage['file_count'] == 2
        assert usage['total_size'] == 150
        assert usage['human_readable_size'] == '150.0 B'

    def test_cleanup_orphans(self, store):
        keep = store.save(b'keep', 'keep.txt')
        drop = store.save(b'drop', 'drop.txt')

        removed = store.cleanup_orphans({keep})
        assert removed == [drop]
        assert store.list_locators() == [keep]
