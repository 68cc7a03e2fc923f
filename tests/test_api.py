"""
Tests for the REST API v1: JWT auth, document upload/update/download and
revisions.
"""
import pytest

from docvault.extensions import db
from docvault.models import Document, Revision, User
from tests.conftest import auth_header, upload_payload


def _upload(client, headers, data=b'file body', filename='notes.txt', **form):
    form.setdefault('title', 'Notes')
    return client.post(
        '/api/v1/documents',
        data=upload_payload(data, filename, **form),
        headers=headers,
        content_type='multipart/form-data',
    )


# =============================================================================
# Auth
# =============================================================================

class TestAuth:

    def test_login_success(self, client, owner_id):
        resp = client.post('/api/v1/auth/login', json={
            'email': 'owner@test.com',
            'password': 'Secret123!',
        })
        assert resp.status_code == 200
        data = resp.get_json()['data']
        assert data['token_type'] == 'Bearer'
        assert data['access_token']
        assert data['refresh_token']
        assert data['user']['email'] == 'owner@test.com'

    def test_login_invalid_password(self, client, owner_id):
        resp = client.post('/api/v1/auth/login', json={
            'email': 'owner@test.com',
            'password': 'nope',
        })
        assert resp.status_code == 401
        assert resp.get_json()['error']['code'] == 'invalid_credentials'

    def test_login_missing_fields(self, client, owner_id):
        resp = client.post('/api/v1/auth/login', json={'email': 'owner@test.com'})
        assert resp.status_code == 422
        assert resp.get_json()['error']['code'] == 'validation_error'

    def test_login_invalid_json(self, client):
        resp = client.post('/api/v1/auth/login', data='nope', content_type='text/plain')
        assert resp.status_code == 400

    def test_refresh_token(self, client, owner_id):
        login = client.post('/api/v1/auth/login', json={
            'email': 'owner@test.com',
            'password': 'Secret123!',
        }).get_json()['data']
        resp = client.post('/api/v1/auth/refresh', json={'refresh_token': login['refresh_token']})
        assert resp.status_code == 200
        assert resp.get_json()['data']['access_token']

    def test_refresh_with_access_token_fails(self, client, owner_headers):
        access = owner_headers['Authorization'][7:]
        resp = client.post('/api/v1/auth/refresh', json={'refresh_token': access})
        assert resp.status_code == 401

    def test_me_endpoint(self, client, owner_headers):
        resp = client.get('/api/v1/auth/me', headers=owner_headers)
        assert resp.status_code == 200
        assert resp.get_json()['data']['full_name'] == 'Olive Owner'

    def test_me_without_token(self, client):
        resp = client.get('/api/v1/auth/me')
        assert resp.status_code == 401
        assert resp.get_json()['error']['code'] == 'missing_token'


# =============================================================================
# Documents
# =============================================================================

class TestUpload:

    def test_upload_document(self, client, owner_headers, services):
        resp = _upload(client, owner_headers, b'hello world', 'notes.txt',
                       title='Notes', description='first')
        assert resp.status_code == 201
        data = resp.get_json()['data']
        assert data['title'] == 'Notes'
        assert data['description'] == 'first'
        assert data['current_version'] == 0
        assert data['file_size'] == 11
        assert data['mime_type'] == 'text/plain'

        document = db.session.get(Document, data['id'])
        assert services.blob_store.exists(document.blob_locator)

    def test_upload_requires_file(self, client, owner_headers):
        resp = client.post('/api/v1/documents', data={'title': 'x'}, headers=owner_headers,
                           content_type='multipart/form-data')
        assert resp.status_code == 422

    def test_upload_requires_title(self, client, owner_headers, services):
        resp = _upload(client, owner_headers, title='')
        assert resp.status_code == 422
        assert services.blob_store.list_locators() == []

    def test_upload_rejects_type(self, client, owner_headers):
        resp = _upload(client, owner_headers, b'MZ', 'tool.exe')
        assert resp.status_code == 422
        assert resp.get_json()['error']['code'] == 'invalid_upload'

    def test_upload_requires_auth(self, client):
        resp = _upload(client, {})
        assert resp.status_code == 401


class TestReadDocuments:

    def test_list_own_documents(self, client, owner_headers, document_id, other_user_id):
        db.session.add(Document(owner_id=other_user_id, title='Not mine'))
        db.session.commit()

        resp = client.get('/api/v1/documents', headers=owner_headers)
        assert resp.status_code == 200
        body = resp.get_json()
        assert body['meta']['total'] == 1
        assert body['data'][0]['id'] == document_id
        assert 'next' not in body['links']

    def test_list_pagination_links(self, client, owner_headers, owner_id, document_id):
        for n in range(2):
            db.session.add(Document(owner_id=owner_id, title=f'Extra {n}'))
        db.session.commit()

        body = client.get('/api/v1/documents?per_page=2', headers=owner_headers).get_json()
        assert len(body['data']) == 2
        assert body['meta'] == {'total': 3, 'page': 1, 'per_page': 2, 'total_pages': 2}
        assert 'page=2' in body['links']['next']
        assert 'page=2' in body['links']['last']
        assert 'prev' not in body['links']

        body = client.get('/api/v1/documents?page=0&per_page=500', headers=owner_headers).get_json()
        assert body['meta']['page'] == 1
        assert body['meta']['per_page'] == 100

    def test_get_document_sets_etag(self, client, owner_headers, document_id):
        resp = client.get(f'/api/v1/documents/{document_id}', headers=owner_headers)
        assert resp.status_code == 200
        assert resp.headers['ETag'] == '"0"'

    def test_get_document_of_other_user(self, client, other_headers, document_id):
        resp = client.get(f'/api/v1/documents/{document_id}', headers=other_headers)
        assert resp.status_code == 403
        assert resp.get_json()['error']['code'] == 'forbidden'

    def test_get_missing_document(self, client, owner_headers):
        resp = client.get('/api/v1/documents/999', headers=owner_headers)
        assert resp.status_code == 404
        assert resp.get_json()['error']['code'] == 'not_found'

    def test_download_streams_file(self, client, owner_headers, document_id):
        resp = client.get(f'/api/v1/documents/{document_id}/file', headers=owner_headers)
        assert resp.status_code == 200
        assert resp.data == b'first draft'
        assert resp.headers['Content-Disposition'].startswith('attachment;')
        assert resp.mimetype == 'text/plain'

    def test_download_missing_blob(self, client, owner_headers, document_id, services):
        services.blob_store.delete(db.session.get(Document, document_id).blob_locator)
        resp = client.get(f'/api/v1/documents/{document_id}/file', headers=owner_headers)
        assert resp.status_code == 404

    def test_download_url(self, client, owner_headers, document_id):
        resp = client.get(f'/api/v1/documents/{document_id}/url', headers=owner_headers)
        assert resp.status_code == 200
        assert resp.get_json()['data']['url'].endswith(f'/api/v1/documents/{document_id}/file')


class TestUpdateDocument:

    def test_description_change_versions(self, client, owner_headers, document_id):
        resp = client.patch(f'/api/v1/documents/{document_id}', json={'description': 'second'},
                            headers=owner_headers)
        assert resp.status_code == 200
        assert resp.get_json()['data']['current_version'] == 1
        assert resp.headers['ETag'] == '"1"'

        revisions = client.get(f'/api/v1/documents/{document_id}/revisions', headers=owner_headers)
        data = revisions.get_json()['data']
        assert [r['version'] for r in data] == [1]
        assert data[0]['description'] == 'initial'

    def test_title_change_does_not_version(self, client, owner_headers, document_id):
        resp = client.put(f'/api/v1/documents/{document_id}', json={'title': 'Renamed'},
                          headers=owner_headers)
        assert resp.status_code == 200
        data = resp.get_json()['data']
        assert data['title'] == 'Renamed'
        assert data['current_version'] == 0

    def test_stale_expected_version_conflicts(self, client, owner_headers, document_id):
        client.patch(f'/api/v1/documents/{document_id}', json={'description': 'a'}, headers=owner_headers)

        resp = client.patch(f'/api/v1/documents/{document_id}',
                            json={'description': 'b', 'expected_version': 0},
                            headers=owner_headers)
        assert resp.status_code == 409
        assert resp.get_json()['error']['code'] == 'conflict'

    def test_if_match_header(self, client, owner_headers, document_id):
        stale = dict(owner_headers, **{'If-Match': '"5"'})
        resp = client.patch(f'/api/v1/documents/{document_id}', json={'description': 'x'}, headers=stale)
        assert resp.status_code == 409

        fresh = dict(owner_headers, **{'If-Match': 'W/"0"'})
        resp = client.patch(f'/api/v1/documents/{document_id}', json={'description': 'x'}, headers=fresh)
        assert resp.status_code == 200

    def test_update_by_other_user(self, client, other_headers, document_id):
        resp = client.patch(f'/api/v1/documents/{document_id}', json={'description': 'x'},
                            headers=other_headers)
        assert resp.status_code == 403

    def test_update_missing_document(self, client, owner_headers):
        resp = client.patch('/api/v1/documents/999', json={'title': 'x'}, headers=owner_headers)
        assert resp.status_code == 404

    def test_update_validation(self, client, owner_headers, document_id):
        resp = client.patch(f'/api/v1/documents/{document_id}', json={'expected_version': -1},
                            headers=owner_headers)
        assert resp.status_code == 422

    def test_replace_file(self, client, owner_headers, document_id, services):
        old_locator = db.session.get(Document, document_id).blob_locator

        resp = client.patch(
            f'/api/v1/documents/{document_id}',
            data=upload_payload(b'second draft', 'report-v2.txt', description='new file'),
            headers=owner_headers,
            content_type='multipart/form-data',
        )
        assert resp.status_code == 200
        data = resp.get_json()['data']
        assert data['original_filename'] == 'report-v2.txt'
        assert data['current_version'] == 1

        download = client.get(f'/api/v1/documents/{document_id}/file', headers=owner_headers)
        assert download.data == b'second draft'
        assert not services.blob_store.exists(old_locator)

        db.session.expire_all()
        assert Revision.get_version(document_id, 1).blob_locator == old_locator

    def test_rejected_update_discards_new_file(self, client, owner_headers, document_id, services):
        before = set(services.blob_store.list_locators())
        resp = client.patch(
            f'/api/v1/documents/{document_id}',
            data=upload_payload(b'late', 'late.txt', expected_version='3'),
            headers=owner_headers,
            content_type='multipart/form-data',
        )
        assert resp.status_code == 409
        assert set(services.blob_store.list_locators()) == before


class TestRevisionsAndDelete:

    def test_get_single_revision(self, client, owner_headers, document_id):
        client.patch(f'/api/v1/documents/{document_id}', json={'description': 'v1'}, headers=owner_headers)
        resp = client.get(f'/api/v1/documents/{document_id}/revisions/1', headers=owner_headers)
        assert resp.status_code == 200
        assert resp.get_json()['data']['description'] == 'initial'

        missing = client.get(f'/api/v1/documents/{document_id}/revisions/2', headers=owner_headers)
        assert missing.status_code == 404

    def test_revisions_of_other_user(self, client, other_headers, document_id):
        resp = client.get(f'/api/v1/documents/{document_id}/revisions', headers=other_headers)
        assert resp.status_code == 403

    def test_delete_document(self, client, owner_headers, document_id, services):
        locator = db.session.get(Document, document_id).blob_locator
        resp = client.delete(f'/api/v1/documents/{document_id}', headers=owner_headers)
        assert resp.status_code == 204
        assert not services.blob_store.exists(locator)

        resp = client.get(f'/api/v1/documents/{document_id}', headers=owner_headers)
        assert resp.status_code == 404


# =============================================================================
# App-level behaviour
# =============================================================================

class TestErrorHandling:

    def test_404_returns_json(self, client):
        resp = client.get('/api/v1/does-not-exist')
        assert resp.status_code == 404
        assert resp.get_json()['error']['code'] == 'not_found'

    def test_405_returns_json(self, client):
        resp = client.put('/api/v1/auth/login')
        assert resp.status_code == 405
        assert resp.get_json()['error']['code'] == 'method_not_allowed'

    def test_security_headers(self, client):
        resp = client.get('/api/v1/auth/me')
        assert resp.headers['X-Content-Type-Options'] == 'nosniff'
        assert resp.headers['Referrer-Policy'] == 'no-referrer'

    def test_inactive_user_token_rejected(self, app, client, owner_id):
        headers = auth_header(owner_id)
        db.session.get(User, owner_id).is_active = False
        db.session.commit()

        resp = client.get('/api/v1/auth/me', headers=headers)
        assert resp.status_code == 401
