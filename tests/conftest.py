# =============================================================================
# DocVault - Pytest Fixtures Configuration
# =============================================================================

import io
import pytest
from unittest.mock import patch, MagicMock

from docvault import create_app
from docvault.extensions import db, get_services
from docvault.models.user import User
from docvault.blueprints.api.decorators import create_access_token


# =============================================================================
# Application Fixtures
# =============================================================================

@pytest.fixture(scope='function')
def app(tmp_path):
    """Create and configure test application with SQLite in-memory database."""
    application = create_app('testing', STORAGE_PATH=str(tmp_path / 'blobs'))

    with application.app_context():
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Test client for HTTP requests."""
    return app.test_client()


@pytest.fixture(scope='function')
def runner(app):
    """CLI test runner."""
    return app.test_cli_runner()


@pytest.fixture
def services(app):
    """The process-scoped service bundle of the test app."""
    return get_services(app)


# =============================================================================
# User Fixtures
# =============================================================================

def _make_user(email, first_name, last_name, password='Secret123!'):
    user = User(email=email, first_name=first_name, last_name=last_name)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    return user.id


@pytest.fixture
def owner_id(app):
    """Create the user who owns the test documents."""
    return _make_user('owner@test.com', 'Olive', 'Owner')


@pytest.fixture
def other_user_id(app):
    """Create a second, unrelated user."""
    return _make_user('other@test.com', 'Oscar', 'Other')


@pytest.fixture
def recipient_id(app):
    """Create a user that documents get shared with."""
    return _make_user('recipient@test.com', 'Rita', 'Recipient')


# =============================================================================
# Document Fixtures
# =============================================================================

@pytest.fixture
def document_id(app, services, owner_id):
    """Create a document with a stored blob, owned by ``owner_id``."""
    locator = services.blob_store.save(b'first draft', 'report.txt')
    document = services.revisions.create_document(
        owner_id=owner_id,
        title='Quarterly report',
        content='Q1 numbers',
        description='initial',
        blob_locator=locator,
        original_filename='report.txt',
        mime_type='text/plain',
        file_size=len(b'first draft'),
    )
    return document.id


# =============================================================================
# Auth / HTTP helpers
# =============================================================================

def auth_header(user_id):
    """Build an Authorization header for ``user_id`` (needs an app context)."""
    return {'Authorization': f'Bearer {create_access_token(user_id)}'}


def upload_payload(data=b'file body', filename='notes.txt', **form):
    """Multipart body for document uploads."""
    payload = {'file': (io.BytesIO(data), filename)}
    payload.update(form)
    return payload


@pytest.fixture
def owner_headers(app, owner_id):
    return auth_header(owner_id)


@pytest.fixture
def other_headers(app, other_user_id):
    return auth_header(other_user_id)


@pytest.fixture
def recipient_headers(app, recipient_id):
    return auth_header(recipient_id)


# =============================================================================
# Mail Fixtures
# =============================================================================

@pytest.fixture
def mock_mail(app):
    """Mock the Flask-Mailman message class so nothing is actually sent."""
    with patch('docvault.utils.email.EmailMultiAlternatives') as mock_cls:
        message = MagicMock()
        message.send = MagicMock(return_value=1)
        mock_cls.return_value = message
        yield mock_cls
