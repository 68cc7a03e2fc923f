"""
Flask extensions initialization.
Extensions are initialized here and bound to the app in the factory.
"""
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_mailman import Mail
from flask_compress import Compress

# Database
db = SQLAlchemy()

# Database migrations
migrate = Migrate()

# Rate Limiting
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=['100 per minute']
)

# Email
mail = Mail()

# Response compression (gzip)
compress = Compress()


def init_extensions(app):
    """Initialize all extensions with the Flask app."""
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    mail.init_app(app)
    compress.init_app(app)


def init_services(app):
    """Build the sharing services once per process and attach them to the app.

    Views and CLI commands reach them through ``get_services()`` instead of
    module-level singletons, so tests can swap any collaborator.
    """
    from docvault.services.grants import GrantIssuer, GrantValidator
    from docvault.services.revisions import RevisionChainManager
    from docvault.services.tokens import TokenCodec
    from docvault.utils.email import ShareMailer
    from docvault.utils.storage import LocalBlobStore

    blob_store = LocalBlobStore(
        root=app.config['STORAGE_PATH'],
        max_size=app.config['MAX_FILE_SIZE'],
        allowed_mime_types=app.config['ALLOWED_MIME_TYPES'],
    )
    codec = TokenCodec(
        secret=(app.config.get('SHARE_TOKEN_SECRET')
                or app.config.get('JWT_SECRET_KEY')
                or app.config['SECRET_KEY']),
    )
    mailer = ShareMailer(
        sender=app.config.get('MAIL_DEFAULT_SENDER'),
        max_retries=app.config['MAIL_MAX_RETRIES'],
        retry_base_delay=app.config['MAIL_RETRY_BASE_DELAY'],
    )

    app.extensions['docvault'] = Services(
        blob_store=blob_store,
        codec=codec,
        mailer=mailer,
        revisions=RevisionChainManager(
            blob_store,
            async_blob_delete=app.config['BLOB_DELETE_ASYNC'],
        ),
        issuer=GrantIssuer(
            codec,
            mailer,
            ttl_seconds=app.config['SHARE_LINK_TTL_SECONDS'],
            base_url=app.config['APP_URL'],
        ),
        validator=GrantValidator(codec),
    )


class Services:
    """Process-scoped collaborators shared by every request."""

    def __init__(self, blob_store, codec, mailer, revisions, issuer, validator):
        self.blob_store = blob_store
        self.codec = codec
        self.mailer = mailer
        self.revisions = revisions
        self.issuer = issuer
        self.validator = validator


def get_services(app=None):
    """Return the ``Services`` bundle for ``app`` (default: current app)."""
    if app is None:
        from flask import current_app
        app = current_app
    return app.extensions['docvault']
