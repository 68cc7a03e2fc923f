"""
DocVault Application Factory.
Creates and configures the Flask application instance.
"""
import os
import json
import logging
import uuid
from datetime import datetime, timezone

import click
from flask import Flask, jsonify, request, g

from docvault.config import config
from docvault.extensions import init_extensions, init_services, db


def _init_sentry(app):
    """Initialize Sentry error tracking for production."""
    dsn = app.config.get('SENTRY_DSN') or os.environ.get('SENTRY_DSN')
    if not dsn:
        app.logger.info('SENTRY_DSN not set, error tracking disabled.')
        return

    try:
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration
        from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

        sentry_sdk.init(
            dsn=dsn,
            integrations=[FlaskIntegration(), SqlalchemyIntegration()],
            traces_sample_rate=float(os.environ.get('SENTRY_TRACES_RATE', '0.1')),
            environment=os.environ.get('FLASK_ENV', 'production'),
            send_default_pii=False,
        )
        app.logger.info('Sentry error tracking initialized.')
    except ImportError:
        app.logger.warning('sentry-sdk not installed, error tracking disabled.')


def create_app(config_name=None, **overrides):
    """
    Application factory for creating Flask app instances.

    Args:
        config_name: Configuration to use (development, testing, production)
        **overrides: Config values applied on top of the config class

    Returns:
        Configured Flask application instance
    """
    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'development')

    app = Flask(__name__)

    # Load configuration
    config_class = config[config_name]
    app.config.from_object(config_class)
    app.config.update(overrides)

    # Initialize Sentry (production only)
    if config_name == 'production':
        _init_sentry(app)

    # Call init_app if available (production validation happens here)
    if hasattr(config_class, 'init_app'):
        config_class.init_app(app)

    # Initialize extensions and the process-wide sharing services
    init_extensions(app)
    init_services(app)

    register_blueprints(app)
    register_error_handlers(app)
    register_cli_commands(app)
    configure_logging(app)
    register_security_headers(app)

    # Create database tables (development only)
    if config_name == 'development':
        with app.app_context():
            db.create_all()

    return app


def register_blueprints(app):
    """Register all application blueprints."""
    # REST API v1 (JWT auth)
    from docvault.blueprints.api import api_bp

    app.register_blueprint(api_bp, url_prefix='/api/v1')


def register_error_handlers(app):
    """Register JSON error handlers for common HTTP errors."""

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'error': {'code': 'not_found', 'message': 'Resource not found.'}}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({'error': {'code': 'method_not_allowed', 'message': 'Method not allowed.'}}), 405

    @app.errorhandler(413)
    def too_large(error):
        return jsonify({'error': {'code': 'file_too_large', 'message': 'Uploaded file is too large.'}}), 413

    @app.errorhandler(429)
    def ratelimit_error(error):
        return jsonify({'error': {'code': 'rate_limit_exceeded', 'message': 'Too many requests. Try again later.'}}), 429

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        request_id = g.get('request_id', '-')
        app.logger.error('500 Internal Server Error: %s (request_id=%s)', type(error).__name__, request_id, exc_info=True)
        return jsonify({'error': {'code': 'internal_error', 'message': 'Internal server error.', 'request_id': request_id}}), 500


def register_cli_commands(app):
    """Register custom CLI commands."""

    @app.cli.command('create-user')
    @click.argument('email')
    @click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
    @click.option('--first-name', default='')
    @click.option('--last-name', default='')
    def create_user(email, password, first_name, last_name):
        """Create an account that can own and share documents."""
        from docvault.models.user import User

        email = email.strip().lower()
        if User.find_by_email(email):
            print(f"User already exists: {email}")
            return

        user = User(email=email, first_name=first_name, last_name=last_name)
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        print(f"Created user {user.id}: {email}")

    @app.cli.command('sweep-grants')
    @click.option('--dry-run', is_flag=True, help='Count expired grants without deleting them')
    def sweep_grants(dry_run):
        """Delete expired share grants (storage hygiene only).

        Expiry is enforced at validation time, so a failed or skipped
        sweep never lets an expired link through.
        """
        from docvault.models.access_grant import AccessGrant

        try:
            if dry_run:
                count = AccessGrant.expired().count()
                print(f"[DRY RUN] {count} expired grant(s) would be deleted")
                return
            count = AccessGrant.delete_expired()
            app.logger.info('Grant sweep removed %d expired grant(s)', count)
            print(f"Deleted {count} expired grant(s)")
        except Exception:
            db.session.rollback()
            app.logger.exception('Grant sweep failed')
            print("Grant sweep failed (see log); nothing was deleted")

    @app.cli.command('cleanup-blobs')
    @click.option('--dry-run', is_flag=True, help='List orphaned blobs without deleting them')
    def cleanup_blobs(dry_run):
        """Delete stored files no document or revision refers to."""
        from docvault.extensions import get_services
        from docvault.models.document import Document
        from docvault.models.revision import Revision

        blob_store = get_services(app).blob_store
        referenced = {row[0] for row in db.session.query(Document.blob_locator)}
        referenced.update(row[0] for row in db.session.query(Revision.blob_locator))
        referenced.discard(None)

        if dry_run:
            orphans = [loc for loc in blob_store.list_locators() if loc not in referenced]
            print(f"[DRY RUN] {len(orphans)} orphaned blob(s)")
            for locator in orphans:
                print(f"  {locator}")
            return

        removed = blob_store.cleanup_orphans(referenced)
        print(f"Cleaned up {len(removed)} orphaned blob(s)")

    @app.cli.command('storage-usage')
    def storage_usage():
        """Show how much space stored files use."""
        from docvault.extensions import get_services

        usage = get_services(app).blob_store.usage()
        print(f"{usage['file_count']} file(s), {usage['human_readable_size']} ({usage['total_size']} bytes)")


class JSONFormatter(logging.Formatter):
    """JSON log formatter for production (cloud log aggregation)."""

    def format(self, record):
        log_entry = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'message': record.getMessage(),
            'module': record.module,
            'line': record.lineno,
        }
        # Add request_id if available
        try:
            log_entry['request_id'] = g.get('request_id', '-')
        except RuntimeError:
            pass  # Outside request context
        # Add exception info
        if record.exc_info and record.exc_info[0]:
            log_entry['exception'] = self.formatException(record.exc_info)
        return json.dumps(log_entry, ensure_ascii=False)


def configure_logging(app):
    """Configure application logging.

    Production: JSON to stdout.
    Development: plain text.
    """
    if app.testing:
        return

    # Request ID middleware
    @app.before_request
    def assign_request_id():
        g.request_id = request.headers.get('X-Request-ID', str(uuid.uuid4())[:8])

    @app.after_request
    def log_request(response):
        app.logger.info(
            '%s %s %s (request_id=%s)',
            request.method,
            request.path,
            response.status_code,
            g.get('request_id', '-'),
        )
        return response

    docvault_logger = logging.getLogger('docvault')
    if not app.debug:
        # Production: JSON to stdout
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(JSONFormatter())
        stream_handler.setLevel(logging.INFO)

        # Clear existing handlers to avoid duplicates
        app.logger.handlers.clear()
        app.logger.addHandler(stream_handler)
        app.logger.setLevel(logging.INFO)
        docvault_logger.handlers.clear()
        docvault_logger.addHandler(stream_handler)
        docvault_logger.setLevel(logging.INFO)
        app.logger.info('DocVault startup (JSON logging)')
    else:
        app.logger.setLevel(logging.DEBUG)
        docvault_logger.setLevel(logging.DEBUG)
        app.logger.info('DocVault startup (development)')


def register_security_headers(app):
    """Register security headers for all responses."""

    @app.after_request
    def add_security_headers(response):
        """Add security headers to every response."""
        # Prevent MIME type sniffing
        response.headers['X-Content-Type-Options'] = 'nosniff'

        # Clickjacking protection
        response.headers['X-Frame-Options'] = 'SAMEORIGIN'

        # Share tokens travel in the query string; keep them out of Referer
        response.headers['Referrer-Policy'] = 'no-referrer'

        # HSTS - Force HTTPS (1 year, include subdomains)
        if not app.debug:
            response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'

        response.headers['X-Permitted-Cross-Domain-Policies'] = 'none'
        return response
