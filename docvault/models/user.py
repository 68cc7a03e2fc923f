"""
User model.
Users own documents and can be the bound recipient of private share links.
"""
from datetime import timedelta

from werkzeug.security import generate_password_hash, check_password_hash

from docvault.extensions import db
from docvault.utils.timezone import utcnow


class User(db.Model):
    """Account authenticated through the API's bearer tokens."""

    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False)
    first_name = db.Column(db.String(50), nullable=False)
    last_name = db.Column(db.String(50), nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    # Account lockout
    failed_login_attempts = db.Column(db.Integer, default=0, nullable=False)
    locked_until = db.Column(db.DateTime, nullable=True)

    # Timestamps
    created_at = db.Column(db.DateTime, default=utcnow)
    last_login = db.Column(db.DateTime, nullable=True)

    def __repr__(self):
        return f'<User {self.email}>'

    @property
    def full_name(self):
        """Return user's full name."""
        return f'{self.first_name} {self.last_name}'

    def set_password(self, password):
        """Hash and set user password."""
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        """Verify password against hash."""
        return check_password_hash(self.password_hash, password)

    @property
    def is_locked(self):
        """Check if account is currently locked."""
        if self.locked_until:
            return utcnow() < self.locked_until
        return False

    def record_failed_login(self, max_attempts=5, lockout_minutes=15):
        """Record a failed login attempt."""
        self.failed_login_attempts = (self.failed_login_attempts or 0) + 1
        if self.failed_login_attempts >= max_attempts:
            self.locked_until = utcnow() + timedelta(minutes=lockout_minutes)

    def reset_failed_logins(self):
        """Reset failed login counter on successful login."""
        self.failed_login_attempts = 0
        self.locked_until = None
        self.last_login = utcnow()

    @classmethod
    def find_by_email(cls, email):
        """Look up a user by (case-insensitive) email address."""
        if not email:
            return None
        return cls.query.filter_by(email=email.strip().lower()).first()
