"""
Token codec for share links.
Generates opaque tokens and signs/verifies the JWTs used by emailed links.
"""
import secrets
from datetime import timezone

import jwt

SHARE_TOKEN_TYPE = 'share'
ALGORITHM = 'HS256'


class InvalidShareToken(Exception):
    """Raised when a signed share token fails verification."""


def generate_token():
    """Generate an unguessable url-safe token (256 bits of entropy)."""
    return secrets.token_urlsafe(32)


def to_timestamp(value):
    """Seconds since the epoch for a naive UTC datetime."""
    return int(value.replace(tzinfo=timezone.utc).timestamp())


class TokenCodec:
    """Stateless signer for emailed share tokens."""

    def __init__(self, secret, algorithm=ALGORITHM):
        if not secret:
            raise ValueError('A signing secret is required')
        self._secret = secret
        self._algorithm = algorithm

    generate_token = staticmethod(generate_token)

    def sign_share_token(self, document_id, nonce, recipient, issued_at, expires_at):
        """Sign the claims of an emailed share link."""
        payload = {
            'sub': str(document_id),
            'jti': nonce,
            'rcpt': recipient,
            'type': SHARE_TOKEN_TYPE,
            'iat': to_timestamp(issued_at),
            'exp': to_timestamp(expires_at),
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def verify_share_token(self, token, now):
        """Verify signature, type and expiry of a share token.

        Expiry is checked against ``now`` rather than the wall clock so callers
        and tests share a single notion of time.

        Returns:
            dict: the decoded claims

        Raises:
            InvalidShareToken: on any verification failure
        """
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={'verify_exp': False, 'verify_iat': False, 'require': ['sub', 'jti', 'exp']},
            )
        except jwt.InvalidTokenError as e:
            raise InvalidShareToken(str(e)) from e

        if payload.get('type') != SHARE_TOKEN_TYPE:
            raise InvalidShareToken('wrong token type')
        if payload['exp'] <= to_timestamp(now):
            raise InvalidShareToken('token expired')
        return payload

    def peek_document_id(self, token):
        """Return the document id a share token was signed for.

        The signature is verified but expiry is not, so the full check still
        has to run through ``verify_share_token``.
        """
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={'verify_exp': False, 'verify_iat': False, 'require': ['sub']},
            )
            return int(payload['sub'])
        except (jwt.InvalidTokenError, ValueError, TypeError) as e:
            raise InvalidShareToken(str(e)) from e
