"""
Email utility module for DocVault.
Sends share-link notifications using Flask-Mailman, with retry and
exponential backoff. Unlike notification mail, a share email that cannot be
delivered is an error: the caller rolls the grant back.
"""
import time
import uuid
import logging

from flask import render_template
from flask_mailman import EmailMultiAlternatives

from docvault.services.exceptions import UpstreamFailure

logger = logging.getLogger(__name__)

# Retry configuration. The grant row stays uncommitted and its TTL keeps
# running while we back off, so delays stay short.
MAX_RETRIES = 3
RETRY_BASE_DELAY = 0.5  # seconds (0.5, 1 with exponential backoff)


class ShareMailer:
    """Outbound mail collaborator for emailed share links."""

    def __init__(self, sender=None, max_retries=MAX_RETRIES, retry_base_delay=RETRY_BASE_DELAY,
                 subject_prefix='[DocVault]'):
        self.sender = sender or 'noreply@docvault.app'
        self.max_retries = max(1, int(max_retries))
        self.retry_base_delay = retry_base_delay
        self.subject_prefix = subject_prefix

    def build_message(self, to_address, url, expires_at, document_title=None):
        """Render the share-link email (text + HTML alternative)."""
        context = {
            'url': url,
            'expires_at': expires_at,
            'expires_at_display': expires_at.strftime('%Y-%m-%d %H:%M:%S UTC') if expires_at else None,
            'document_title': document_title,
        }
        html_body = render_template('email/document_shared.html', **context)
        text_body = render_template('email/document_shared.txt', **context)

        msg = EmailMultiAlternatives(
            subject=f'{self.subject_prefix} Document shared with you',
            body=text_body,
            from_email=self.sender,
            to=[to_address],
        )
        msg.attach_alternative(html_body, 'text/html')
        return msg

    def send(self, to_address, url, expires_at, document_title=None):
        """Send a share link, retrying transient failures.

        Raises:
            UpstreamFailure: if every attempt failed
        """
        email_id = str(uuid.uuid4())[:8]
        logger.info(f"[EMAIL:{email_id}] Share link to {to_address}")

        try:
            msg = self.build_message(to_address, url, expires_at, document_title)
        except Exception as e:
            logger.error(f"[EMAIL:{email_id}] Failed to build message for {to_address}: {e}")
            raise UpstreamFailure('Failed to send email.') from e

        self._send_with_retry(msg, email_id, to_address)
        return email_id

    def _send_with_retry(self, msg, email_id, recipient):
        last_error = None
        for attempt in range(1, self.max_retries + 1):
            try:
                msg.send()
                logger.info(f"[EMAIL:{email_id}] Sent to {recipient}"
                            + (f" (attempt {attempt})" if attempt > 1 else ""))
                return
            except Exception as e:
                last_error = e
                if attempt < self.max_retries:
                    delay = self.retry_base_delay * (2 ** (attempt - 1))
                    logger.warning(
                        f"[EMAIL:{email_id}] Attempt {attempt}/{self.max_retries} failed "
                        f"for {recipient}: {e}, retrying in {delay}s"
                    )
                    time.sleep(delay)

        logger.error(
            f"[EMAIL:{email_id}] Giving up after {self.max_retries} attempt(s) "
            f"for {recipient}: {last_error}"
        )
        raise UpstreamFailure('Failed to send email.') from last_error
